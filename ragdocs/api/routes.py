"""FastAPI routes for document management and retrieval.

Service dependencies are resolved from ``app.state`` via FastAPI's
``Depends`` using the ``Annotated`` pattern; ``main.py`` populates
``app.state`` at startup.  The caller is identified by the ``X-Owner-Id``
header, which scopes every read and write.  There is no authentication at
this layer.

# Endpoint                              Method  Description
# ─────────────────────────────────────────────────────────────────────
# /api/v1/documents                     POST    Upload + process a file
# /api/v1/documents                     GET     List documents (paged)
# /api/v1/documents/stats               GET     Aggregate document stats
# /api/v1/documents/reprocess           POST    Re-embed missing vectors
# /api/v1/documents/{id}                GET     Fetch one document
# /api/v1/documents/{id}                PATCH   Rename a document
# /api/v1/documents/{id}                DELETE  Delete document + chunks
# /api/v1/documents/{id}/chunks         GET     Page through chunks
# /api/v1/documents/{id}/similar        GET     Similar documents
# /api/v1/search/semantic               POST    Vector search
# /api/v1/search/hybrid                 POST    Vector + keyword search
# /api/v1/search/context                POST    Excerpts for an LLM prompt
# /api/v1/health                        GET     Health + provider status
"""

from __future__ import annotations

import mimetypes
from typing import Annotated, Any

import structlog
from fastapi import APIRouter, Depends, Form, Header, HTTPException, Query, Request, Response, UploadFile

from ragdocs import __version__
from ragdocs.api.schemas import (
    ChunkListResponse,
    ChunkResponse,
    ContextRequest,
    DocumentListResponse,
    DocumentResponse,
    DocumentStatsResponse,
    DocumentUploadResponse,
    ErrorResponse,
    HealthResponse,
    HybridSearchRequest,
    ReprocessItem,
    ReprocessRequest,
    ReprocessResponse,
    SemanticSearchRequest,
    SimilarDocumentsResponse,
    UpdateDocumentRequest,
)
from ragdocs.interfaces.document_store import IDocumentStore
from ragdocs.models.document import DocumentStatus
from ragdocs.models.options import HybridSearchOptions, ProcessOptions, SearchOptions
from ragdocs.models.results import DocumentContext, SearchResponse
from ragdocs.services.document_service import DocumentService
from ragdocs.services.embedding_service import EmbeddingService
from ragdocs.services.extraction.extractor import TextExtractor
from ragdocs.services.retrieval.search_service import SearchService
from ragdocs.utils.errors import UnsupportedFormatError
from ragdocs.utils.logging import get_logger

_logger: structlog.BoundLogger = get_logger(__name__)

# All routes in this file are prefixed with /api/v1.
router = APIRouter(prefix="/api/v1")

_MAX_FILE_SIZE = 50 * 1024 * 1024  # 50 MB
# Uploads are read in 64 KB increments so oversized files are rejected
# before they are fully buffered.
_UPLOAD_CHUNK_SIZE = 64 * 1024


# ---------------------------------------------------------------------------
# Dependency injection helpers — resolve singletons from app.state
# ---------------------------------------------------------------------------


def _get_document_service(request: Request) -> DocumentService:
    return request.app.state.document_service


def _get_search_service(request: Request) -> SearchService:
    return request.app.state.search_service


def _get_embedding_service(request: Request) -> EmbeddingService | None:
    return getattr(request.app.state, "embedding_service", None)


def _get_store(request: Request) -> IDocumentStore:
    return request.app.state.store


DocumentServiceDep = Annotated[DocumentService, Depends(_get_document_service)]
SearchServiceDep = Annotated[SearchService, Depends(_get_search_service)]
EmbeddingServiceDep = Annotated[EmbeddingService | None, Depends(_get_embedding_service)]
StoreDep = Annotated[IDocumentStore, Depends(_get_store)]
OwnerDep = Annotated[str, Header(alias="X-Owner-Id", min_length=1, max_length=255)]


def _resolve_content_type(content_type: str | None, filename: str) -> str:
    """Return a supported MIME type for the upload, or raise.

    Browsers often send ``application/octet-stream``; fall back to a guess
    from the file extension before giving up.
    """
    if content_type and TextExtractor.is_supported(content_type):
        return content_type
    guessed, _ = mimetypes.guess_type(filename)
    if guessed and TextExtractor.is_supported(guessed):
        return guessed
    raise UnsupportedFormatError(
        f"Unsupported file type: {content_type or 'unknown'}. "
        f"Allowed: {', '.join(TextExtractor.supported_types())}"
    )


# ---------------------------------------------------------------------------
# Documents
# ---------------------------------------------------------------------------


@router.post(
    "/documents",
    response_model=DocumentUploadResponse,
    status_code=201,
    responses={413: {"model": ErrorResponse}, 415: {"model": ErrorResponse}},
    summary="Upload a document, extract, chunk and embed it",
)
async def upload_document(
    file: UploadFile,
    response: Response,
    owner_id: OwnerDep,
    documents: DocumentServiceDep,
    title: Annotated[str | None, Form(max_length=255)] = None,
    generate_embeddings: Annotated[bool, Form()] = True,
) -> DocumentUploadResponse:
    """Accept a file and run the full ingestion pipeline on it.

    Re-uploading identical bytes returns the existing document with
    ``deduplicated=true`` and status 200.  A pipeline failure still returns
    the (failed) document with ``success=false``.
    """
    filename = file.filename or "upload"
    file_type = _resolve_content_type(file.content_type, filename)

    parts: list[bytes] = []
    total_size = 0
    while True:
        part = await file.read(_UPLOAD_CHUNK_SIZE)
        if not part:
            break
        total_size += len(part)
        if total_size > _MAX_FILE_SIZE:
            raise HTTPException(
                status_code=413,
                detail=f"File too large. Maximum: {_MAX_FILE_SIZE} bytes.",
            )
        parts.append(part)
    data = b"".join(parts)
    del parts

    result = await documents.process_document(
        data,
        original_filename=filename,
        owner_id=owner_id,
        file_type=file_type,
        file_size=total_size,
        title=title,
        options=ProcessOptions(generate_embeddings=generate_embeddings),
    )
    if result.deduplicated:
        response.status_code = 200

    return DocumentUploadResponse(
        success=result.success,
        document=DocumentResponse.from_document(result.document) if result.document else None,
        chunk_count=len(result.chunks),
        deduplicated=result.deduplicated,
        error=result.error,
        processing_time_ms=result.processing_time_ms,
        embedding_cost=result.embedding_cost,
        total_tokens=result.total_tokens,
        extraction=result.extraction,
    )


@router.get(
    "/documents",
    response_model=DocumentListResponse,
    summary="List the caller's documents, newest first",
)
async def list_documents(
    owner_id: OwnerDep,
    documents: DocumentServiceDep,
    page: Annotated[int, Query(ge=1)] = 1,
    limit: Annotated[int, Query(ge=1, le=100)] = 20,
    status: DocumentStatus | None = None,
    file_type: str | None = None,
    search: Annotated[str | None, Query(max_length=255)] = None,
) -> DocumentListResponse:
    result = await documents.list_user_documents(
        owner_id, page=page, limit=limit, status=status, file_type=file_type, search=search
    )
    return DocumentListResponse(
        documents=[DocumentResponse.from_document(d) for d in result.documents],
        total=result.total,
        page=result.page,
        limit=result.limit,
        total_pages=result.total_pages,
    )


@router.get(
    "/documents/stats",
    response_model=DocumentStatsResponse,
    summary="Aggregate statistics over the caller's documents",
)
async def document_stats(owner_id: OwnerDep, documents: DocumentServiceDep) -> DocumentStatsResponse:
    stats = await documents.get_user_document_stats(owner_id)
    return DocumentStatsResponse(**stats.model_dump())


@router.post(
    "/documents/reprocess",
    response_model=ReprocessResponse,
    summary="Generate missing embeddings for one or more documents",
)
async def reprocess_documents(
    body: ReprocessRequest,
    owner_id: OwnerDep,
    documents: DocumentServiceDep,
) -> ReprocessResponse:
    results = await documents.reprocess_documents(body.document_ids, owner_id, force=body.force)
    return ReprocessResponse(
        results=[ReprocessItem(**r.model_dump()) for r in results],
        total_updated_chunks=sum(r.updated_chunks for r in results),
        total_cost=sum(r.cost for r in results),
    )


@router.get(
    "/documents/{document_id}",
    response_model=DocumentResponse,
    responses={404: {"model": ErrorResponse}},
    summary="Fetch one document",
)
async def get_document(
    document_id: str, owner_id: OwnerDep, documents: DocumentServiceDep
) -> DocumentResponse:
    return DocumentResponse.from_document(await documents.get_document_by_id(document_id, owner_id))


@router.patch(
    "/documents/{document_id}",
    response_model=DocumentResponse,
    responses={404: {"model": ErrorResponse}},
    summary="Rename a document",
)
async def update_document(
    document_id: str,
    body: UpdateDocumentRequest,
    owner_id: OwnerDep,
    documents: DocumentServiceDep,
) -> DocumentResponse:
    document = await documents.update_document(document_id, owner_id, body.title)
    return DocumentResponse.from_document(document)


@router.delete(
    "/documents/{document_id}",
    status_code=204,
    responses={404: {"model": ErrorResponse}},
    summary="Delete a document, its chunks and its stored file",
)
async def delete_document(
    document_id: str, owner_id: OwnerDep, documents: DocumentServiceDep
) -> Response:
    await documents.delete_document(document_id, owner_id)
    return Response(status_code=204)


@router.get(
    "/documents/{document_id}/chunks",
    response_model=ChunkListResponse,
    responses={404: {"model": ErrorResponse}},
    summary="Page through a document's chunks",
)
async def get_document_chunks(
    document_id: str,
    owner_id: OwnerDep,
    documents: DocumentServiceDep,
    limit: Annotated[int, Query(ge=1, le=100)] = 50,
    offset: Annotated[int, Query(ge=0)] = 0,
) -> ChunkListResponse:
    page = await documents.get_document_chunks(document_id, owner_id, limit=limit, offset=offset)
    return ChunkListResponse(
        document_id=document_id,
        document_title=page.document_title,
        chunks=[ChunkResponse.from_chunk(c) for c in page.chunks],
        total_chunks=page.total_chunks,
        limit=page.limit,
        offset=page.offset,
    )


@router.get(
    "/documents/{document_id}/similar",
    response_model=SimilarDocumentsResponse,
    responses={404: {"model": ErrorResponse}},
    summary="Find the caller's documents most similar to this one",
)
async def similar_documents(
    document_id: str,
    owner_id: OwnerDep,
    search: SearchServiceDep,
    limit: Annotated[int, Query(ge=1, le=20)] = 5,
) -> SimilarDocumentsResponse:
    similar = await search.find_similar_documents(document_id, owner_id, limit=limit)
    return SimilarDocumentsResponse(document_id=document_id, similar_documents=similar)


# ---------------------------------------------------------------------------
# Search
# ---------------------------------------------------------------------------


@router.post(
    "/search/semantic",
    response_model=SearchResponse,
    responses={502: {"model": ErrorResponse}},
    summary="Vector similarity search over the caller's documents",
)
async def semantic_search(
    body: SemanticSearchRequest, owner_id: OwnerDep, search: SearchServiceDep
) -> SearchResponse:
    options = SearchOptions.build(
        limit=body.limit,
        threshold=body.threshold,
        include_metadata=body.include_metadata,
        filter_document_ids=body.document_ids,
        exclude_document_ids=body.exclude_document_ids,
    )
    return await search.semantic_search(body.query, owner_id, options)


@router.post(
    "/search/hybrid",
    response_model=SearchResponse,
    responses={502: {"model": ErrorResponse}},
    summary="Blended vector and keyword search over the caller's documents",
)
async def hybrid_search(
    body: HybridSearchRequest, owner_id: OwnerDep, search: SearchServiceDep
) -> SearchResponse:
    options = HybridSearchOptions.build(
        limit=body.limit,
        threshold=body.threshold,
        include_metadata=body.include_metadata,
        filter_document_ids=body.document_ids,
        exclude_document_ids=body.exclude_document_ids,
        keyword_weight=body.keyword_weight,
        semantic_weight=body.semantic_weight,
        keyword_boost=body.keyword_boost,
        normalize_keyword_scores=body.normalize_keyword_scores,
    )
    return await search.hybrid_search(body.query, owner_id, options)


@router.post(
    "/search/context",
    response_model=DocumentContext,
    responses={502: {"model": ErrorResponse}},
    summary="Collect document excerpts to ground an LLM answer",
)
async def document_context(
    body: ContextRequest, owner_id: OwnerDep, search: SearchServiceDep
) -> DocumentContext:
    return await search.get_document_context(
        body.query, owner_id, max_chunks=body.max_chunks, threshold=body.threshold
    )


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------


@router.get("/health", response_model=HealthResponse, summary="Health check")
async def health(
    embedding: EmbeddingServiceDep,
    store: StoreDep,
    deep: bool = False,
) -> HealthResponse:
    """Report provider status.  ``deep=true`` sends one test embedding request."""
    providers: dict[str, Any] = {"store": store.get_provider_name()}
    if embedding is None:
        providers["embedding"] = {"status": "not_configured"}
    elif deep:
        providers["embedding"] = await embedding.health_check()
    else:
        available = embedding.provider.is_available()
        providers["embedding"] = {
            "status": "healthy" if available else "unavailable",
            "provider": embedding.provider.get_provider_name(),
            "model": embedding.default_model,
        }

    degraded = embedding is None or providers["embedding"].get("status") != "healthy"
    return HealthResponse(
        status="degraded" if degraded else "healthy",
        version=__version__,
        providers=providers,
    )
