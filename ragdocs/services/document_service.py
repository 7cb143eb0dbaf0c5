"""Orchestrator for document ingestion and document management.

Pipeline stages for one upload: **hash -> dedup -> extract -> chunk ->
embed -> persist**.

:class:`DocumentService` coordinates the extractor, chunker, embedding
service and document store without any of them knowing about each other.
Every stage of :meth:`DocumentService.process_document` runs sequentially
for its document; separate uploads may be processed concurrently by
separate callers since all writes are scoped by document id.

Failures after the document row exists never escape ``process_document``:
the document is marked ``failed`` with an error message and the caller gets
a :class:`ProcessingResult` with ``success=False``.  A failed upload stays
visible and inspectable.  Extraction and chunking failures are not retried
(resubmit the file); embedding failures are retried inside the embedding
service before they surface here.
"""

from __future__ import annotations

import asyncio
import hashlib
import math
import time
import uuid
from datetime import timedelta
from pathlib import Path

import structlog

from ragdocs.interfaces.document_store import IDocumentStore
from ragdocs.models.chunking import ExtractionMetadata, ExtractionResult, TextChunk
from ragdocs.models.document import (
    Chunk,
    ChunkPage,
    Document,
    DocumentPage,
    DocumentStats,
    DocumentStatus,
    utc_now,
)
from ragdocs.models.options import ProcessOptions
from ragdocs.models.results import ProcessingResult, ReprocessResult
from ragdocs.services.chunking.chunker import TextChunker
from ragdocs.services.embedding_service import EmbeddingService
from ragdocs.services.extraction.extractor import TextExtractor
from ragdocs.utils.errors import (
    ChunkingFailure,
    NotFoundError,
    RagDocsError,
    ValidationError,
)

logger = structlog.get_logger(logger_name=__name__)

_MAX_TITLE_LENGTH = 255
_MAX_PAGE_LIMIT = 100


def content_hash(data: bytes) -> str:
    """Return the SHA-256 hex digest used for per-owner deduplication."""
    return hashlib.sha256(data).hexdigest()


class DocumentService:
    """Runs the ingestion pipeline and owns the document lifecycle.

    Parameters
    ----------
    extractor:
        Turns raw bytes into normalized text.
    chunker:
        Splits extracted text into retrieval-sized chunks.
    embedding_service:
        Generates chunk vectors (batched, retried, costed).
    store:
        Persists documents and chunks.
    upload_dir:
        When set, raw uploads without an explicit ``storage_path`` are
        written here as ``<document id><suffix>``.
    """

    def __init__(
        self,
        extractor: TextExtractor,
        chunker: TextChunker,
        embedding_service: EmbeddingService,
        store: IDocumentStore,
        upload_dir: str | Path | None = None,
    ) -> None:
        self._extractor = extractor
        self._chunker = chunker
        self._embedder = embedding_service
        self._store = store
        self._upload_dir = Path(upload_dir) if upload_dir is not None else None

    # ------------------------------------------------------------------
    # Ingestion
    # ------------------------------------------------------------------

    async def process_document(
        self,
        data: bytes,
        original_filename: str,
        owner_id: str,
        file_type: str,
        file_size: int | None = None,
        title: str | None = None,
        storage_path: str | None = None,
        options: ProcessOptions | None = None,
    ) -> ProcessingResult:
        """Ingest one uploaded file end to end.

        Parameters
        ----------
        data:
            Raw file bytes.
        original_filename:
            Filename as uploaded; its stem is the default title.
        owner_id:
            Owning user.  Deduplication is scoped to this owner.
        file_type:
            Declared MIME type.
        file_size:
            Size in bytes; ``len(data)`` when omitted.
        title:
            Display title.
        storage_path:
            Where the raw file already lives, if the caller stored it.
        options:
            Embedding, chunking and extraction controls.

        Returns
        -------
        ProcessingResult
            ``deduplicated=True`` with the existing document when this
            owner already uploaded identical bytes.  ``success=False`` with
            the failed document when any stage after creation failed.
        """
        opts = options or ProcessOptions()
        started = time.monotonic()
        digest = content_hash(data)

        existing = await self._store.find_document_by_hash(owner_id, digest)
        if existing is not None:
            return await self._deduplicated(existing, started)

        document_id = str(uuid.uuid4())
        store_upload = storage_path is None and self._upload_dir is not None
        if store_upload:
            storage_path = str(self._upload_dir / f"{document_id}{Path(original_filename).suffix}")

        document, created = await self._store.create_document(
            Document(
                id=document_id,
                owner_id=owner_id,
                title=(title or "").strip() or Path(original_filename).stem or original_filename,
                original_filename=original_filename,
                storage_path=storage_path,
                file_type=file_type,
                file_size=file_size if file_size is not None else len(data),
                content_hash=digest,
            )
        )
        if not created:
            # Lost a race with a concurrent upload of the same bytes.
            return await self._deduplicated(document, started)

        logger.info(
            "document_processing_started",
            document_id=document.id,
            owner_id=owner_id,
            filename=original_filename,
            file_type=file_type,
            size=document.file_size,
        )
        await self._store.update_document_status(
            document.id, DocumentStatus.PROCESSING, expected_status=DocumentStatus.PENDING
        )

        embedding_cost = 0.0
        total_tokens = 0
        extraction = None
        try:
            if store_upload:
                await asyncio.to_thread(self._write_upload, Path(storage_path), data)

            extraction = await asyncio.to_thread(
                self._extractor.extract_text, data, file_type, opts.extraction_options
            )
            text_chunks = self._chunker.chunk_text(extraction.content, opts.chunk_options)
            if not text_chunks:
                raise ChunkingFailure("Chunking produced no chunks")

            vectors: list[list[float] | None] = [None] * len(text_chunks)
            if opts.generate_embeddings:
                batch = await self._embedder.generate_embeddings(
                    [c.content for c in text_chunks], model=opts.embedding_model
                )
                vectors = list(batch.embeddings)
                embedding_cost = batch.cost
                total_tokens = batch.total_tokens

            chunks = [
                self._to_chunk(document.id, text_chunk, vector)
                for text_chunk, vector in zip(text_chunks, vectors)
            ]
            await self._store.insert_chunks(chunks)
            persisted = await self._store.count_chunks(document.id)
        except Exception as exc:
            return await self._fail(
                document, exc, started, embedding_cost, total_tokens, extraction
            )

        completed = await self._store.update_document_status(
            document.id,
            DocumentStatus.COMPLETED,
            chunk_count=persisted,
            expected_status=DocumentStatus.PROCESSING,
        )
        if completed is None:
            return await self._superseded(
                document, started, embedding_cost, total_tokens, extraction.metadata
            )
        elapsed_ms = int((time.monotonic() - started) * 1000)
        logger.info(
            "document_processing_complete",
            document_id=document.id,
            chunks=persisted,
            embedded=opts.generate_embeddings,
            total_tokens=total_tokens,
            cost=embedding_cost,
            elapsed_ms=elapsed_ms,
        )
        return ProcessingResult(
            success=True,
            document=completed,
            chunks=chunks,
            processing_time_ms=elapsed_ms,
            embedding_cost=embedding_cost,
            total_tokens=total_tokens,
            extraction=extraction.metadata,
        )

    async def _superseded(
        self,
        document: Document,
        started: float,
        embedding_cost: float,
        total_tokens: int,
        extraction: ExtractionMetadata,
    ) -> ProcessingResult:
        # Someone else (the stale-document watchdog, a delete) moved the
        # document out of processing; failed is terminal, so drop our chunks.
        removed = await self._store.delete_chunks(document.id)
        current = await self._store.get_document(document.id, document.owner_id)
        status = current.status.value if current is not None else "deleted"
        logger.warning(
            "document_processing_superseded",
            document_id=document.id,
            status=status,
            discarded_chunks=removed,
        )
        return ProcessingResult(
            success=False,
            document=current,
            error=f"Document left processing while the pipeline ran (now {status})",
            processing_time_ms=int((time.monotonic() - started) * 1000),
            embedding_cost=embedding_cost,
            total_tokens=total_tokens,
            extraction=extraction,
        )

    async def _deduplicated(self, document: Document, started: float) -> ProcessingResult:
        logger.info(
            "document_deduplicated",
            document_id=document.id,
            owner_id=document.owner_id,
            status=document.status.value,
        )
        return ProcessingResult(
            success=True,
            document=document,
            chunks=await self._store.get_chunks(document.id),
            processing_time_ms=int((time.monotonic() - started) * 1000),
            deduplicated=True,
        )

    async def _fail(
        self,
        document: Document,
        exc: Exception,
        started: float,
        embedding_cost: float,
        total_tokens: int,
        extraction: ExtractionResult | None = None,
    ) -> ProcessingResult:
        message = exc.message if isinstance(exc, RagDocsError) else str(exc) or type(exc).__name__
        logger.error(
            "document_processing_failed",
            document_id=document.id,
            error=message,
            error_type=type(exc).__name__,
            exc_info=not isinstance(exc, RagDocsError),
        )
        failed = await self._store.update_document_status(
            document.id,
            DocumentStatus.FAILED,
            chunk_count=0,
            error_message=message,
            expected_status=DocumentStatus.PROCESSING,
        )
        if failed is None:
            failed = await self._store.get_document(document.id, document.owner_id)
        return ProcessingResult(
            success=False,
            document=failed,
            error=message,
            processing_time_ms=int((time.monotonic() - started) * 1000),
            embedding_cost=embedding_cost,
            total_tokens=total_tokens,
            extraction=extraction.metadata if extraction is not None else None,
        )

    @staticmethod
    def _to_chunk(document_id: str, text_chunk: TextChunk, vector: list[float] | None) -> Chunk:
        metadata = text_chunk.metadata.model_dump(mode="json", exclude_none=True)
        metadata["start_position"] = text_chunk.start_position
        metadata["end_position"] = text_chunk.end_position
        return Chunk(
            id=str(uuid.uuid4()),
            document_id=document_id,
            chunk_index=text_chunk.chunk_index,
            content=text_chunk.content,
            token_count=text_chunk.token_count,
            embedding=vector,
            metadata=metadata,
        )

    @staticmethod
    def _write_upload(path: Path, data: bytes) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)

    # ------------------------------------------------------------------
    # Reprocessing
    # ------------------------------------------------------------------

    async def reprocess_document(
        self, document_id: str, owner_id: str, force: bool = False
    ) -> ReprocessResult:
        """Embed a document's chunks that have no vector yet.

        Without *force* the document must be ``completed`` and only chunks
        lacking an embedding are sent; with *force* every chunk is
        re-embedded whatever the document's status.  Nothing to embed
        returns zero counts without calling the provider.  The document's
        status is never changed here.

        Raises
        ------
        NotFoundError
            Unknown document or not owned by *owner_id*.
        ValidationError
            Document not ``completed`` and *force* is false.
        ProviderError
            Embedding failed after retries.
        """
        document = await self.get_document_by_id(document_id, owner_id)
        if not force and document.status != DocumentStatus.COMPLETED:
            raise ValidationError(
                f"Document {document_id} is {document.status.value}; "
                "only completed documents can be reprocessed without force"
            )

        if force:
            selected = await self._store.get_chunks(document_id)
        else:
            selected = await self._store.get_chunks_without_embeddings(document_id)
        if not selected:
            logger.info("reprocess_nothing_to_embed", document_id=document_id, force=force)
            return ReprocessResult(document_id=document_id)

        batch = await self._embedder.generate_embeddings([c.content for c in selected])
        updated = await self._store.update_chunk_embeddings(
            {chunk.id: vector for chunk, vector in zip(selected, batch.embeddings)}
        )
        logger.info(
            "document_reprocessed",
            document_id=document_id,
            updated_chunks=updated,
            cost=batch.cost,
            force=force,
        )
        return ReprocessResult(document_id=document_id, updated_chunks=updated, cost=batch.cost)

    async def reprocess_documents(
        self, document_ids: list[str], owner_id: str, force: bool = False
    ) -> list[ReprocessResult]:
        """Reprocess several documents one after another.

        A failure on one document is reported in its result and does not
        stop the rest.
        """
        results: list[ReprocessResult] = []
        for document_id in document_ids:
            try:
                results.append(await self.reprocess_document(document_id, owner_id, force=force))
            except RagDocsError as exc:
                logger.warning("reprocess_failed", document_id=document_id, error=exc.message)
                results.append(
                    ReprocessResult(document_id=document_id, success=False, error=exc.message)
                )
        return results

    # ------------------------------------------------------------------
    # Document management
    # ------------------------------------------------------------------

    async def list_user_documents(
        self,
        owner_id: str,
        page: int = 1,
        limit: int = 20,
        status: DocumentStatus | None = None,
        file_type: str | None = None,
        search: str | None = None,
    ) -> DocumentPage:
        """Return one page of the owner's documents, newest first."""
        if page < 1:
            raise ValidationError(f"page must be >= 1, got {page}")
        if not 1 <= limit <= _MAX_PAGE_LIMIT:
            raise ValidationError(f"limit must be between 1 and {_MAX_PAGE_LIMIT}, got {limit}")

        documents, total = await self._store.list_documents(
            owner_id,
            offset=(page - 1) * limit,
            limit=limit,
            status=status,
            file_type=file_type,
            search=search.strip() if search and search.strip() else None,
        )
        return DocumentPage(
            documents=documents,
            total=total,
            page=page,
            limit=limit,
            total_pages=math.ceil(total / limit),
        )

    async def get_document_by_id(self, document_id: str, owner_id: str) -> Document:
        document = await self._store.get_document(document_id, owner_id)
        if document is None:
            raise NotFoundError(f"Document {document_id} not found")
        return document

    async def update_document(self, document_id: str, owner_id: str, title: str) -> Document:
        """Rename a document.  The title is stripped and must be 1-255 chars."""
        cleaned = (title or "").strip()
        if not 1 <= len(cleaned) <= _MAX_TITLE_LENGTH:
            raise ValidationError(f"title must be 1-{_MAX_TITLE_LENGTH} characters")
        document = await self._store.update_document_title(document_id, owner_id, cleaned)
        if document is None:
            raise NotFoundError(f"Document {document_id} not found")
        logger.info("document_updated", document_id=document_id, title=cleaned)
        return document

    async def delete_document(self, document_id: str, owner_id: str) -> None:
        """Delete a document and its chunks, then the stored file if any.

        The file removal is best-effort: a failure is logged, not raised.
        """
        document = await self.get_document_by_id(document_id, owner_id)
        if not await self._store.delete_document(document_id, owner_id):
            raise NotFoundError(f"Document {document_id} not found")

        if document.storage_path:
            try:
                await asyncio.to_thread(Path(document.storage_path).unlink, missing_ok=True)
            except OSError as exc:
                logger.warning(
                    "document_file_delete_failed",
                    document_id=document_id,
                    path=document.storage_path,
                    error=str(exc),
                )
        logger.info("document_deleted", document_id=document_id, owner_id=owner_id)

    async def get_document_chunks(
        self, document_id: str, owner_id: str, limit: int = 50, offset: int = 0
    ) -> ChunkPage:
        """Return a window of the document's chunks in index order."""
        if not 1 <= limit <= _MAX_PAGE_LIMIT:
            raise ValidationError(f"limit must be between 1 and {_MAX_PAGE_LIMIT}, got {limit}")
        if offset < 0:
            raise ValidationError(f"offset must be >= 0, got {offset}")

        document = await self.get_document_by_id(document_id, owner_id)
        chunks = await self._store.get_chunks(document_id, limit=limit, offset=offset)
        return ChunkPage(
            chunks=chunks,
            total_chunks=await self._store.count_chunks(document_id),
            document_title=document.title,
            limit=limit,
            offset=offset,
        )

    async def get_user_document_stats(self, owner_id: str) -> DocumentStats:
        return await self._store.get_document_stats(owner_id)

    # ------------------------------------------------------------------
    # Watchdog
    # ------------------------------------------------------------------

    async def reclassify_stale_documents(self, max_age: timedelta) -> list[Document]:
        """Mark documents stuck in ``processing`` longer than *max_age* as failed.

        A pipeline killed mid-run (process crash, external timeout) leaves
        its document in ``processing`` forever; run this periodically.
        """
        cutoff = utc_now() - max_age
        stale = await self._store.find_stale_processing(cutoff)
        failed: list[Document] = []
        for document in stale:
            updated = await self._store.update_document_status(
                document.id,
                DocumentStatus.FAILED,
                error_message=f"Processing did not finish within {max_age}",
                expected_status=DocumentStatus.PROCESSING,
            )
            if updated is not None:
                failed.append(updated)
        if failed:
            logger.warning(
                "stale_documents_reclassified",
                count=len(failed),
                document_ids=[d.id for d in failed],
            )
        return failed
