"""Pydantic request/response schemas for the ragdocs HTTP API.

Request schemas carry the validation limits of the public contract (query
length, result limits, thresholds, title length); FastAPI turns violations
into 422 responses before a route runs.  Response schemas hide storage
details such as raw embedding vectors and content hashes.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from ragdocs.models.chunking import ExtractionMetadata
from ragdocs.models.document import Chunk, Document, DocumentStatus
from ragdocs.models.results import SimilarDocument

# ---------------------------------------------------------------------------
# Documents
# ---------------------------------------------------------------------------


class DocumentResponse(BaseModel):
    """Public view of one document."""

    id: str
    title: str
    original_filename: str
    file_type: str
    file_size: int
    status: DocumentStatus
    chunk_count: int
    error_message: str | None = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_document(cls, document: Document) -> DocumentResponse:
        return cls(
            id=document.id,
            title=document.title,
            original_filename=document.original_filename,
            file_type=document.file_type,
            file_size=document.file_size,
            status=document.status,
            chunk_count=document.chunk_count,
            error_message=document.error_message,
            created_at=document.created_at,
            updated_at=document.updated_at,
        )


class DocumentUploadResponse(BaseModel):
    """Result of uploading and processing one file."""

    success: bool
    document: DocumentResponse | None = None
    chunk_count: int = 0
    deduplicated: bool = False
    error: str | None = None
    processing_time_ms: int = 0
    embedding_cost: float = 0.0
    total_tokens: int = 0
    # Word, character and page counts of the extracted text; absent for
    # deduplicated uploads, which skip extraction.
    extraction: ExtractionMetadata | None = None


class DocumentListResponse(BaseModel):
    """One page of the caller's documents."""

    documents: list[DocumentResponse]
    total: int
    page: int
    limit: int
    total_pages: int


class UpdateDocumentRequest(BaseModel):
    """Rename a document."""

    title: str = Field(..., min_length=1, max_length=255)


class ChunkResponse(BaseModel):
    """Public view of one chunk (vector omitted)."""

    id: str
    chunk_index: int
    content: str
    token_count: int
    has_embedding: bool
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime

    @classmethod
    def from_chunk(cls, chunk: Chunk) -> ChunkResponse:
        return cls(
            id=chunk.id,
            chunk_index=chunk.chunk_index,
            content=chunk.content,
            token_count=chunk.token_count,
            has_embedding=chunk.has_embedding,
            metadata=chunk.metadata,
            created_at=chunk.created_at,
        )


class ChunkListResponse(BaseModel):
    """A window of a document's chunks."""

    document_id: str
    document_title: str
    chunks: list[ChunkResponse]
    total_chunks: int
    limit: int
    offset: int


class DocumentStatsResponse(BaseModel):
    """Aggregate statistics over the caller's documents."""

    total_documents: int
    total_size: int
    total_chunks: int
    average_chunks_per_document: float
    status_counts: dict[str, int]
    file_type_counts: dict[str, int]


class ReprocessRequest(BaseModel):
    """Re-embed the chunks of one or more documents."""

    document_ids: list[str] = Field(..., min_length=1, max_length=50)
    force: bool = False


class ReprocessItem(BaseModel):
    document_id: str
    success: bool
    updated_chunks: int = 0
    cost: float = 0.0
    error: str | None = None


class ReprocessResponse(BaseModel):
    results: list[ReprocessItem]
    total_updated_chunks: int
    total_cost: float


class SimilarDocumentsResponse(BaseModel):
    document_id: str
    similar_documents: list[SimilarDocument]


# ---------------------------------------------------------------------------
# Search
# ---------------------------------------------------------------------------


class SemanticSearchRequest(BaseModel):
    """Vector-only search over the caller's documents."""

    query: str = Field(..., min_length=1, max_length=1000)
    limit: int = Field(default=10, ge=1, le=50)
    threshold: float = Field(default=0.7, ge=0.0, le=1.0)
    include_metadata: bool = True
    document_ids: list[str] | None = None
    exclude_document_ids: list[str] | None = None


class HybridSearchRequest(SemanticSearchRequest):
    """Blended vector + keyword search."""

    threshold: float = Field(default=0.5, ge=0.0, le=1.0)
    keyword_weight: float = Field(default=0.3, ge=0.0, le=1.0)
    semantic_weight: float = Field(default=0.7, ge=0.0, le=1.0)
    keyword_boost: float = Field(default=1.2, ge=0.0)
    normalize_keyword_scores: bool = False


class ContextRequest(BaseModel):
    """Collect excerpts for grounding an LLM answer."""

    query: str = Field(..., min_length=1, max_length=1000)
    max_chunks: int = Field(default=5, ge=1, le=20)
    threshold: float = Field(default=0.7, ge=0.0, le=1.0)


# ---------------------------------------------------------------------------
# Misc
# ---------------------------------------------------------------------------


class HealthResponse(BaseModel):
    """Application health check response."""

    status: str
    version: str
    providers: dict[str, Any]


class ErrorResponse(BaseModel):
    """Standard error response body."""

    error: str
    detail: str | None = None
