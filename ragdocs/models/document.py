"""Persisted document and chunk records.

A :class:`Document` is one uploaded file owned by one user; its
:class:`Chunk` rows are the retrieval units produced by the chunker and
(optionally) embedded.  Both are frozen -- state changes go through the
store, which hands back fresh instances (``model_copy(update=...)``).

Lifecycle::

    pending -> processing -> completed
                          \\-> failed

``failed`` is terminal for ingestion; only an embedding-only reprocess
(``force=True``) touches a failed document's chunks again.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


def utc_now() -> datetime:
    """Return the current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


class DocumentStatus(str, Enum):  # noqa: UP042 — StrEnum requires Python 3.11+
    """Processing status of an ingested document."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class Document(BaseModel):
    """An uploaded document and its ingestion state."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(description="Unique identifier (UUID) for the document.")
    owner_id: str = Field(description="Identifier of the user who owns the document.")
    title: str = Field(description="Display title; defaults to the filename stem.")
    original_filename: str = Field(description="Filename as uploaded.")
    storage_path: str | None = Field(
        default=None, description="Where the raw file lives on disk, if it was stored."
    )
    file_type: str = Field(description="Declared MIME type of the upload.")
    file_size: int = Field(default=0, ge=0, description="Size of the raw file in bytes.")
    content_hash: str = Field(description="SHA-256 hex digest of the raw file bytes.")
    status: DocumentStatus = Field(default=DocumentStatus.PENDING)
    chunk_count: int = Field(default=0, ge=0)
    error_message: str | None = Field(
        default=None, description="Why processing failed, when status is failed."
    )
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


class Chunk(BaseModel):
    """A persisted chunk of a document's extracted text."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(description="Unique identifier (UUID) for this chunk.")
    document_id: str
    chunk_index: int = Field(ge=0, description="0-based position within the document.")
    content: str
    token_count: int = Field(default=0, ge=0, description="Estimated tokens, ceil(chars / 4).")
    # None until the chunk has been through the embedding service.
    embedding: list[float] | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=utc_now)

    @property
    def has_embedding(self) -> bool:
        return self.embedding is not None


class DocumentPage(BaseModel):
    """One page of a user's document listing."""

    model_config = ConfigDict(frozen=True)

    documents: list[Document] = Field(default_factory=list)
    total: int = 0
    page: int = 1
    limit: int = 20
    total_pages: int = 0


class ChunkPage(BaseModel):
    """A window of a document's chunks in index order."""

    model_config = ConfigDict(frozen=True)

    chunks: list[Chunk] = Field(default_factory=list)
    total_chunks: int = 0
    document_title: str = ""
    limit: int = 50
    offset: int = 0


class DocumentStats(BaseModel):
    """Aggregate statistics over one owner's documents."""

    model_config = ConfigDict(frozen=True)

    total_documents: int = 0
    total_size: int = 0
    total_chunks: int = 0
    average_chunks_per_document: float = 0.0
    status_counts: dict[str, int] = Field(default_factory=dict)
    file_type_counts: dict[str, int] = Field(default_factory=dict)
