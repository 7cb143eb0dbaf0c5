"""Abstract base class for document and chunk persistence.

Beyond plain CRUD the store exposes two query primitives the retrieval
layer is built on:

* :meth:`IDocumentStore.nearest_by_vector` -- embedded chunks of an
  owner's completed documents ordered by cosine similarity to a vector.
* :meth:`IDocumentStore.rank_by_text` -- a keyword relevance score per
  chunk for a list of query terms.

Blending and ranking happen above this interface, so the search service
behaves identically over SQLite or the in-memory store.

Ordering contract: whenever two rows compare equal, they come back in
insertion order -- parent document ``created_at`` first, then
``chunk_index``.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime

from ragdocs.models.document import Chunk, Document, DocumentStats, DocumentStatus
from ragdocs.models.results import ScoredChunk


# Concrete implementations:
#   SQLiteDocumentStore  — aiosqlite, file-backed (production)
#   InMemoryDocumentStore — dict-backed (tests, CLI dry runs)
# Located in: ragdocs/providers/store/
class IDocumentStore(ABC):
    """Contract for persisting documents, chunks and embeddings."""

    @abstractmethod
    async def initialize(self) -> None:
        """Prepare the backing storage (create tables, indices)."""

    # -- Documents ----------------------------------------------------------

    @abstractmethod
    async def create_document(self, document: Document) -> tuple[Document, bool]:
        """Insert *document* unless its ``(owner_id, content_hash)`` already exists.

        Returns
        -------
        tuple[Document, bool]
            The stored row and ``True`` when it was created, or the
            existing row and ``False`` when the content hash was already
            present for that owner.
        """

    @abstractmethod
    async def get_document(self, document_id: str, owner_id: str) -> Document | None:
        """Return the document if it exists and belongs to *owner_id*."""

    @abstractmethod
    async def find_document_by_hash(self, owner_id: str, content_hash: str) -> Document | None:
        """Return the owner's document with this content hash, if any."""

    @abstractmethod
    async def update_document_status(
        self,
        document_id: str,
        status: DocumentStatus,
        chunk_count: int | None = None,
        error_message: str | None = None,
        expected_status: DocumentStatus | None = None,
    ) -> Document | None:
        """Set the status (and optionally chunk count / error) and bump ``updated_at``.

        With *expected_status* the write only happens while the document is
        still in that status.  Returns ``None`` when the document is missing
        or the expected status no longer holds.
        """

    @abstractmethod
    async def update_document_title(
        self, document_id: str, owner_id: str, title: str
    ) -> Document | None:
        """Rename an owned document.  Returns ``None`` when not found."""

    @abstractmethod
    async def delete_document(self, document_id: str, owner_id: str) -> bool:
        """Delete an owned document and all of its chunks.  Returns ``False`` when not found."""

    @abstractmethod
    async def list_documents(
        self,
        owner_id: str,
        offset: int = 0,
        limit: int = 20,
        status: DocumentStatus | None = None,
        file_type: str | None = None,
        search: str | None = None,
    ) -> tuple[list[Document], int]:
        """Return one page of the owner's documents (newest first) and the total match count.

        *search* matches title or original filename, case-insensitively.
        """

    @abstractmethod
    async def get_document_stats(self, owner_id: str) -> DocumentStats:
        """Aggregate counts and sizes over the owner's documents."""

    @abstractmethod
    async def find_stale_processing(self, older_than: datetime) -> list[Document]:
        """Return documents stuck in ``processing`` since before *older_than*."""

    # -- Chunks -------------------------------------------------------------

    @abstractmethod
    async def insert_chunks(self, chunks: list[Chunk]) -> None:
        """Insert all *chunks* atomically.

        Raises
        ------
        ragdocs.utils.errors.DataIntegrityError
            If any embedding's length differs from the store's dimension.
        """

    @abstractmethod
    async def get_chunks(
        self, document_id: str, limit: int | None = None, offset: int = 0
    ) -> list[Chunk]:
        """Return a document's chunks ordered by ``chunk_index``."""

    @abstractmethod
    async def count_chunks(self, document_id: str) -> int:
        """Return the number of chunk rows for a document."""

    @abstractmethod
    async def delete_chunks(self, document_id: str) -> int:
        """Delete all chunks of a document, keeping the document row.  Returns rows removed."""

    @abstractmethod
    async def get_chunks_without_embeddings(self, document_id: str) -> list[Chunk]:
        """Return a document's chunks whose embedding is still null."""

    @abstractmethod
    async def update_chunk_embeddings(self, embeddings: dict[str, list[float]]) -> int:
        """Assign vectors by chunk id.  Returns the number of rows updated."""

    # -- Query primitives ---------------------------------------------------

    @abstractmethod
    async def nearest_by_vector(
        self,
        vector: list[float],
        owner_id: str,
        limit: int | None = None,
        min_similarity: float | None = None,
        document_ids: list[str] | None = None,
        exclude_document_ids: list[str] | None = None,
    ) -> list[ScoredChunk]:
        """Rank embedded chunks of the owner's completed documents by similarity.

        Similarity is ``1 - cosine_distance``.  Results are ordered by
        similarity descending, ties in insertion order, and cut to *limit*
        when given.

        Raises
        ------
        ragdocs.utils.errors.DataIntegrityError
            If a stored vector's dimension differs from *vector*'s.
        """

    @abstractmethod
    async def rank_by_text(
        self,
        terms: list[str],
        owner_id: str,
        chunk_ids: list[str] | None = None,
    ) -> dict[str, float]:
        """Score chunk text against *terms*; unmatched chunks are omitted (score 0).

        Parameters
        ----------
        terms:
            Lower-cased query keywords.  Each term matches words that start
            with it.
        owner_id:
            Only chunks of this owner's completed documents are scored.
        chunk_ids:
            Restrict scoring to these chunks.
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a short identifier, e.g. ``"sqlite_store"``."""
