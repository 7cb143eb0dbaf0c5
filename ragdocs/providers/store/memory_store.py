"""In-memory document store.

Dict-backed implementation of :class:`IDocumentStore` with the same
semantics as the SQLite store: per-owner content-hash uniqueness, cascade
delete, dimension checks and insertion-order tie-breaks.  Used as the
fast store in tests; nothing survives the process.
"""

from __future__ import annotations

import math
from datetime import datetime

import structlog

from ragdocs.interfaces.document_store import IDocumentStore
from ragdocs.models.document import Chunk, Document, DocumentStats, DocumentStatus, utc_now
from ragdocs.models.results import ScoredChunk
from ragdocs.providers.store.scoring import check_dimension, cosine_similarities, keyword_score
from ragdocs.utils.errors import DataIntegrityError

logger = structlog.get_logger(logger_name=__name__)


class InMemoryDocumentStore(IDocumentStore):
    """Keeps documents and chunks in process memory.

    Parameters
    ----------
    dimension:
        Required embedding length.  ``None`` accepts the first dimension
        seen and enforces it afterwards.
    """

    def __init__(self, dimension: int | None = None) -> None:
        self._dimension = dimension
        # Dicts preserve insertion order, which doubles as the tie-break order.
        self._documents: dict[str, Document] = {}
        self._chunks: dict[str, list[Chunk]] = {}

    async def initialize(self) -> None:
        logger.debug("memory_store_initialized")

    def get_provider_name(self) -> str:
        return "memory_store"

    # -- Documents ----------------------------------------------------------

    async def create_document(self, document: Document) -> tuple[Document, bool]:
        existing = await self.find_document_by_hash(document.owner_id, document.content_hash)
        if existing is not None:
            return existing, False
        self._documents[document.id] = document
        self._chunks[document.id] = []
        return document, True

    async def get_document(self, document_id: str, owner_id: str) -> Document | None:
        document = self._documents.get(document_id)
        if document is None or document.owner_id != owner_id:
            return None
        return document

    async def find_document_by_hash(self, owner_id: str, content_hash: str) -> Document | None:
        for document in self._documents.values():
            if document.owner_id == owner_id and document.content_hash == content_hash:
                return document
        return None

    async def update_document_status(
        self,
        document_id: str,
        status: DocumentStatus,
        chunk_count: int | None = None,
        error_message: str | None = None,
        expected_status: DocumentStatus | None = None,
    ) -> Document | None:
        document = self._documents.get(document_id)
        if document is None:
            return None
        if expected_status is not None and document.status != expected_status:
            return None
        update: dict = {"status": status, "error_message": error_message, "updated_at": utc_now()}
        if chunk_count is not None:
            update["chunk_count"] = chunk_count
        document = document.model_copy(update=update)
        self._documents[document_id] = document
        return document

    async def update_document_title(
        self, document_id: str, owner_id: str, title: str
    ) -> Document | None:
        document = await self.get_document(document_id, owner_id)
        if document is None:
            return None
        document = document.model_copy(update={"title": title, "updated_at": utc_now()})
        self._documents[document_id] = document
        return document

    async def delete_document(self, document_id: str, owner_id: str) -> bool:
        if await self.get_document(document_id, owner_id) is None:
            return False
        del self._documents[document_id]
        self._chunks.pop(document_id, None)
        return True

    async def list_documents(
        self,
        owner_id: str,
        offset: int = 0,
        limit: int = 20,
        status: DocumentStatus | None = None,
        file_type: str | None = None,
        search: str | None = None,
    ) -> tuple[list[Document], int]:
        needle = search.lower() if search else None
        matches = [
            d
            for d in self._documents.values()
            if d.owner_id == owner_id
            and (status is None or d.status == status)
            and (file_type is None or d.file_type == file_type)
            and (
                needle is None
                or needle in d.title.lower()
                or needle in d.original_filename.lower()
            )
        ]
        # Newest first; reversing a stable sort also puts the latest
        # inserted first among equal timestamps.
        ordered = sorted(matches, key=lambda d: d.created_at)
        ordered.reverse()
        return ordered[offset : offset + limit], len(matches)

    async def get_document_stats(self, owner_id: str) -> DocumentStats:
        documents = [d for d in self._documents.values() if d.owner_id == owner_id]
        status_counts: dict[str, int] = {}
        file_type_counts: dict[str, int] = {}
        for d in documents:
            status_counts[d.status.value] = status_counts.get(d.status.value, 0) + 1
            file_type_counts[d.file_type] = file_type_counts.get(d.file_type, 0) + 1
        total_chunks = sum(len(self._chunks.get(d.id, [])) for d in documents)
        return DocumentStats(
            total_documents=len(documents),
            total_size=sum(d.file_size for d in documents),
            total_chunks=total_chunks,
            average_chunks_per_document=(
                round(total_chunks / len(documents), 2) if documents else 0.0
            ),
            status_counts=status_counts,
            file_type_counts=file_type_counts,
        )

    async def find_stale_processing(self, older_than: datetime) -> list[Document]:
        return [
            d
            for d in self._documents.values()
            if d.status == DocumentStatus.PROCESSING and d.updated_at < older_than
        ]

    # -- Chunks -------------------------------------------------------------

    async def insert_chunks(self, chunks: list[Chunk]) -> None:
        for chunk in chunks:
            if chunk.document_id not in self._documents:
                raise DataIntegrityError(f"Chunk references unknown document {chunk.document_id}")
        keys = [(c.document_id, c.chunk_index) for c in chunks]
        taken = {
            (document_id, c.chunk_index)
            for document_id in {k[0] for k in keys}
            for c in self._chunks[document_id]
        }
        if len(set(keys)) != len(keys) or taken.intersection(keys):
            raise DataIntegrityError("Chunk index already used within its document")
        vectors = [c.embedding for c in chunks if c.embedding is not None]
        self._dimension = check_dimension(vectors, self._dimension)
        for chunk in chunks:
            self._chunks[chunk.document_id].append(chunk)
        for document_id in {c.document_id for c in chunks}:
            self._chunks[document_id].sort(key=lambda c: c.chunk_index)

    async def get_chunks(
        self, document_id: str, limit: int | None = None, offset: int = 0
    ) -> list[Chunk]:
        rows = self._chunks.get(document_id, [])
        end = None if limit is None else offset + limit
        return list(rows[offset:end])

    async def count_chunks(self, document_id: str) -> int:
        return len(self._chunks.get(document_id, []))

    async def delete_chunks(self, document_id: str) -> int:
        rows = self._chunks.get(document_id)
        if not rows:
            return 0
        removed = len(rows)
        self._chunks[document_id] = []
        return removed

    async def get_chunks_without_embeddings(self, document_id: str) -> list[Chunk]:
        return [c for c in self._chunks.get(document_id, []) if c.embedding is None]

    async def update_chunk_embeddings(self, embeddings: dict[str, list[float]]) -> int:
        self._dimension = check_dimension(list(embeddings.values()), self._dimension)
        updated = 0
        for rows in self._chunks.values():
            for position, chunk in enumerate(rows):
                vector = embeddings.get(chunk.id)
                if vector is not None:
                    rows[position] = chunk.model_copy(update={"embedding": list(vector)})
                    updated += 1
        return updated

    # -- Query primitives ---------------------------------------------------

    def _searchable_chunks(
        self,
        owner_id: str,
        document_ids: list[str] | None = None,
        exclude_document_ids: list[str] | None = None,
    ) -> list[tuple[Document, Chunk]]:
        include = set(document_ids) if document_ids is not None else None
        exclude = set(exclude_document_ids or [])
        documents = sorted(
            (
                d
                for d in self._documents.values()
                if d.owner_id == owner_id and d.status == DocumentStatus.COMPLETED
            ),
            key=lambda d: d.created_at,
        )
        rows: list[tuple[Document, Chunk]] = []
        for document in documents:
            if include is not None and document.id not in include:
                continue
            if document.id in exclude:
                continue
            rows.extend((document, chunk) for chunk in self._chunks.get(document.id, []))
        return rows

    async def nearest_by_vector(
        self,
        vector: list[float],
        owner_id: str,
        limit: int | None = None,
        min_similarity: float | None = None,
        document_ids: list[str] | None = None,
        exclude_document_ids: list[str] | None = None,
    ) -> list[ScoredChunk]:
        rows = [
            (d, c)
            for d, c in self._searchable_chunks(owner_id, document_ids, exclude_document_ids)
            if c.embedding is not None
        ]
        similarities = cosine_similarities(vector, [c.embedding for _, c in rows])

        scored = [
            ScoredChunk(
                chunk=chunk,
                document_title=document.title,
                document_filename=document.original_filename,
                similarity=similarity,
            )
            for (document, chunk), similarity in zip(rows, similarities)
            if not math.isnan(similarity)
            and (min_similarity is None or similarity >= min_similarity)
        ]
        scored.sort(key=lambda s: s.similarity, reverse=True)
        return scored if limit is None else scored[:limit]

    async def rank_by_text(
        self,
        terms: list[str],
        owner_id: str,
        chunk_ids: list[str] | None = None,
    ) -> dict[str, float]:
        wanted = set(chunk_ids) if chunk_ids is not None else None
        scores: dict[str, float] = {}
        for _, chunk in self._searchable_chunks(owner_id):
            if wanted is not None and chunk.id not in wanted:
                continue
            score = keyword_score(chunk.content, terms)
            if score > 0:
                scores[chunk.id] = score
        return scores
