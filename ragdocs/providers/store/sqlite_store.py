"""SQLite-backed document and chunk persistence.

# ─── ARCHITECTURE ROLE ───────────────────────────────────────────────
#
# Layer: Providers (concrete adapter implementing IDocumentStore).
# Database: ``data/ragdocs.db`` — documents, chunks, embeddings.
#
# Schema notes:
#   - UNIQUE(owner_id, content_hash) on documents is the dedup guard; a
#     concurrent insert that trips it gets the existing row back.
#   - chunks.document_id has ON DELETE CASCADE (foreign keys are enabled
#     on every connection) and UNIQUE(document_id, chunk_index).
#   - Embeddings are stored as JSON arrays; similarity and keyword scores
#     are computed in Python by ``scoring.py`` so both stores rank alike.
#
# Uses ``aiosqlite`` for async I/O, one short-lived connection per
# operation, and ``PRAGMA journal_mode=WAL`` so searches never wait on an
# ingesting writer.
# ──────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

import json
import math
from collections.abc import Iterator
from contextlib import asynccontextmanager
from datetime import datetime
from pathlib import Path
from typing import Any

import aiosqlite
import structlog

from ragdocs.interfaces.document_store import IDocumentStore
from ragdocs.models.document import Chunk, Document, DocumentStats, DocumentStatus, utc_now
from ragdocs.models.results import ScoredChunk
from ragdocs.providers.store.scoring import check_dimension, cosine_similarities, keyword_score
from ragdocs.utils.errors import DataIntegrityError

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_DB_PATH = Path("data/ragdocs.db")

# SQLite's bound-parameter limit is 999 on older builds.
_IN_CLAUSE_BATCH = 500

# ── Schema DDL ────────────────────────────────────────────────────────

_CREATE_DOCUMENTS_TABLE = """\
CREATE TABLE IF NOT EXISTS documents (
    id                TEXT    PRIMARY KEY,
    owner_id          TEXT    NOT NULL,
    title             TEXT    NOT NULL,
    original_filename TEXT    NOT NULL,
    storage_path      TEXT,
    file_type         TEXT    NOT NULL,
    file_size         INTEGER NOT NULL DEFAULT 0,
    content_hash      TEXT    NOT NULL,
    status            TEXT    NOT NULL DEFAULT 'pending',
    chunk_count       INTEGER NOT NULL DEFAULT 0,
    error_message     TEXT,
    created_at        TEXT    NOT NULL,
    updated_at        TEXT    NOT NULL,
    UNIQUE(owner_id, content_hash)
);
"""

_CREATE_CHUNKS_TABLE = """\
CREATE TABLE IF NOT EXISTS chunks (
    id           TEXT    PRIMARY KEY,
    document_id  TEXT    NOT NULL REFERENCES documents(id) ON DELETE CASCADE,
    chunk_index  INTEGER NOT NULL,
    content      TEXT    NOT NULL,
    token_count  INTEGER NOT NULL DEFAULT 0,
    embedding    TEXT,
    metadata     TEXT    NOT NULL DEFAULT '{}',
    created_at   TEXT    NOT NULL,
    UNIQUE(document_id, chunk_index)
);
"""

_CREATE_INDICES = [
    "CREATE INDEX IF NOT EXISTS idx_documents_owner ON documents(owner_id, created_at);",
    "CREATE INDEX IF NOT EXISTS idx_documents_status ON documents(status, updated_at);",
    "CREATE INDEX IF NOT EXISTS idx_chunks_document ON chunks(document_id, chunk_index);",
]

# ── DML ───────────────────────────────────────────────────────────────

_DOCUMENT_COLUMNS = (
    "id, owner_id, title, original_filename, storage_path, file_type, file_size, "
    "content_hash, status, chunk_count, error_message, created_at, updated_at"
)

_CHUNK_COLUMNS = "id, document_id, chunk_index, content, token_count, embedding, metadata, created_at"

_INSERT_DOCUMENT = f"""\
INSERT INTO documents ({_DOCUMENT_COLUMNS})
VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?);
"""

_SELECT_DOCUMENT = f"SELECT {_DOCUMENT_COLUMNS} FROM documents WHERE id = ? AND owner_id = ?;"

_SELECT_DOCUMENT_ANY_OWNER = f"SELECT {_DOCUMENT_COLUMNS} FROM documents WHERE id = ?;"

_SELECT_BY_HASH = (
    f"SELECT {_DOCUMENT_COLUMNS} FROM documents WHERE owner_id = ? AND content_hash = ?;"
)

_UPDATE_STATUS = """\
UPDATE documents
SET status = ?, error_message = ?, chunk_count = COALESCE(?, chunk_count), updated_at = ?
WHERE id = ? AND (? IS NULL OR status = ?);
"""

_UPDATE_TITLE = "UPDATE documents SET title = ?, updated_at = ? WHERE id = ? AND owner_id = ?;"

_DELETE_CHUNKS = "DELETE FROM chunks WHERE document_id = ?;"

_DELETE_DOCUMENT = "DELETE FROM documents WHERE id = ? AND owner_id = ?;"

_INSERT_CHUNK = f"""\
INSERT INTO chunks ({_CHUNK_COLUMNS})
VALUES (?, ?, ?, ?, ?, ?, ?, ?);
"""

_UPDATE_EMBEDDING = "UPDATE chunks SET embedding = ? WHERE id = ?;"

_SELECT_STALE = f"""\
SELECT {_DOCUMENT_COLUMNS} FROM documents
WHERE status = 'processing' AND updated_at < ?
ORDER BY updated_at;
"""

# Chunks of an owner's completed documents in insertion order.
_SEARCHABLE_CHUNKS = """\
SELECT c.id, c.document_id, c.chunk_index, c.content, c.token_count, c.embedding,
       c.metadata, c.created_at, d.title, d.original_filename
FROM chunks c
JOIN documents d ON d.id = c.document_id
WHERE d.owner_id = ? AND d.status = 'completed'
"""

_SEARCHABLE_ORDER = " ORDER BY d.created_at, d.rowid, c.chunk_index"


def _ts(value: datetime) -> str:
    # Fixed-width timestamps keep string comparison chronological.
    return value.isoformat(timespec="microseconds")


def _row_to_document(row: aiosqlite.Row) -> Document:
    return Document(
        id=row["id"],
        owner_id=row["owner_id"],
        title=row["title"],
        original_filename=row["original_filename"],
        storage_path=row["storage_path"],
        file_type=row["file_type"],
        file_size=row["file_size"],
        content_hash=row["content_hash"],
        status=DocumentStatus(row["status"]),
        chunk_count=row["chunk_count"],
        error_message=row["error_message"],
        created_at=datetime.fromisoformat(row["created_at"]),
        updated_at=datetime.fromisoformat(row["updated_at"]),
    )


def _row_to_chunk(row: aiosqlite.Row) -> Chunk:
    embedding = row["embedding"]
    return Chunk(
        id=row["id"],
        document_id=row["document_id"],
        chunk_index=row["chunk_index"],
        content=row["content"],
        token_count=row["token_count"],
        embedding=json.loads(embedding) if embedding is not None else None,
        metadata=json.loads(row["metadata"] or "{}"),
        created_at=datetime.fromisoformat(row["created_at"]),
    )


def _batched(items: list[str], size: int = _IN_CLAUSE_BATCH) -> Iterator[list[str]]:
    for start in range(0, len(items), size):
        yield items[start : start + size]


def _placeholders(count: int) -> str:
    return ", ".join("?" for _ in range(count))


class SQLiteDocumentStore(IDocumentStore):
    """SQLite persistence for documents, chunks and embeddings.

    Parameters
    ----------
    db_path:
        Database file; parent directories are created on initialize.
    dimension:
        Required embedding length.  ``None`` accepts whatever dimension the
        first embedded batch has and enforces it afterwards.
    """

    def __init__(self, db_path: str | Path = _DEFAULT_DB_PATH, dimension: int | None = None) -> None:
        self._db_path = Path(db_path)
        self._dimension = dimension

    @asynccontextmanager
    async def _connect(self):  # noqa: ANN202
        async with aiosqlite.connect(str(self._db_path)) as db:
            db.row_factory = aiosqlite.Row
            await db.execute("PRAGMA foreign_keys=ON;")
            yield db

    async def initialize(self) -> None:
        """Create tables and indices if they don't exist."""
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        async with self._connect() as db:
            await db.execute("PRAGMA journal_mode=WAL;")
            await db.execute(_CREATE_DOCUMENTS_TABLE)
            await db.execute(_CREATE_CHUNKS_TABLE)
            for idx_sql in _CREATE_INDICES:
                await db.execute(idx_sql)
            await db.commit()
        logger.info("document_store_initialized", path=str(self._db_path))

    def get_provider_name(self) -> str:
        return "sqlite_store"

    # ── Documents ──────────────────────────────────────────────────────

    async def create_document(self, document: Document) -> tuple[Document, bool]:
        async with self._connect() as db:
            try:
                await db.execute(_INSERT_DOCUMENT, (
                    document.id,
                    document.owner_id,
                    document.title,
                    document.original_filename,
                    document.storage_path,
                    document.file_type,
                    document.file_size,
                    document.content_hash,
                    document.status.value,
                    document.chunk_count,
                    document.error_message,
                    _ts(document.created_at),
                    _ts(document.updated_at),
                ))
                await db.commit()
            except aiosqlite.IntegrityError:
                await db.rollback()
                cursor = await db.execute(_SELECT_BY_HASH, (document.owner_id, document.content_hash))
                row = await cursor.fetchone()
                if row is None:
                    raise
                logger.info(
                    "document_insert_deduplicated",
                    owner_id=document.owner_id,
                    existing_id=row["id"],
                )
                return _row_to_document(row), False
        return document, True

    async def get_document(self, document_id: str, owner_id: str) -> Document | None:
        async with self._connect() as db:
            cursor = await db.execute(_SELECT_DOCUMENT, (document_id, owner_id))
            row = await cursor.fetchone()
        return _row_to_document(row) if row else None

    async def find_document_by_hash(self, owner_id: str, content_hash: str) -> Document | None:
        async with self._connect() as db:
            cursor = await db.execute(_SELECT_BY_HASH, (owner_id, content_hash))
            row = await cursor.fetchone()
        return _row_to_document(row) if row else None

    async def update_document_status(
        self,
        document_id: str,
        status: DocumentStatus,
        chunk_count: int | None = None,
        error_message: str | None = None,
        expected_status: DocumentStatus | None = None,
    ) -> Document | None:
        expected = expected_status.value if expected_status is not None else None
        async with self._connect() as db:
            cursor = await db.execute(
                _UPDATE_STATUS,
                (
                    status.value,
                    error_message,
                    chunk_count,
                    _ts(utc_now()),
                    document_id,
                    expected,
                    expected,
                ),
            )
            await db.commit()
            if cursor.rowcount == 0:
                return None
            cursor = await db.execute(_SELECT_DOCUMENT_ANY_OWNER, (document_id,))
            row = await cursor.fetchone()
        return _row_to_document(row) if row else None

    async def update_document_title(
        self, document_id: str, owner_id: str, title: str
    ) -> Document | None:
        async with self._connect() as db:
            cursor = await db.execute(_UPDATE_TITLE, (title, _ts(utc_now()), document_id, owner_id))
            await db.commit()
            if cursor.rowcount == 0:
                return None
            cursor = await db.execute(_SELECT_DOCUMENT, (document_id, owner_id))
            row = await cursor.fetchone()
        return _row_to_document(row) if row else None

    async def delete_document(self, document_id: str, owner_id: str) -> bool:
        async with self._connect() as db:
            cursor = await db.execute(_SELECT_DOCUMENT, (document_id, owner_id))
            if await cursor.fetchone() is None:
                return False
            await db.execute(_DELETE_CHUNKS, (document_id,))
            await db.execute(_DELETE_DOCUMENT, (document_id, owner_id))
            await db.commit()
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
        where = ["owner_id = ?"]
        params: list[Any] = [owner_id]
        if status is not None:
            where.append("status = ?")
            params.append(status.value)
        if file_type:
            where.append("file_type = ?")
            params.append(file_type)
        if search:
            where.append("(LOWER(title) LIKE ? OR LOWER(original_filename) LIKE ?)")
            pattern = f"%{search.lower()}%"
            params.extend([pattern, pattern])
        clause = " AND ".join(where)

        async with self._connect() as db:
            cursor = await db.execute(f"SELECT COUNT(*) FROM documents WHERE {clause};", params)
            total = (await cursor.fetchone())[0]
            cursor = await db.execute(
                f"SELECT {_DOCUMENT_COLUMNS} FROM documents WHERE {clause} "
                "ORDER BY created_at DESC, rowid DESC LIMIT ? OFFSET ?;",
                [*params, limit, offset],
            )
            rows = await cursor.fetchall()
        return [_row_to_document(r) for r in rows], total

    async def get_document_stats(self, owner_id: str) -> DocumentStats:
        async with self._connect() as db:
            cursor = await db.execute(
                "SELECT COUNT(*), COALESCE(SUM(file_size), 0) FROM documents WHERE owner_id = ?;",
                (owner_id,),
            )
            total_documents, total_size = await cursor.fetchone()
            cursor = await db.execute(
                "SELECT COUNT(*) FROM chunks c JOIN documents d ON d.id = c.document_id "
                "WHERE d.owner_id = ?;",
                (owner_id,),
            )
            total_chunks = (await cursor.fetchone())[0]
            cursor = await db.execute(
                "SELECT status, COUNT(*) FROM documents WHERE owner_id = ? GROUP BY status;",
                (owner_id,),
            )
            status_counts = {row[0]: row[1] for row in await cursor.fetchall()}
            cursor = await db.execute(
                "SELECT file_type, COUNT(*) FROM documents WHERE owner_id = ? GROUP BY file_type;",
                (owner_id,),
            )
            file_type_counts = {row[0]: row[1] for row in await cursor.fetchall()}

        return DocumentStats(
            total_documents=total_documents,
            total_size=total_size,
            total_chunks=total_chunks,
            average_chunks_per_document=(
                round(total_chunks / total_documents, 2) if total_documents else 0.0
            ),
            status_counts=status_counts,
            file_type_counts=file_type_counts,
        )

    async def find_stale_processing(self, older_than: datetime) -> list[Document]:
        async with self._connect() as db:
            cursor = await db.execute(_SELECT_STALE, (_ts(older_than),))
            rows = await cursor.fetchall()
        return [_row_to_document(r) for r in rows]

    # ── Chunks ─────────────────────────────────────────────────────────

    async def insert_chunks(self, chunks: list[Chunk]) -> None:
        if not chunks:
            return
        vectors = [c.embedding for c in chunks if c.embedding is not None]
        self._dimension = check_dimension(vectors, self._dimension)

        rows = [
            (
                c.id,
                c.document_id,
                c.chunk_index,
                c.content,
                c.token_count,
                json.dumps(c.embedding) if c.embedding is not None else None,
                json.dumps(c.metadata),
                _ts(c.created_at),
            )
            for c in chunks
        ]
        async with self._connect() as db:
            try:
                await db.executemany(_INSERT_CHUNK, rows)
                await db.commit()
            except aiosqlite.IntegrityError as exc:
                await db.rollback()
                raise DataIntegrityError(
                    f"Chunk insert violated a constraint: {exc}",
                    provider_name=self.get_provider_name(),
                ) from exc
        logger.debug("chunks_inserted", count=len(chunks), document_id=chunks[0].document_id)

    async def get_chunks(
        self, document_id: str, limit: int | None = None, offset: int = 0
    ) -> list[Chunk]:
        async with self._connect() as db:
            cursor = await db.execute(
                f"SELECT {_CHUNK_COLUMNS} FROM chunks WHERE document_id = ? "
                "ORDER BY chunk_index LIMIT ? OFFSET ?;",
                (document_id, -1 if limit is None else limit, offset),
            )
            rows = await cursor.fetchall()
        return [_row_to_chunk(r) for r in rows]

    async def count_chunks(self, document_id: str) -> int:
        async with self._connect() as db:
            cursor = await db.execute(
                "SELECT COUNT(*) FROM chunks WHERE document_id = ?;", (document_id,)
            )
            return (await cursor.fetchone())[0]

    async def delete_chunks(self, document_id: str) -> int:
        async with self._connect() as db:
            cursor = await db.execute(_DELETE_CHUNKS, (document_id,))
            await db.commit()
            return cursor.rowcount

    async def get_chunks_without_embeddings(self, document_id: str) -> list[Chunk]:
        async with self._connect() as db:
            cursor = await db.execute(
                f"SELECT {_CHUNK_COLUMNS} FROM chunks "
                "WHERE document_id = ? AND embedding IS NULL ORDER BY chunk_index;",
                (document_id,),
            )
            rows = await cursor.fetchall()
        return [_row_to_chunk(r) for r in rows]

    async def update_chunk_embeddings(self, embeddings: dict[str, list[float]]) -> int:
        if not embeddings:
            return 0
        self._dimension = check_dimension(list(embeddings.values()), self._dimension)
        async with self._connect() as db:
            updated = 0
            for chunk_id, vector in embeddings.items():
                cursor = await db.execute(_UPDATE_EMBEDDING, (json.dumps(vector), chunk_id))
                updated += cursor.rowcount
            await db.commit()
        return updated

    # ── Query primitives ───────────────────────────────────────────────

    async def nearest_by_vector(
        self,
        vector: list[float],
        owner_id: str,
        limit: int | None = None,
        min_similarity: float | None = None,
        document_ids: list[str] | None = None,
        exclude_document_ids: list[str] | None = None,
    ) -> list[ScoredChunk]:
        if document_ids is not None and not document_ids:
            return []

        # Document filters are applied here rather than as IN clauses so
        # arbitrarily long id lists never hit SQLite's bound-parameter limit.
        include = set(document_ids) if document_ids is not None else None
        exclude = set(exclude_document_ids or [])

        async with self._connect() as db:
            cursor = await db.execute(
                _SEARCHABLE_CHUNKS + " AND c.embedding IS NOT NULL" + _SEARCHABLE_ORDER,
                (owner_id,),
            )
            rows = [
                row
                for row in await cursor.fetchall()
                if (include is None or row["document_id"] in include)
                and row["document_id"] not in exclude
            ]

        chunks = [_row_to_chunk(r) for r in rows]
        similarities = cosine_similarities(vector, [c.embedding for c in chunks])

        scored = [
            ScoredChunk(
                chunk=chunk,
                document_title=row["title"],
                document_filename=row["original_filename"],
                similarity=similarity,
            )
            for row, chunk, similarity in zip(rows, chunks, similarities)
            if not math.isnan(similarity)
            and (min_similarity is None or similarity >= min_similarity)
        ]
        # Stable: equal similarities keep insertion order.
        scored.sort(key=lambda s: s.similarity, reverse=True)
        return scored if limit is None else scored[:limit]

    async def rank_by_text(
        self,
        terms: list[str],
        owner_id: str,
        chunk_ids: list[str] | None = None,
    ) -> dict[str, float]:
        if not terms or (chunk_ids is not None and not chunk_ids):
            return {}

        rows: list[aiosqlite.Row] = []
        async with self._connect() as db:
            if chunk_ids is None:
                cursor = await db.execute(_SEARCHABLE_CHUNKS + _SEARCHABLE_ORDER, (owner_id,))
                rows.extend(await cursor.fetchall())
            else:
                for batch in _batched(chunk_ids):
                    cursor = await db.execute(
                        _SEARCHABLE_CHUNKS
                        + f" AND c.id IN ({_placeholders(len(batch))})"
                        + _SEARCHABLE_ORDER,
                        [owner_id, *batch],
                    )
                    rows.extend(await cursor.fetchall())

        scores: dict[str, float] = {}
        for row in rows:
            score = keyword_score(row["content"], terms)
            if score > 0:
                scores[row["id"]] = score
        return scores
