"""Document store adapters.

- **sqlite_store** -- aiosqlite-backed production store
- **memory_store** -- dict-backed store for tests and throwaway runs
- **scoring** -- cosine and keyword scoring shared by both
"""

from ragdocs.providers.store.memory_store import InMemoryDocumentStore
from ragdocs.providers.store.sqlite_store import SQLiteDocumentStore

__all__ = ["InMemoryDocumentStore", "SQLiteDocumentStore"]
