"""Shared pytest fixtures for the ragdocs test suite."""

from __future__ import annotations

import re
from pathlib import Path
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio

from ragdocs.interfaces.embedding_provider import IEmbeddingProvider
from ragdocs.models.options import ChunkOptions
from ragdocs.models.results import EmbeddingResponse
from ragdocs.providers.store.memory_store import InMemoryDocumentStore
from ragdocs.providers.store.sqlite_store import SQLiteDocumentStore
from ragdocs.services.chunking.chunker import TextChunker
from ragdocs.services.document_service import DocumentService
from ragdocs.services.embedding_service import EmbeddingService
from ragdocs.services.extraction.extractor import TextExtractor
from ragdocs.services.retrieval.search_service import SearchService
from ragdocs.utils.retry import RetryPolicy

# ---------------------------------------------------------------------------
# Deterministic embeddings
# ---------------------------------------------------------------------------

# Each topic is one vector component; a word counts toward a topic when it
# starts with the topic root.  The trailing constant keeps every vector
# non-zero, so text with no topic words still has a defined similarity.
TOPICS: tuple[str, ...] = ("python", "finance", "cooking", "music", "travel")

_WORD = re.compile(r"\w+")


def topic_vector(text: str) -> list[float]:
    """Return the bag-of-topics vector for *text*."""
    words = _WORD.findall(text.lower())
    vector = [float(sum(1 for w in words if w.startswith(topic))) for topic in TOPICS]
    vector.append(0.1)
    return vector


def topic_paragraph(topic: str, sentences: int = 4) -> str:
    """Return a paragraph of at least 100 characters about one topic."""
    return " ".join(
        f"Sentence {i} talks about {topic} and nothing else at all." for i in range(sentences)
    )


class FakeEmbeddingProvider(IEmbeddingProvider):
    """In-process embedding provider producing topic vectors.

    Records every call in :attr:`calls`.  The first ``fail_times`` calls
    raise *error* instead of embedding.
    """

    def __init__(self, fail_times: int = 0, error: Exception | None = None) -> None:
        self.calls: list[list[str]] = []
        self._failures_left = fail_times
        self._error = error

    async def embed(self, texts: list[str], model: str | None = None) -> EmbeddingResponse:
        self.calls.append(list(texts))
        if self._failures_left > 0:
            self._failures_left -= 1
            assert self._error is not None
            raise self._error
        return EmbeddingResponse(
            vectors=[topic_vector(t) for t in texts],
            total_tokens=sum(len(t.split()) for t in texts),
            model=model or self.get_default_model(),
        )

    def get_dimension(self, model: str | None = None) -> int:
        return len(TOPICS) + 1

    def get_default_model(self) -> str:
        return "text-embedding-ada-002"

    def get_provider_name(self) -> str:
        return "fake_embedding"

    def is_available(self) -> bool:
        return True


# ---------------------------------------------------------------------------
# Component fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def project_root() -> Path:
    """Return the project root directory."""
    return Path(__file__).parent.parent


@pytest.fixture
def fake_provider() -> FakeEmbeddingProvider:
    return FakeEmbeddingProvider()


@pytest.fixture
def no_sleep() -> AsyncMock:
    """Replacement for ``asyncio.sleep`` that returns immediately."""
    return AsyncMock(return_value=None)


@pytest.fixture
def embedding_service(fake_provider: FakeEmbeddingProvider, no_sleep: AsyncMock) -> EmbeddingService:
    return EmbeddingService(
        provider=fake_provider,
        retry_policy=RetryPolicy(max_attempts=3, base_delay=0.0, sleep=no_sleep),
        batch_pause=0.0,
        sleep=no_sleep,
    )


@pytest.fixture
def memory_store() -> InMemoryDocumentStore:
    return InMemoryDocumentStore()


@pytest_asyncio.fixture
async def sqlite_store(tmp_path: Path) -> SQLiteDocumentStore:
    """A file-backed SQLite store in a per-test temporary directory."""
    store = SQLiteDocumentStore(db_path=tmp_path / "ragdocs.db")
    await store.initialize()
    return store


@pytest.fixture
def chunker() -> TextChunker:
    return TextChunker(default_options=ChunkOptions())


@pytest.fixture
def extractor() -> TextExtractor:
    return TextExtractor()


@pytest.fixture
def document_service(
    extractor: TextExtractor,
    chunker: TextChunker,
    embedding_service: EmbeddingService,
    memory_store: InMemoryDocumentStore,
) -> DocumentService:
    return DocumentService(
        extractor=extractor,
        chunker=chunker,
        embedding_service=embedding_service,
        store=memory_store,
    )


@pytest.fixture
def search_service(
    memory_store: InMemoryDocumentStore, embedding_service: EmbeddingService
) -> SearchService:
    return SearchService(store=memory_store, embedding_service=embedding_service)
