"""Unit tests for SearchService — semantic, hybrid, context and similar documents.

Chunks are seeded straight into the in-memory store with topic vectors
from the fake embedding provider, so similarities are predictable:
a chunk mentioning only "python" scores ~1.0 against the query "python",
one mentioning "python" and "finance" once each scores ~0.71, and chunks
about other topics score near 0.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, patch

import pytest
import pytest_asyncio

from ragdocs.models.document import Chunk, Document, DocumentStatus
from ragdocs.models.options import HybridSearchOptions, SearchOptions
from ragdocs.providers.store.memory_store import InMemoryDocumentStore
from ragdocs.services.retrieval.search_service import SearchService
from ragdocs.utils.errors import EmptyInputError, NotFoundError, ValidationError
from tests.conftest import FakeEmbeddingProvider, topic_vector

_BASE_TIME = datetime(2026, 3, 1, tzinfo=timezone.utc)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


async def _add_document(
    store: InMemoryDocumentStore,
    doc_id: str,
    contents: list[str],
    owner: str = "alice",
    minutes: int = 0,
    embed: bool = True,
    status: DocumentStatus = DocumentStatus.COMPLETED,
) -> None:
    created = _BASE_TIME + timedelta(minutes=minutes)
    await store.create_document(
        Document(
            id=doc_id,
            owner_id=owner,
            title=f"{doc_id.title()} notes",
            original_filename=f"{doc_id}.md",
            file_type="text/markdown",
            content_hash=f"{owner}-{doc_id}",
            status=status,
            chunk_count=len(contents),
            created_at=created,
            updated_at=created,
        )
    )
    await store.insert_chunks(
        [
            Chunk(
                id=f"{doc_id}-c{i}",
                document_id=doc_id,
                chunk_index=i,
                content=text,
                token_count=len(text) // 4,
                embedding=topic_vector(text) if embed else None,
                metadata={"chunk_type": "paragraph"},
            )
            for i, text in enumerate(contents)
        ]
    )


@pytest_asyncio.fixture
async def seeded_store(memory_store: InMemoryDocumentStore) -> InMemoryDocumentStore:
    await _add_document(
        memory_store,
        "py",
        [
            "python python python basics",
            "python packaging python tools",
            "finance of python shops",
        ],
        minutes=0,
    )
    await _add_document(
        memory_store, "fin", ["finance finance budget", "finance markets"], minutes=1
    )
    await _add_document(
        memory_store, "cook", ["cooking pasta cooking", "music while cooking"], minutes=2
    )
    await _add_document(memory_store, "bobs", ["python for bob"], owner="bob", minutes=3)
    await _add_document(
        memory_store,
        "draft",
        ["python draft"],
        minutes=4,
        status=DocumentStatus.PROCESSING,
    )
    return memory_store


def _ids(response) -> list[str]:
    return [r.chunk_id for r in response.results]


# ---------------------------------------------------------------------------
# Semantic search
# ---------------------------------------------------------------------------


class TestSemanticSearch:
    """Vector-only ranking."""

    @pytest.mark.asyncio
    async def test_results_sorted_and_above_threshold(
        self, seeded_store: InMemoryDocumentStore, search_service: SearchService
    ) -> None:
        response = await search_service.semantic_search("python", "alice")

        assert set(_ids(response)) == {"py-c0", "py-c1", "py-c2"}
        scores = [r.similarity_score for r in response.results]
        assert scores == sorted(scores, reverse=True)
        assert all(s >= 0.7 for s in scores)
        assert response.total_results == 3
        assert response.search_type == "semantic"
        assert response.similarity_threshold == 0.7
        assert response.query == "python"

    @pytest.mark.asyncio
    async def test_result_fields(
        self, seeded_store: InMemoryDocumentStore, search_service: SearchService
    ) -> None:
        response = await search_service.semantic_search("python", "alice")
        top = next(r for r in response.results if r.chunk_id == "py-c2")

        assert top.document_id == "py"
        assert top.document_title == "Py notes"
        assert top.document_filename == "py.md"
        assert top.chunk_index == 2
        assert top.content == "finance of python shops"
        assert top.keyword_score is None
        assert top.semantic_score == top.similarity_score
        assert top.metadata == {"chunk_type": "paragraph"}

    @pytest.mark.asyncio
    async def test_threshold_and_limit(
        self, seeded_store: InMemoryDocumentStore, search_service: SearchService
    ) -> None:
        strict = await search_service.semantic_search(
            "python", "alice", SearchOptions(threshold=0.9)
        )
        assert set(_ids(strict)) == {"py-c0", "py-c1"}

        limited = await search_service.semantic_search("python", "alice", SearchOptions(limit=1))
        assert limited.total_results == 1

    @pytest.mark.asyncio
    async def test_owner_and_status_scoping(
        self, seeded_store: InMemoryDocumentStore, search_service: SearchService
    ) -> None:
        alice = await search_service.semantic_search("python", "alice", SearchOptions(threshold=0.0))
        assert not {"bobs-c0", "draft-c0"} & set(_ids(alice))

        bob = await search_service.semantic_search("python", "bob")
        assert _ids(bob) == ["bobs-c0"]

    @pytest.mark.asyncio
    async def test_document_filters_and_metadata_toggle(
        self, seeded_store: InMemoryDocumentStore, search_service: SearchService
    ) -> None:
        excluded = await search_service.semantic_search(
            "python", "alice", SearchOptions(exclude_document_ids=["py"])
        )
        assert excluded.results == []

        only_fin = await search_service.semantic_search(
            "finance",
            "alice",
            SearchOptions(filter_document_ids=["fin"], include_metadata=False),
        )
        assert {r.document_id for r in only_fin.results} == {"fin"}
        assert all(r.metadata == {} for r in only_fin.results)

    @pytest.mark.asyncio
    async def test_no_documents_gives_empty_response(self, search_service: SearchService) -> None:
        response = await search_service.semantic_search("python", "alice")
        assert response.results == []
        assert response.total_results == 0

    @pytest.mark.asyncio
    async def test_blank_query_rejected_before_embedding(
        self, search_service: SearchService, fake_provider: FakeEmbeddingProvider
    ) -> None:
        with pytest.raises(EmptyInputError):
            await search_service.semantic_search("   ", "alice")
        with pytest.raises(EmptyInputError):
            await search_service.hybrid_search("", "alice")
        assert fake_provider.calls == []


# ---------------------------------------------------------------------------
# Hybrid search
# ---------------------------------------------------------------------------


class TestHybridSearch:
    """Blended semantic + keyword ranking."""

    @pytest.mark.asyncio
    async def test_keyword_matches_lift_results(
        self, seeded_store: InMemoryDocumentStore, search_service: SearchService
    ) -> None:
        response = await search_service.hybrid_search("python finance", "alice")

        assert response.search_type == "hybrid"
        assert response.similarity_threshold == 0.5
        assert set(_ids(response)) == {"py-c0", "py-c1", "py-c2", "fin-c0", "fin-c1"}
        # Both terms plus perfect similarity, then three "python" mentions.
        assert _ids(response)[:2] == ["py-c2", "py-c0"]
        assert _ids(response)[-1] == "fin-c1"
        scores = [r.similarity_score for r in response.results]
        assert scores == sorted(scores, reverse=True)

        top = response.results[0]
        assert top.semantic_score == pytest.approx(1.0)
        assert top.keyword_score == pytest.approx(2.0)
        assert top.similarity_score == pytest.approx(1.0 * 0.7 + 2.0 * 1.2 * 0.3)

    @pytest.mark.asyncio
    async def test_pure_semantic_weights_match_semantic_search(
        self, seeded_store: InMemoryDocumentStore, search_service: SearchService
    ) -> None:
        hybrid = await search_service.hybrid_search(
            "python finance",
            "alice",
            HybridSearchOptions(keyword_weight=0.0, semantic_weight=1.0, threshold=0.5),
        )
        semantic = await search_service.semantic_search(
            "python finance", "alice", SearchOptions(threshold=0.5)
        )

        assert [(r.chunk_id, r.similarity_score) for r in hybrid.results] == [
            (r.chunk_id, r.similarity_score) for r in semantic.results
        ]
        assert all(r.keyword_score == 0.0 for r in hybrid.results)

    @pytest.mark.asyncio
    async def test_zero_keyword_weight_skips_text_ranking(
        self, seeded_store: InMemoryDocumentStore, search_service: SearchService
    ) -> None:
        with patch.object(seeded_store, "rank_by_text", new=AsyncMock(return_value={})) as rank:
            await search_service.hybrid_search(
                "python", "alice", HybridSearchOptions(keyword_weight=0.0)
            )
        rank.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_text_ranking_limited_to_semantic_candidates(
        self, seeded_store: InMemoryDocumentStore, search_service: SearchService
    ) -> None:
        with patch.object(seeded_store, "rank_by_text", new=AsyncMock(return_value={})) as rank:
            await search_service.hybrid_search("python", "alice", HybridSearchOptions(threshold=0.7))

        terms, owner = rank.await_args.args
        assert terms == ["python"]
        assert owner == "alice"
        assert set(rank.await_args.kwargs["chunk_ids"]) == {"py-c0", "py-c1", "py-c2"}

    @pytest.mark.asyncio
    async def test_normalized_keyword_scores_peak_at_one(
        self, seeded_store: InMemoryDocumentStore, search_service: SearchService
    ) -> None:
        response = await search_service.hybrid_search(
            "python finance", "alice", HybridSearchOptions(normalize_keyword_scores=True)
        )

        keyword_scores = [r.keyword_score for r in response.results]
        assert max(keyword_scores) == pytest.approx(1.0)
        assert all(0.0 <= k <= 1.0 for k in keyword_scores)

    @pytest.mark.asyncio
    async def test_limit_applies_after_blending(
        self, seeded_store: InMemoryDocumentStore, search_service: SearchService
    ) -> None:
        response = await search_service.hybrid_search(
            "python finance", "alice", HybridSearchOptions(limit=1)
        )
        assert _ids(response) == ["py-c2"]


# ---------------------------------------------------------------------------
# Document context
# ---------------------------------------------------------------------------


class TestDocumentContext:
    """Excerpts joined for an LLM prompt."""

    @pytest.mark.asyncio
    async def test_context_joins_excerpts_with_sources(
        self, seeded_store: InMemoryDocumentStore, search_service: SearchService
    ) -> None:
        context = await search_service.get_document_context("python", "alice", max_chunks=2)

        assert context.chunk_count == 2
        excerpts = context.context.split("\n\n---\n\n")
        assert len(excerpts) == 2
        assert context.total_characters == sum(len(e) for e in excerpts)
        assert [s.document_id for s in context.sources] == ["py", "py"]
        assert all(s.similarity_score >= 0.7 for s in context.sources)

    @pytest.mark.asyncio
    async def test_nothing_above_threshold_gives_empty_context(
        self, seeded_store: InMemoryDocumentStore, search_service: SearchService
    ) -> None:
        context = await search_service.get_document_context("travel", "alice", threshold=0.9)

        assert context.context == ""
        assert context.sources == []
        assert context.total_characters == 0
        assert context.chunk_count == 0

    @pytest.mark.asyncio
    @pytest.mark.parametrize("max_chunks", [0, 21])
    async def test_max_chunks_bounds(self, search_service: SearchService, max_chunks: int) -> None:
        with pytest.raises(ValidationError):
            await search_service.get_document_context("python", "alice", max_chunks=max_chunks)


# ---------------------------------------------------------------------------
# Similar documents
# ---------------------------------------------------------------------------


class TestSimilarDocuments:
    """Centroid-based document similarity."""

    @pytest_asyncio.fixture
    async def library(self, memory_store: InMemoryDocumentStore) -> InMemoryDocumentStore:
        await _add_document(
            memory_store,
            "py",
            ["python python python basics", "python packaging python tools", "finance of python shops"],
            minutes=0,
        )
        await _add_document(memory_store, "py2", ["python notes", "python python guide"], minutes=1)
        await _add_document(memory_store, "mixed", ["python finance", "python cooking"], minutes=2)
        await _add_document(memory_store, "fin", ["finance finance budget", "finance markets"], minutes=3)
        await _add_document(memory_store, "plain", ["no vectors here"], minutes=4, embed=False)
        await _add_document(memory_store, "bobs", ["python python"], owner="bob", minutes=5)
        return memory_store

    @pytest.mark.asyncio
    async def test_ranks_similar_documents_and_excludes_self(
        self, library: InMemoryDocumentStore, search_service: SearchService
    ) -> None:
        similar = await search_service.find_similar_documents("py", "alice")

        assert [s.document_id for s in similar] == ["py2", "mixed"]
        assert similar[0].matching_chunks == 2
        assert similar[0].title == "Py2 notes"
        assert similar[0].original_filename == "py2.md"
        assert similar[0].average_similarity > similar[1].average_similarity > 0.6

    @pytest.mark.asyncio
    async def test_limit(self, library: InMemoryDocumentStore, search_service: SearchService) -> None:
        similar = await search_service.find_similar_documents("py", "alice", limit=1)
        assert [s.document_id for s in similar] == ["py2"]

    @pytest.mark.asyncio
    async def test_document_without_embeddings_has_no_neighbours(
        self, library: InMemoryDocumentStore, search_service: SearchService
    ) -> None:
        assert await search_service.find_similar_documents("plain", "alice") == []

    @pytest.mark.asyncio
    async def test_unknown_or_foreign_document_not_found(
        self, library: InMemoryDocumentStore, search_service: SearchService
    ) -> None:
        with pytest.raises(NotFoundError):
            await search_service.find_similar_documents("missing", "alice")
        with pytest.raises(NotFoundError):
            await search_service.find_similar_documents("bobs", "alice")

    @pytest.mark.asyncio
    async def test_centroid_uses_leading_chunks_only(
        self, memory_store: InMemoryDocumentStore, embedding_service
    ) -> None:
        await _add_document(memory_store, "src", ["python intro", "cooking appendix"], minutes=0)
        await _add_document(memory_store, "py", ["python python"], minutes=1)
        await _add_document(memory_store, "cook", ["cooking cooking"], minutes=2)
        service = SearchService(
            store=memory_store, embedding_service=embedding_service, centroid_chunks=1
        )

        similar = await service.find_similar_documents("src", "alice")
        assert [s.document_id for s in similar] == ["py"]
