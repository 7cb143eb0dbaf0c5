"""Semantic and hybrid retrieval over an owner's embedded chunks.

The service embeds the query, asks the store for chunks ranked by vector
similarity (:meth:`IDocumentStore.nearest_by_vector`), and -- for hybrid
search -- blends in keyword scores from :meth:`IDocumentStore.rank_by_text`::

    score = semantic * semantic_weight + keyword * keyword_boost * keyword_weight

The similarity threshold always applies to the semantic score, before any
blending, so ``keyword_weight=0, semantic_weight=1`` reproduces the
semantic-only ranking exactly.  Keyword scores are raw (unbounded) unless
``normalize_keyword_scores`` asks for rescaling to ``[0, 1]``.

All sorts are stable; equal scores keep the store's insertion order
(parent document creation, then chunk index).  Every method is read-only
and safe to run concurrently with ingestion.
"""

from __future__ import annotations

import time
from collections.abc import Callable

import numpy as np
import structlog

from ragdocs.interfaces.document_store import IDocumentStore
from ragdocs.models.options import HybridSearchOptions, SearchOptions
from ragdocs.models.results import (
    ContextSource,
    DocumentContext,
    ScoredChunk,
    SearchResponse,
    SearchResult,
    SimilarDocument,
)
from ragdocs.services.embedding_service import EmbeddingService
from ragdocs.services.retrieval.keywords import extract_keywords
from ragdocs.utils.errors import EmptyInputError, NotFoundError, ValidationError

logger = structlog.get_logger(logger_name=__name__)

_SCORE_DECIMALS = 4
_CONTEXT_SEPARATOR = "\n\n---\n\n"


def _round(score: float) -> float:
    return round(score, _SCORE_DECIMALS)


class SearchService:
    """Answers similarity queries for the conversation and document layers.

    Parameters
    ----------
    store:
        Document store providing the two query primitives.
    embedding_service:
        Used to embed queries (same truncation and retry policy as
        ingestion).
    centroid_chunks:
        How many leading chunks of a document form its centroid in
        :meth:`find_similar_documents`.
    similar_min_similarity:
        Mean similarity a document must exceed to count as similar.
    clock:
        Monotonic clock used for ``processing_time_ms``.
    """

    def __init__(
        self,
        store: IDocumentStore,
        embedding_service: EmbeddingService,
        centroid_chunks: int = 3,
        similar_min_similarity: float = 0.6,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._store = store
        self._embedder = embedding_service
        self._centroid_chunks = centroid_chunks
        self._similar_floor = similar_min_similarity
        self._clock = clock

    # ------------------------------------------------------------------
    # Semantic search
    # ------------------------------------------------------------------

    async def semantic_search(
        self,
        query: str,
        owner_id: str,
        options: SearchOptions | None = None,
    ) -> SearchResponse:
        """Rank the owner's chunks by vector similarity to *query*.

        Returns
        -------
        SearchResponse
            At most ``options.limit`` results, similarity non-increasing,
            each with similarity ``>= options.threshold``.

        Raises
        ------
        EmptyInputError
            *query* is blank.
        ProviderError
            Query embedding failed after retries.
        """
        opts = options or SearchOptions()
        started = self._clock()
        vector = await self._embed_query(query)

        candidates = await self._store.nearest_by_vector(
            vector,
            owner_id,
            limit=opts.limit,
            min_similarity=opts.threshold,
            document_ids=opts.filter_document_ids,
            exclude_document_ids=opts.exclude_document_ids,
        )
        # The store already filters; keep the guarantee independent of it.
        candidates = [c for c in candidates if c.similarity >= opts.threshold][: opts.limit]

        results = [self._to_result(c, c.similarity, opts.include_metadata) for c in candidates]
        elapsed_ms = self._elapsed_ms(started)
        logger.info(
            "semantic_search_complete",
            owner_id=owner_id,
            query_length=len(query),
            results=len(results),
            threshold=opts.threshold,
            elapsed_ms=elapsed_ms,
        )
        return SearchResponse(
            results=results,
            total_results=len(results),
            query=query,
            processing_time_ms=elapsed_ms,
            search_type="semantic",
            similarity_threshold=opts.threshold,
        )

    # ------------------------------------------------------------------
    # Hybrid search
    # ------------------------------------------------------------------

    async def hybrid_search(
        self,
        query: str,
        owner_id: str,
        options: HybridSearchOptions | None = None,
    ) -> SearchResponse:
        """Rank the owner's chunks by blended semantic and keyword relevance.

        Chunks are first filtered on semantic similarity ``>= threshold``;
        survivors are scored against the query's keywords, blended, and
        sorted by the blended score (stable).  Chunks with no keyword match
        get a keyword score of 0.
        """
        opts = options or HybridSearchOptions()
        started = self._clock()
        vector = await self._embed_query(query)

        candidates = await self._store.nearest_by_vector(
            vector,
            owner_id,
            min_similarity=opts.threshold,
            document_ids=opts.filter_document_ids,
            exclude_document_ids=opts.exclude_document_ids,
        )
        candidates = [c for c in candidates if c.similarity >= opts.threshold]

        terms = extract_keywords(query)
        keyword_scores: dict[str, float] = {}
        if terms and candidates and opts.keyword_weight > 0:
            keyword_scores = await self._store.rank_by_text(
                terms, owner_id, chunk_ids=[c.chunk.id for c in candidates]
            )
            if opts.normalize_keyword_scores and keyword_scores:
                best = max(keyword_scores.values())
                keyword_scores = {k: v / best for k, v in keyword_scores.items()}

        blended: list[tuple[float, float, ScoredChunk]] = []
        for candidate in candidates:
            keyword = keyword_scores.get(candidate.chunk.id, 0.0)
            score = (
                candidate.similarity * opts.semantic_weight
                + keyword * opts.keyword_boost * opts.keyword_weight
            )
            blended.append((score, keyword, candidate))
        blended.sort(key=lambda item: item[0], reverse=True)

        results = [
            self._to_result(candidate, score, opts.include_metadata, keyword)
            for score, keyword, candidate in blended[: opts.limit]
        ]
        elapsed_ms = self._elapsed_ms(started)
        logger.info(
            "hybrid_search_complete",
            owner_id=owner_id,
            keywords=terms,
            candidates=len(candidates),
            keyword_matches=len(keyword_scores),
            results=len(results),
            elapsed_ms=elapsed_ms,
        )
        return SearchResponse(
            results=results,
            total_results=len(results),
            query=query,
            processing_time_ms=elapsed_ms,
            search_type="hybrid",
            similarity_threshold=opts.threshold,
        )

    # ------------------------------------------------------------------
    # LLM context
    # ------------------------------------------------------------------

    async def get_document_context(
        self,
        query: str,
        owner_id: str,
        max_chunks: int = 5,
        threshold: float = 0.7,
    ) -> DocumentContext:
        """Collect the best-matching excerpts for grounding an LLM answer.

        Parameters
        ----------
        query:
            The user's question.
        owner_id:
            Only this owner's documents are searched.
        max_chunks:
            Maximum number of excerpts (1-20).
        threshold:
            Minimum semantic similarity (0-1).

        Returns
        -------
        DocumentContext
            Excerpts joined by a separator, with one attribution entry per
            excerpt and the total character count of the excerpts.
        """
        if not 1 <= max_chunks <= 20:
            raise ValidationError(f"max_chunks must be between 1 and 20, got {max_chunks}")
        options = SearchOptions.build(limit=max_chunks, threshold=threshold)
        response = await self.semantic_search(query, owner_id, options)

        excerpts = [r.content for r in response.results]
        sources = [
            ContextSource(
                document_id=r.document_id,
                document_title=r.document_title,
                chunk_index=r.chunk_index,
                similarity_score=r.similarity_score,
            )
            for r in response.results
        ]
        total_characters = sum(len(e) for e in excerpts)
        logger.info(
            "document_context_retrieved",
            owner_id=owner_id,
            chunks=len(excerpts),
            total_characters=total_characters,
            documents=len({s.document_id for s in sources}),
        )
        return DocumentContext(
            context=_CONTEXT_SEPARATOR.join(excerpts),
            sources=sources,
            total_characters=total_characters,
            chunk_count=len(excerpts),
        )

    # ------------------------------------------------------------------
    # Document similarity
    # ------------------------------------------------------------------

    async def find_similar_documents(
        self,
        document_id: str,
        owner_id: str,
        limit: int = 5,
    ) -> list[SimilarDocument]:
        """Rank the owner's other documents by similarity to *document_id*.

        The source document is represented by the mean of its first few
        embedded chunk vectors.  Each other completed document scores the
        mean similarity of all its embedded chunks to that centroid and is
        kept when the mean exceeds the similarity floor.  This is a cheap
        proxy for document-level similarity, not an exact measure.

        Raises
        ------
        NotFoundError
            The document does not exist or is not owned by *owner_id*.
        """
        source = await self._store.get_document(document_id, owner_id)
        if source is None:
            raise NotFoundError(f"Document {document_id} not found")

        leading = await self._store.get_chunks(document_id, limit=self._centroid_chunks)
        vectors = [c.embedding for c in leading if c.embedding is not None]
        if not vectors:
            logger.info("similar_documents_no_embeddings", document_id=document_id)
            return []
        centroid = np.mean(np.asarray(vectors, dtype=np.float64), axis=0).tolist()

        scored = await self._store.nearest_by_vector(
            centroid, owner_id, exclude_document_ids=[document_id]
        )

        # Group in first-seen order so equal means keep a stable order.
        groups: dict[str, list[ScoredChunk]] = {}
        for item in scored:
            groups.setdefault(item.chunk.document_id, []).append(item)

        similar: list[SimilarDocument] = []
        for doc_id, items in groups.items():
            mean = sum(i.similarity for i in items) / len(items)
            if mean > self._similar_floor:
                similar.append(
                    SimilarDocument(
                        document_id=doc_id,
                        title=items[0].document_title,
                        original_filename=items[0].document_filename,
                        average_similarity=_round(mean),
                        matching_chunks=len(items),
                    )
                )
        similar.sort(key=lambda s: s.average_similarity, reverse=True)
        return similar[:limit]

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _embed_query(self, query: str) -> list[float]:
        if not query or not query.strip():
            raise EmptyInputError("Search query cannot be empty")
        return await self._embedder.generate_query_embedding(query)

    @staticmethod
    def _to_result(
        candidate: ScoredChunk,
        score: float,
        include_metadata: bool,
        keyword: float | None = None,
    ) -> SearchResult:
        chunk = candidate.chunk
        return SearchResult(
            chunk_id=chunk.id,
            document_id=chunk.document_id,
            document_title=candidate.document_title,
            document_filename=candidate.document_filename,
            chunk_index=chunk.chunk_index,
            content=chunk.content,
            similarity_score=_round(score),
            semantic_score=_round(candidate.similarity),
            keyword_score=_round(keyword) if keyword is not None else None,
            metadata=dict(chunk.metadata) if include_metadata else {},
            created_at=chunk.created_at,
        )

    def _elapsed_ms(self, started: float) -> int:
        return int((self._clock() - started) * 1000)
