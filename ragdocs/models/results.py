"""Result models returned by the embedding, search and ingestion services."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from ragdocs.models.chunking import ExtractionMetadata
from ragdocs.models.document import Chunk, Document


# ---------------------------------------------------------------------------
# Embedding
# ---------------------------------------------------------------------------
class EmbeddingResponse(BaseModel):
    """Raw output of one provider call: one vector per input plus usage."""

    model_config = ConfigDict(frozen=True)

    vectors: list[list[float]]
    total_tokens: int = 0
    model: str = ""


class EmbeddingBatchResult(BaseModel):
    """Aggregate output of :meth:`EmbeddingService.generate_embeddings`."""

    model_config = ConfigDict(frozen=True)

    embeddings: list[list[float]] = Field(default_factory=list)
    total_tokens: int = 0
    cost: float = 0.0
    processing_time_ms: int = 0
    model: str = ""


class CostEstimate(BaseModel):
    """Pre-flight token and cost estimate; computed without a provider call."""

    model_config = ConfigDict(frozen=True)

    estimated_tokens: int = 0
    estimated_cost: float = 0.0
    model: str = ""


# ---------------------------------------------------------------------------
# Store primitives
# ---------------------------------------------------------------------------
class ScoredChunk(BaseModel):
    """A chunk row returned by ``nearest_by_vector`` with its parent document fields."""

    model_config = ConfigDict(frozen=True)

    chunk: Chunk
    document_title: str
    document_filename: str
    similarity: float


# ---------------------------------------------------------------------------
# Search
# ---------------------------------------------------------------------------
class SearchResult(BaseModel):
    """One ranked chunk in a search response."""

    model_config = ConfigDict(frozen=True)

    chunk_id: str
    document_id: str
    document_title: str
    document_filename: str
    chunk_index: int
    content: str
    similarity_score: float = Field(description="Semantic similarity, or the blended score for hybrid search.")
    semantic_score: float | None = None
    keyword_score: float | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime | None = None


class SearchResponse(BaseModel):
    """Search results plus the parameters that produced them."""

    model_config = ConfigDict(frozen=True)

    results: list[SearchResult] = Field(default_factory=list)
    total_results: int = 0
    query: str
    processing_time_ms: int = 0
    search_type: str = "semantic"
    similarity_threshold: float = 0.0


class ContextSource(BaseModel):
    """Attribution for one chunk that went into a context block."""

    model_config = ConfigDict(frozen=True)

    document_id: str
    document_title: str
    chunk_index: int
    similarity_score: float


class DocumentContext(BaseModel):
    """Concatenated excerpts handed to an LLM conversation as grounding context."""

    model_config = ConfigDict(frozen=True)

    context: str = ""
    sources: list[ContextSource] = Field(default_factory=list)
    total_characters: int = 0
    chunk_count: int = 0


class SimilarDocument(BaseModel):
    """A document ranked by mean chunk similarity to a source document."""

    model_config = ConfigDict(frozen=True)

    document_id: str
    title: str
    original_filename: str
    average_similarity: float
    matching_chunks: int


# ---------------------------------------------------------------------------
# Ingestion
# ---------------------------------------------------------------------------
class ProcessingResult(BaseModel):
    """Outcome of :meth:`DocumentService.process_document`.

    Failures after the document row exists are reported here with
    ``success=False`` rather than raised.
    """

    model_config = ConfigDict(frozen=True)

    success: bool
    document: Document | None = None
    chunks: list[Chunk] = Field(default_factory=list)
    error: str | None = None
    processing_time_ms: int = 0
    embedding_cost: float = 0.0
    total_tokens: int = 0
    deduplicated: bool = False
    extraction: ExtractionMetadata | None = None


class ReprocessResult(BaseModel):
    """Outcome of an embedding-only reprocess of one document."""

    model_config = ConfigDict(frozen=True)

    document_id: str
    success: bool = True
    updated_chunks: int = 0
    cost: float = 0.0
    error: str | None = None
