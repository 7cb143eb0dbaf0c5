"""ragdocs domain models — re-exports all public model classes.

Submodules by concern:
    - document.py — persisted Document / Chunk records and listing pages
    - chunking.py — chunker and extractor outputs
    - options.py  — validated option bundles for each service
    - results.py  — embedding, search and ingestion results
"""

from __future__ import annotations

from ragdocs.models.chunking import (
    ChunkingStats,
    ChunkMetadata,
    ChunkType,
    ExtractionMetadata,
    ExtractionResult,
    TextChunk,
)
from ragdocs.models.document import (
    Chunk,
    ChunkPage,
    Document,
    DocumentPage,
    DocumentStats,
    DocumentStatus,
    utc_now,
)
from ragdocs.models.options import (
    ChunkOptions,
    ExtractionOptions,
    HybridSearchOptions,
    ProcessOptions,
    SearchOptions,
)
from ragdocs.models.results import (
    ContextSource,
    CostEstimate,
    DocumentContext,
    EmbeddingBatchResult,
    EmbeddingResponse,
    ProcessingResult,
    ReprocessResult,
    ScoredChunk,
    SearchResponse,
    SearchResult,
    SimilarDocument,
)

__all__ = [
    "Chunk",
    "ChunkMetadata",
    "ChunkOptions",
    "ChunkPage",
    "ChunkType",
    "ChunkingStats",
    "ContextSource",
    "CostEstimate",
    "Document",
    "DocumentContext",
    "DocumentPage",
    "DocumentStats",
    "DocumentStatus",
    "EmbeddingBatchResult",
    "EmbeddingResponse",
    "ExtractionMetadata",
    "ExtractionOptions",
    "ExtractionResult",
    "HybridSearchOptions",
    "ProcessOptions",
    "ProcessingResult",
    "ReprocessResult",
    "ScoredChunk",
    "SearchOptions",
    "SearchResponse",
    "SearchResult",
    "SimilarDocument",
    "TextChunk",
    "utc_now",
]
