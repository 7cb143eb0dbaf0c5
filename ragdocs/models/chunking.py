"""Chunker and extractor output models."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class ChunkType(str, Enum):  # noqa: UP042 — StrEnum requires Python 3.11+
    """Which chunking strategy produced a chunk."""

    PARAGRAPH = "paragraph"
    SENTENCE = "sentence"
    ARBITRARY = "arbitrary"


class ChunkMetadata(BaseModel):
    """Descriptive counters attached to every chunk."""

    model_config = ConfigDict(frozen=True)

    word_count: int = 0
    character_count: int = 0
    chunk_type: ChunkType = ChunkType.ARBITRARY
    # Only set by the paragraph strategy: index of the paragraph that
    # opened this chunk.
    paragraph_index: int | None = None


class TextChunk(BaseModel):
    """One chunk produced by :class:`~ragdocs.services.chunking.chunker.TextChunker`."""

    model_config = ConfigDict(frozen=True)

    content: str
    chunk_index: int = Field(ge=0)
    token_count: int = Field(ge=0, description="Estimated tokens, ceil(chars / 4).")
    start_position: int = Field(default=0, ge=0)
    end_position: int = Field(default=0, ge=0)
    metadata: ChunkMetadata = Field(default_factory=ChunkMetadata)


class ChunkingStats(BaseModel):
    """Summary of a chunking run, for logging and the CLI."""

    model_config = ConfigDict(frozen=True)

    total_chunks: int = 0
    average_chunk_size: float = 0.0
    min_chunk_size: int = 0
    max_chunk_size: int = 0
    total_tokens: int = 0


class ExtractionMetadata(BaseModel):
    """Counters describing an extracted text."""

    model_config = ConfigDict(frozen=True)

    word_count: int = 0
    character_count: int = 0
    page_count: int | None = None
    file_type: str = ""
    truncated: bool = False


class ExtractionResult(BaseModel):
    """Normalized text pulled out of one uploaded file."""

    model_config = ConfigDict(frozen=True)

    content: str
    metadata: ExtractionMetadata = Field(default_factory=ExtractionMetadata)
