"""Validated option objects for extraction, chunking, search and processing.

Each options class can be built from keyword arguments with
:meth:`OptionsModel.build`, which re-raises pydantic's validation failure
as :class:`~ragdocs.utils.errors.ValidationError` so callers only deal
with the ragdocs error hierarchy.
"""

from __future__ import annotations

from typing import Any

import pydantic
from pydantic import BaseModel, ConfigDict, Field, model_validator

from ragdocs.utils.errors import ValidationError


class OptionsModel(BaseModel):
    """Base for immutable option bundles."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    @classmethod
    def build(cls, **values: Any):  # noqa: ANN206
        """Construct the options, converting validation failures to ``ValidationError``."""
        try:
            return cls(**values)
        except pydantic.ValidationError as exc:
            raise ValidationError(f"Invalid {cls.__name__}: {exc}") from exc


class ChunkOptions(OptionsModel):
    """Chunk sizing, measured in characters."""

    max_chunk_size: int = Field(default=1000, gt=0)
    overlap: int = Field(default=100, ge=0)
    min_chunk_size: int = Field(default=100, ge=0)
    preserve_paragraphs: bool = True
    preserve_sentences: bool = True

    @model_validator(mode="after")
    def _check_sizes(self) -> ChunkOptions:
        if self.overlap >= self.max_chunk_size:
            raise ValueError("overlap must be smaller than max_chunk_size")
        if self.min_chunk_size > self.max_chunk_size:
            raise ValueError("min_chunk_size cannot exceed max_chunk_size")
        return self


class ExtractionOptions(OptionsModel):
    """Text normalization controls.

    ``preserve_formatting=None`` lets each format pick its own default.
    """

    preserve_formatting: bool | None = None
    max_length: int | None = Field(default=None, gt=0)


class ProcessOptions(OptionsModel):
    """Per-call controls for the ingestion pipeline."""

    generate_embeddings: bool = True
    chunk_options: ChunkOptions = Field(default_factory=ChunkOptions)
    extraction_options: ExtractionOptions = Field(default_factory=ExtractionOptions)
    embedding_model: str | None = None


class SearchOptions(OptionsModel):
    """Options for vector-only search."""

    limit: int = Field(default=10, ge=1, le=50)
    threshold: float = Field(default=0.7, ge=0.0, le=1.0)
    include_metadata: bool = True
    filter_document_ids: list[str] | None = None
    exclude_document_ids: list[str] | None = None


class HybridSearchOptions(SearchOptions):
    """Options for blended vector + keyword search.

    ``threshold`` still applies to the semantic score alone, before
    blending.  ``normalize_keyword_scores`` rescales keyword scores into
    ``[0, 1]`` by the best score among the candidates; it is off by default
    so scores keep their raw ranking magnitude.
    """

    threshold: float = Field(default=0.5, ge=0.0, le=1.0)
    keyword_weight: float = Field(default=0.3, ge=0.0)
    semantic_weight: float = Field(default=0.7, ge=0.0)
    keyword_boost: float = Field(default=1.2, ge=0.0)
    normalize_keyword_scores: bool = False
