"""Common shape of the per-format text processors."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import NamedTuple


class RawText(NamedTuple):
    """Unnormalized text pulled from a file, plus its page count when known."""

    text: str
    page_count: int | None = None


class SourceProcessor(ABC):
    """Turns the raw bytes of one document format into text.

    Processors only decode; whitespace normalization, truncation and the
    empty-content check happen in the extractor so every format gets the
    same treatment.
    """

    @abstractmethod
    def extract(self, data: bytes) -> RawText:
        """Return the document's text.

        Raises
        ------
        ragdocs.utils.errors.UnsupportedFormatError
            If the bytes cannot be parsed as this format.
        """
