"""The closed set of document formats the extractor understands.

Each :class:`DocumentFormat` member has exactly one processor registered in
:mod:`ragdocs.services.extraction.extractor`; the extractor refuses to start
if a member has none.  Supporting a new format means adding a member here,
its MIME types below, and a processor.
"""

from __future__ import annotations

from enum import Enum

from ragdocs.utils.errors import UnsupportedFormatError


class DocumentFormat(str, Enum):  # noqa: UP042 — StrEnum requires Python 3.11+
    """Supported upload formats."""

    PDF = "pdf"
    DOCX = "docx"
    PLAIN_TEXT = "text"
    MARKDOWN = "markdown"

    @classmethod
    def from_mime_type(cls, mime_type: str) -> DocumentFormat:
        """Resolve a declared MIME type (parameters such as ``charset`` ignored).

        Raises
        ------
        UnsupportedFormatError
            If the type is not one of the supported formats.
        """
        base = mime_type.split(";", 1)[0].strip().lower()
        try:
            return _MIME_TYPES[base]
        except KeyError:
            raise UnsupportedFormatError(f"Unsupported file type: {mime_type!r}") from None

    @property
    def preserves_formatting_by_default(self) -> bool:
        """Whether line structure is kept when the caller does not say.

        Only Markdown, where line breaks are syntax, keeps them; every other
        format collapses whitespace runs to single spaces.
        """
        return self is DocumentFormat.MARKDOWN


_MIME_TYPES: dict[str, DocumentFormat] = {
    "application/pdf": DocumentFormat.PDF,
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document": DocumentFormat.DOCX,
    "application/msword": DocumentFormat.DOCX,
    "text/plain": DocumentFormat.PLAIN_TEXT,
    "text/markdown": DocumentFormat.MARKDOWN,
    "text/x-markdown": DocumentFormat.MARKDOWN,
}


def supported_mime_types() -> list[str]:
    """Return every accepted MIME type, sorted."""
    return sorted(_MIME_TYPES)
