"""Text extraction: raw file bytes + declared type -> normalized text.

Dispatch is over the closed :class:`DocumentFormat` enum.  The processor
table is checked for completeness when the extractor is built, so a format
added without a processor fails at startup instead of at upload time.

Normalization is shared by every format:

* line endings become ``\\n``;
* ``preserve_formatting=False`` collapses every whitespace run to one
  space and trims;
* ``preserve_formatting=True`` keeps line structure, capping runs of blank
  lines at one and trimming;
* ``max_length`` truncates the normalized text.

Text that is empty after normalization raises :class:`EmptyContentError`.
"""

from __future__ import annotations

import re
from collections.abc import Mapping

import structlog

from ragdocs.models.chunking import ExtractionMetadata, ExtractionResult
from ragdocs.models.options import ExtractionOptions
from ragdocs.services.extraction.formats import DocumentFormat, supported_mime_types
from ragdocs.services.extraction.processors import (
    DocxProcessor,
    MarkdownProcessor,
    PDFProcessor,
    PlainTextProcessor,
    SourceProcessor,
)
from ragdocs.utils.errors import (
    ConfigurationError,
    EmptyContentError,
    UnsupportedFormatError,
)

logger = structlog.get_logger(logger_name=__name__)

_WHITESPACE_RUN = re.compile(r"\s+")
_EXCESS_BLANK_LINES = re.compile(r"\n{3,}")


def _default_processors() -> dict[DocumentFormat, SourceProcessor]:
    return {
        DocumentFormat.PDF: PDFProcessor(),
        DocumentFormat.DOCX: DocxProcessor(),
        DocumentFormat.PLAIN_TEXT: PlainTextProcessor(),
        DocumentFormat.MARKDOWN: MarkdownProcessor(),
    }


class TextExtractor:
    """Converts uploaded bytes into normalized plain text.

    Parameters
    ----------
    processors:
        Override the processor for some formats (tests inject fakes here).
        Formats not mentioned keep their default processor.
    """

    def __init__(self, processors: Mapping[DocumentFormat, SourceProcessor] | None = None) -> None:
        table = _default_processors()
        if processors:
            table.update(processors)
        missing = [fmt.value for fmt in DocumentFormat if fmt not in table]
        if missing:
            raise ConfigurationError(f"No text processor registered for: {', '.join(missing)}")
        self._processors = table

    def extract_text(
        self,
        data: bytes,
        declared_type: str,
        options: ExtractionOptions | None = None,
    ) -> ExtractionResult:
        """Extract and normalize the text of one document.

        Parameters
        ----------
        data:
            Raw file bytes.
        declared_type:
            MIME type supplied with the upload.
        options:
            Formatting and length controls.

        Returns
        -------
        ExtractionResult
            Normalized content with word/character counts.

        Raises
        ------
        UnsupportedFormatError
            Unknown MIME type, or bytes the format's parser rejects.
        EmptyContentError
            Nothing but whitespace remained.
        """
        opts = options or ExtractionOptions()
        fmt = DocumentFormat.from_mime_type(declared_type)

        raw = self._processors[fmt].extract(data)

        preserve = opts.preserve_formatting
        if preserve is None:
            preserve = fmt.preserves_formatting_by_default
        content = self.normalize(raw.text, preserve_formatting=preserve)

        truncated = False
        if opts.max_length is not None and len(content) > opts.max_length:
            content = content[: opts.max_length].rstrip()
            truncated = True

        if not content:
            raise EmptyContentError(f"No text content could be extracted from {fmt.value} file")

        metadata = ExtractionMetadata(
            word_count=len(content.split()),
            character_count=len(content),
            page_count=raw.page_count,
            file_type=declared_type,
            truncated=truncated,
        )
        logger.info(
            "text_extracted",
            format=fmt.value,
            characters=metadata.character_count,
            words=metadata.word_count,
            pages=metadata.page_count,
            truncated=truncated,
        )
        return ExtractionResult(content=content, metadata=metadata)

    @staticmethod
    def normalize(text: str, preserve_formatting: bool) -> str:
        """Apply the shared whitespace normalization to *text*."""
        text = text.replace("\r\n", "\n").replace("\r", "\n")
        if not preserve_formatting:
            return _WHITESPACE_RUN.sub(" ", text).strip()
        return _EXCESS_BLANK_LINES.sub("\n\n", text).strip()

    @staticmethod
    def supported_types() -> list[str]:
        """Return the MIME types this extractor accepts."""
        return supported_mime_types()

    @staticmethod
    def is_supported(mime_type: str) -> bool:
        try:
            DocumentFormat.from_mime_type(mime_type)
        except UnsupportedFormatError:
            return False
        return True
