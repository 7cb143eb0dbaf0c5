"""Per-format text processors used by the extractor.

- **pdf_processor** -- PDF via PyMuPDF (fitz)
- **docx_processor** -- Word documents via python-docx
- **text_processor** -- plain text and Markdown (UTF-8 decode)
"""

from ragdocs.services.extraction.processors.base import RawText, SourceProcessor
from ragdocs.services.extraction.processors.docx_processor import DocxProcessor
from ragdocs.services.extraction.processors.pdf_processor import PDFProcessor
from ragdocs.services.extraction.processors.text_processor import (
    MarkdownProcessor,
    PlainTextProcessor,
)

__all__ = [
    "DocxProcessor",
    "MarkdownProcessor",
    "PDFProcessor",
    "PlainTextProcessor",
    "RawText",
    "SourceProcessor",
]
