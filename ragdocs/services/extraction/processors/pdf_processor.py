"""Source processor for PDF documents.

Reads the PDF from memory with PyMuPDF (fitz) and joins the text of every
page that has any, separated by blank lines.  Scanned PDFs without a text
layer yield no text, which the extractor reports as empty content.
"""

from __future__ import annotations

import fitz  # PyMuPDF -- the "fitz" import name is a PyMuPDF convention
import structlog

from ragdocs.services.extraction.processors.base import RawText, SourceProcessor
from ragdocs.utils.errors import UnsupportedFormatError

logger = structlog.get_logger(logger_name=__name__)


class PDFProcessor(SourceProcessor):
    """Extracts page text from PDF bytes."""

    def extract(self, data: bytes) -> RawText:
        try:
            doc = fitz.open(stream=data, filetype="pdf")
        except Exception as exc:
            logger.error("pdf_open_failed", error=str(exc), size=len(data))
            raise UnsupportedFormatError(
                f"File could not be read as PDF: {exc}", provider_name="pdf"
            ) from exc

        pages: list[str] = []
        try:
            page_count = len(doc)
            for page in doc:
                text = page.get_text("text").strip()
                if text:
                    pages.append(text)
        finally:
            doc.close()

        if not pages:
            logger.warning("pdf_no_text_extracted", page_count=page_count)

        return RawText(text="\n\n".join(pages), page_count=page_count)
