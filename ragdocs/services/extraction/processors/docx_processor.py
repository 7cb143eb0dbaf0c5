"""Source processor for Word documents (python-docx)."""

from __future__ import annotations

import io

import structlog
from docx import Document as open_docx

from ragdocs.services.extraction.processors.base import RawText, SourceProcessor
from ragdocs.utils.errors import UnsupportedFormatError

logger = structlog.get_logger(logger_name=__name__)


class DocxProcessor(SourceProcessor):
    """Extracts paragraph and table text from an Office Open XML document.

    Legacy binary ``.doc`` files are declared under the same format but
    python-docx cannot open them; they fail as unsupported.
    """

    def extract(self, data: bytes) -> RawText:
        try:
            doc = open_docx(io.BytesIO(data))
        except Exception as exc:
            logger.error("docx_open_failed", error=str(exc), size=len(data))
            raise UnsupportedFormatError(
                f"File could not be read as a Word document: {exc}", provider_name="docx"
            ) from exc

        blocks = [para.text for para in doc.paragraphs if para.text.strip()]
        for table in doc.tables:
            for row in table.rows:
                cells = [cell.text.strip() for cell in row.cells if cell.text.strip()]
                if cells:
                    blocks.append(" | ".join(cells))

        return RawText(text="\n\n".join(blocks))
