"""Text extraction from uploaded files.

:class:`TextExtractor` dispatches on :class:`DocumentFormat` to one
processor per format (``processors/``) and applies shared normalization.
"""

from ragdocs.services.extraction.extractor import TextExtractor
from ragdocs.services.extraction.formats import DocumentFormat, supported_mime_types

__all__ = ["DocumentFormat", "TextExtractor", "supported_mime_types"]
