"""Source processors for plain text and Markdown.

Both decode UTF-8 (a leading byte-order mark is dropped, undecodable bytes
become U+FFFD).  Markdown is kept verbatim -- headings, lists and code
fences carry meaning for retrieval and read fine as plain text.
"""

from __future__ import annotations

from ragdocs.services.extraction.processors.base import RawText, SourceProcessor


class PlainTextProcessor(SourceProcessor):
    """Decodes plain text files."""

    def extract(self, data: bytes) -> RawText:
        return RawText(text=data.decode("utf-8-sig", errors="replace"))


class MarkdownProcessor(PlainTextProcessor):
    """Decodes Markdown files; markup is left in place."""
