"""Text chunking with overlap, preserving paragraph and sentence boundaries.

Splits normalized document text into :class:`~ragdocs.models.TextChunk`
objects sized in characters (default 1000, with 100 characters of overlap).

Three strategies are tried in priority order:

1. **Paragraph-preserving** -- split on blank lines and greedily pack
   whole paragraphs up to ``max_chunk_size``.
2. **Sentence-preserving** -- split with an abbreviation-aware sentence
   splitter ("Dr. Smith" stays one sentence) and pack whole sentences.
3. **Fixed window** -- walk the text in ``max_chunk_size`` windows, pulling
   each window end back to the best separator (paragraph break, line break,
   sentence punctuation, clause punctuation, space).

A strategy whose split yields a single unit is skipped, so a text with no
blank lines is never packed "by paragraphs".

Every finished chunk seeds the next one with its trailing ``overlap``
characters, trimmed forward to a sentence or word boundary so no chunk
opens mid-word.  A single paragraph or sentence longer than
``max_chunk_size`` is kept whole rather than split mid-unit.
"""

from __future__ import annotations

import math
import re

import structlog

from ragdocs.models.chunking import ChunkingStats, ChunkMetadata, ChunkType, TextChunk
from ragdocs.models.options import ChunkOptions

logger = structlog.get_logger(logger_name=__name__)

# Abbreviations whose trailing period does not end a sentence.
_ABBREVIATIONS = frozenset(
    {
        "Dr",
        "Mr",
        "Mrs",
        "Ms",
        "Prof",
        "Sr",
        "Jr",
        "vs",
        "etc",
        "Inc",
        "Ltd",
        "Corp",
    }
)

# Window-end candidates, best first.
_SEPARATORS: tuple[str, ...] = ("\n\n", "\n", ". ", "! ", "? ", "; ", ", ", " ")

_PARAGRAPH_SPLIT = re.compile(r"\n\s*\n")
_SENTENCE_TAIL = re.compile(r"[.!?]\s+")
_WHITESPACE = re.compile(r"\s+")


def estimate_tokens(text: str) -> int:
    """Approximate token count: one token per four characters, rounded up."""
    return math.ceil(len(text) / 4)


def _word_before(text: str, position: int) -> str:
    """Return the run of ASCII letters ending just before *position*."""
    end = position
    start = end
    while start > 0 and text[start - 1].isascii() and text[start - 1].isalpha():
        start -= 1
    return text[start:end]


class TextChunker:
    """Splits text into ordered, overlapping chunks.

    Parameters
    ----------
    default_options:
        Options used when :meth:`chunk_text` is called without any.
    """

    def __init__(self, default_options: ChunkOptions | None = None) -> None:
        self._defaults = default_options or ChunkOptions()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def chunk_text(self, text: str, options: ChunkOptions | None = None) -> list[TextChunk]:
        """Split *text* into chunks.

        Parameters
        ----------
        text:
            Extracted document text.  Line endings and runs of spaces are
            normalized before splitting.
        options:
            Sizing and strategy switches; the chunker's defaults when
            ``None``.

        Returns
        -------
        list[TextChunk]
            Chunks with contiguous ``chunk_index`` values starting at 0.
            Empty or whitespace-only input returns an empty list.
        """
        opts = options or self._defaults
        if not text or not text.strip():
            return []

        cleaned = self._preprocess(text)

        raw: list[TextChunk] | None = None
        strategy = ChunkType.ARBITRARY
        if opts.preserve_paragraphs:
            paragraphs = self._split_paragraphs(cleaned)
            if len(paragraphs) > 1:
                raw = self._pack_units(cleaned, paragraphs, "\n\n", ChunkType.PARAGRAPH, opts)
                strategy = ChunkType.PARAGRAPH
        if raw is None and opts.preserve_sentences:
            sentences = self._split_sentences(cleaned)
            if len(sentences) > 1:
                raw = self._pack_units(cleaned, sentences, " ", ChunkType.SENTENCE, opts)
                strategy = ChunkType.SENTENCE
        if raw is None:
            raw = self._chunk_by_size(cleaned, opts)

        chunks = self._finalize(raw, opts)

        logger.debug(
            "chunking_complete",
            original_length=len(text),
            cleaned_length=len(cleaned),
            num_chunks=len(chunks),
            strategy=strategy.value,
        )
        return chunks

    @staticmethod
    def get_chunking_stats(chunks: list[TextChunk]) -> ChunkingStats:
        """Summarize chunk sizes and token totals."""
        if not chunks:
            return ChunkingStats()
        sizes = [len(c.content) for c in chunks]
        return ChunkingStats(
            total_chunks=len(chunks),
            average_chunk_size=round(sum(sizes) / len(sizes), 2),
            min_chunk_size=min(sizes),
            max_chunk_size=max(sizes),
            total_tokens=sum(c.token_count for c in chunks),
        )

    # ------------------------------------------------------------------
    # Normalization and splitting
    # ------------------------------------------------------------------

    @staticmethod
    def _preprocess(text: str) -> str:
        text = text.replace("\r\n", "\n").replace("\r", "\n")
        text = re.sub(r"[ \t]+", " ", text)
        text = re.sub(r"\n{3,}", "\n\n", text)
        return text.strip()

    @staticmethod
    def _split_paragraphs(text: str) -> list[str]:
        """Split *text* on blank lines, discarding empty paragraphs."""
        return [p.strip() for p in _PARAGRAPH_SPLIT.split(text) if p.strip()]

    @staticmethod
    def _split_sentences(text: str) -> list[str]:
        """Split *text* at sentence boundaries while respecting abbreviations.

        A ``.``, ``!`` or ``?`` ends a sentence when it is the last
        character, or when whitespace follows and the next visible
        character is upper case -- unless the word right before it is a
        known abbreviation.
        """
        sentences: list[str] = []
        start = 0
        length = len(text)

        for i, char in enumerate(text):
            if char not in ".!?":
                continue
            nxt = i + 1
            while nxt < length and text[nxt].isspace():
                nxt += 1
            if nxt < length:
                if nxt == i + 1 or not text[nxt].isupper():
                    continue
                if _word_before(text, i) in _ABBREVIATIONS:
                    continue
            sentence = text[start : i + 1].strip()
            if sentence:
                sentences.append(sentence)
            start = i + 1

        remainder = text[start:].strip()
        if remainder:
            sentences.append(remainder)
        return sentences

    # ------------------------------------------------------------------
    # Strategies
    # ------------------------------------------------------------------

    def _pack_units(
        self,
        text: str,
        units: list[str],
        joiner: str,
        chunk_type: ChunkType,
        opts: ChunkOptions,
    ) -> list[TextChunk]:
        """Greedily pack paragraphs or sentences into chunks under ``max_chunk_size``.

        A unit that does not fit flushes the current chunk; the next chunk
        starts with the flushed chunk's overlap text.  Positions refer to
        the new (non-overlap) content inside *text*.
        """
        chunks: list[TextChunk] = []
        current = ""
        current_start = 0
        current_end = 0
        first_unit = 0
        cursor = 0

        for index, unit in enumerate(units):
            found = text.find(unit, cursor)
            unit_start = found if found != -1 else cursor
            unit_end = unit_start + len(unit)
            cursor = unit_end

            if current and len(current) + len(unit) + len(joiner) > opts.max_chunk_size:
                chunks.append(
                    self._make_chunk(current, current_start, current_end, chunk_type, first_unit)
                )
                overlap = self._overlap_text(current, opts.overlap)
                current = f"{overlap}{joiner}{unit}" if overlap else unit
                current_start = unit_start
                first_unit = index
            elif current:
                current = f"{current}{joiner}{unit}"
            else:
                current = unit
                current_start = unit_start
                first_unit = index
            current_end = unit_end

        if current.strip():
            chunks.append(
                self._make_chunk(current, current_start, current_end, chunk_type, first_unit)
            )
        return chunks

    def _chunk_by_size(self, text: str, opts: ChunkOptions) -> list[TextChunk]:
        """Cut fixed windows, each pulled back to the best separator before its limit."""
        chunks: list[TextChunk] = []
        length = len(text)
        position = 0

        while position < length:
            end = min(position + opts.max_chunk_size, length)
            if end < length:
                boundary = self._find_breakpoint(text, position, end)
                if boundary > position + opts.min_chunk_size:
                    end = boundary

            content = text[position:end].strip()
            if content:
                chunks.append(self._make_chunk(content, position, end, ChunkType.ARBITRARY))

            if end >= length:
                break
            position = self._overlap_start(text, max(end - opts.overlap, position + 1), end)

        return chunks

    @staticmethod
    def _find_breakpoint(text: str, start: int, end: int) -> int:
        """Return the index just past the best separator in ``text[start:end]``."""
        for separator in _SEPARATORS:
            index = text.rfind(separator, start, end)
            if index > start:
                return index + len(separator)
        return end

    @staticmethod
    def _overlap_start(text: str, start: int, end: int) -> int:
        """Move a window start inside ``text[start:end]`` forward to a boundary.

        Same rule as :meth:`_overlap_text`: just past a sentence end in the
        first half of the span, otherwise at the next word start.  Returns
        *end* when the span holds no boundary at all.
        """
        span = text[start:end]
        sentence_end = _SENTENCE_TAIL.search(span)
        if sentence_end and sentence_end.start() < len(span) / 2:
            return start + sentence_end.end()
        if start == 0 or text[start - 1].isspace():
            return start
        space = _WHITESPACE.search(span)
        if space:
            return start + space.end()
        return end

    @staticmethod
    def _overlap_text(text: str, overlap: int) -> str:
        """Return the tail of *text* used to open the next chunk.

        The raw tail of *overlap* characters is moved forward to just past
        a sentence end found in its first half, otherwise to just past its
        first space.
        """
        if overlap <= 0:
            return ""
        if len(text) <= overlap:
            return text

        tail = text[-overlap:]
        sentence_end = _SENTENCE_TAIL.search(tail)
        if sentence_end and sentence_end.start() < overlap / 2:
            return tail[sentence_end.end():]

        space = tail.find(" ")
        if space != -1:
            return tail[space + 1:]
        return tail

    # ------------------------------------------------------------------
    # Assembly
    # ------------------------------------------------------------------

    @staticmethod
    def _make_chunk(
        content: str,
        start: int,
        end: int,
        chunk_type: ChunkType,
        paragraph_index: int | None = None,
    ) -> TextChunk:
        content = content.strip()
        return TextChunk(
            content=content,
            chunk_index=0,
            token_count=estimate_tokens(content),
            start_position=start,
            end_position=end,
            metadata=ChunkMetadata(
                word_count=len(content.split()),
                character_count=len(content),
                chunk_type=chunk_type,
                paragraph_index=paragraph_index if chunk_type is ChunkType.PARAGRAPH else None,
            ),
        )

    @staticmethod
    def _finalize(chunks: list[TextChunk], opts: ChunkOptions) -> list[TextChunk]:
        """Drop a short trailing fragment and renumber chunks from zero.

        A document whose whole text is shorter than ``min_chunk_size``
        still yields its single chunk.
        """
        if len(chunks) > 1 and len(chunks[-1].content) < opts.min_chunk_size:
            chunks = chunks[:-1]
        return [
            chunk.model_copy(update={"chunk_index": index})
            for index, chunk in enumerate(chunks)
        ]
