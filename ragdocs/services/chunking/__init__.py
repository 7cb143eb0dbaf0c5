"""Text chunking for retrieval: paragraph, sentence and fixed-window strategies."""

from ragdocs.services.chunking.chunker import TextChunker, estimate_tokens

__all__ = ["TextChunker", "estimate_tokens"]
