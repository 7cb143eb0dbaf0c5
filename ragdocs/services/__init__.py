"""Business logic for document ingestion and retrieval.

Pipeline stages: **extract -> chunk -> embed -> store**, then search.

1. **Extract** (extraction/ / TextExtractor) -- one processor per declared
   format turns raw bytes into normalized text.

2. **Chunk** (chunking/ / TextChunker) -- paragraph, sentence or
   fixed-window splitting with overlap.

3. **Embed** (embedding_service.py / EmbeddingService) -- batched provider
   calls with retry and cost accounting.

4. **Store** (via IDocumentStore) -- documents, chunks and vectors.

5. **Search** (retrieval/ / SearchService) -- semantic, hybrid, LLM
   context and similar-document queries.

DocumentService orchestrates stages 1-4 and owns the document lifecycle.
"""

from ragdocs.services.chunking import TextChunker
from ragdocs.services.document_service import DocumentService
from ragdocs.services.embedding_service import EmbeddingService
from ragdocs.services.extraction import TextExtractor
from ragdocs.services.retrieval import SearchService

__all__ = [
    "DocumentService",
    "EmbeddingService",
    "SearchService",
    "TextChunker",
    "TextExtractor",
]
