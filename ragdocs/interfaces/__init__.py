"""Abstract interfaces (ports) for ragdocs' external collaborators.

Services depend on these ABCs only; concrete adapters live under
``ragdocs/providers/`` and are wired together in ``ragdocs/main.py``.
"""

from ragdocs.interfaces.document_store import IDocumentStore
from ragdocs.interfaces.embedding_provider import IEmbeddingProvider

__all__ = ["IDocumentStore", "IEmbeddingProvider"]
