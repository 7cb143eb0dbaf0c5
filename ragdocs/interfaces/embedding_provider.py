"""Abstract base class for text-embedding service providers.

Defines the contract for turning a batch of strings into vectors.  The
embedding service owns batching, truncation, retries and cost accounting;
a provider only makes one remote call per :meth:`IEmbeddingProvider.embed`
and maps its failures onto the
:class:`~ragdocs.utils.errors.ProviderError` family.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from ragdocs.models.results import EmbeddingResponse


# Concrete implementations:
#   OpenAIEmbeddingProvider — text-embedding-ada-002 / 3-small / 3-large
# Located in: ragdocs/providers/embedding/
class IEmbeddingProvider(ABC):
    """Contract for the remote embedding call used by the embedding service."""

    @abstractmethod
    async def embed(self, texts: list[str], model: str | None = None) -> EmbeddingResponse:
        """Embed one batch of texts in a single provider call.

        Parameters
        ----------
        texts:
            The batch to embed.  The caller keeps batches within the
            provider's per-call limit.
        model:
            Model name; ``None`` selects :meth:`get_default_model`.

        Returns
        -------
        EmbeddingResponse
            One vector per input, positionally aligned, plus the token
            usage reported by the provider.

        Raises
        ------
        ragdocs.utils.errors.ProviderError
            Or one of its sub-kinds (``RateLimitedError``,
            ``InputTooLargeError``, ``ContentPolicyViolationError``) when
            the provider signals them distinctly.
        """

    @abstractmethod
    def get_dimension(self, model: str | None = None) -> int:
        """Return the vector length produced by *model* (default model when ``None``)."""

    @abstractmethod
    def get_default_model(self) -> str:
        """Return the model used when callers do not name one."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a short identifier, e.g. ``"openai_embedding"``."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the provider is configured (credentials present)."""
