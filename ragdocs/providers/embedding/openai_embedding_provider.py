"""OpenAI-compatible embedding provider adapter.

Wraps the ``openai`` async client to implement :class:`IEmbeddingProvider`.
One :meth:`OpenAIEmbeddingProvider.embed` call is one ``embeddings.create``
request; batching, retries and cost live in the embedding service.

SDK exceptions are mapped onto the ragdocs provider errors so the retry
policy can tell transient failures from rejected input:

=====================================  ==============================  =========
openai exception                       ragdocs error                   retryable
=====================================  ==============================  =========
``RateLimitError``                     ``RateLimitedError``            yes
``BadRequestError`` (context length)   ``InputTooLargeError``          no
``BadRequestError`` (content policy)   ``ContentPolicyViolationError`` no
other 4xx ``APIStatusError``           ``ProviderError``               no
timeouts, connection errors, 5xx       ``ProviderError``               yes
=====================================  ==============================  =========
"""

from __future__ import annotations

import openai
import structlog

from ragdocs.config.settings import Settings
from ragdocs.interfaces.embedding_provider import IEmbeddingProvider
from ragdocs.models.results import EmbeddingResponse
from ragdocs.utils.errors import (
    ContentPolicyViolationError,
    InputTooLargeError,
    ProviderError,
    RateLimitedError,
)

logger = structlog.get_logger(logger_name=__name__)

# Known embedding model dimensions.
_MODEL_DIMENSIONS: dict[str, int] = {
    "text-embedding-ada-002": 1536,
    "text-embedding-3-small": 1536,
    "text-embedding-3-large": 3072,
}

_CONTEXT_LENGTH_MARKERS = ("context_length_exceeded", "maximum context length", "too many tokens")
_CONTENT_POLICY_MARKERS = ("content_policy", "content policy", "flagged")


class OpenAIEmbeddingProvider(IEmbeddingProvider):
    """Embedding provider backed by an OpenAI-compatible embeddings API.

    Uses ``text-embedding-ada-002`` (1536 dims) unless
    ``openai_embedding_model`` names another model.  When
    ``openai_base_url`` is configured the client points at that URL.
    """

    def __init__(self, settings: Settings, client: openai.AsyncOpenAI | None = None) -> None:
        self._api_key = settings.openai_api_key

        client_kwargs: dict = {"api_key": self._api_key, "max_retries": 0}
        if settings.openai_base_url:
            client_kwargs["base_url"] = settings.openai_base_url

        # The SDK's own retries are disabled; the embedding service's
        # retry policy owns backoff.
        self._client = client or openai.AsyncOpenAI(**client_kwargs)
        self._model = settings.openai_embedding_model or "text-embedding-ada-002"
        self._provider_label = (
            "openai-compatible_embedding" if settings.openai_base_url else "openai_embedding"
        )

    # ------------------------------------------------------------------
    # IEmbeddingProvider implementation
    # ------------------------------------------------------------------

    async def embed(self, texts: list[str], model: str | None = None) -> EmbeddingResponse:
        """Embed one batch in a single ``embeddings.create`` request."""
        model = model or self._model
        if not texts:
            return EmbeddingResponse(vectors=[], total_tokens=0, model=model)

        try:
            response = await self._client.embeddings.create(input=texts, model=model)
        except openai.APIError as exc:
            raise self._map_error(exc) from exc

        # The API returns items with an explicit index; keep input order.
        items = sorted(response.data, key=lambda item: item.index)
        total_tokens = response.usage.total_tokens if response.usage else 0
        logger.debug(
            "openai_embedding_batch",
            model=model,
            provider=self._provider_label,
            batch_size=len(texts),
            tokens=total_tokens,
        )
        return EmbeddingResponse(
            vectors=[item.embedding for item in items],
            total_tokens=total_tokens,
            model=model,
        )

    def get_dimension(self, model: str | None = None) -> int:
        return _MODEL_DIMENSIONS.get(model or self._model, 1536)

    def get_default_model(self) -> str:
        return self._model

    def get_provider_name(self) -> str:
        return self._provider_label

    def is_available(self) -> bool:
        """Return ``True`` if an API key is configured."""
        return bool(self._api_key)

    # ------------------------------------------------------------------
    # Error mapping
    # ------------------------------------------------------------------

    def _map_error(self, exc: openai.APIError) -> ProviderError:
        name = self.get_provider_name()
        message = f"{self._provider_label} API error: {exc}"

        if isinstance(exc, openai.RateLimitError):
            return RateLimitedError(message=message, provider_name=name)

        if isinstance(exc, openai.BadRequestError):
            detail = f"{getattr(exc, 'code', '') or ''} {exc}".lower()
            if any(marker in detail for marker in _CONTEXT_LENGTH_MARKERS):
                return InputTooLargeError(message=message, provider_name=name)
            if any(marker in detail for marker in _CONTENT_POLICY_MARKERS):
                return ContentPolicyViolationError(message=message, provider_name=name)
            return ProviderError(message=message, provider_name=name, retryable=False)

        if isinstance(exc, openai.APIStatusError) and exc.status_code < 500:
            return ProviderError(message=message, provider_name=name, retryable=False)

        # Timeouts, connection failures and 5xx responses.
        return ProviderError(message=message, provider_name=name, retryable=True)
