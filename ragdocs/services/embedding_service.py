"""Batched embedding generation with truncation, retries and cost accounting.

Sits between the pipeline and an :class:`IEmbeddingProvider`:

1. **Truncate** -- any input whose estimated token count (``ceil(chars/4)``)
   exceeds the model input limit is cut to ``limit * 4`` characters and a
   warning is logged.
2. **Batch** -- inputs are sent in sequential batches of at most
   ``batch_size`` (provider maximum 100), with a short pause between
   batches as backpressure against provider rate limits.
3. **Retry** -- each batch call runs under a :class:`RetryPolicy`
   (linear backoff by default).  When a batch exhausts its attempts the
   whole call raises :class:`ProviderError`; vectors from earlier batches
   are discarded.
4. **Cost** -- ``total_tokens * rate[model]``.  Unknown models cost 0 and
   log a warning.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable
from typing import Any

import structlog

from ragdocs.interfaces.embedding_provider import IEmbeddingProvider
from ragdocs.models.results import CostEstimate, EmbeddingBatchResult, EmbeddingResponse
from ragdocs.services.chunking.chunker import estimate_tokens
from ragdocs.utils.errors import EmptyInputError, ProviderError, ValidationError
from ragdocs.utils.retry import RetryPolicy

logger = structlog.get_logger(logger_name=__name__)

MAX_BATCH_SIZE = 100
DEFAULT_BATCH_SIZE = 50
MAX_INPUT_TOKENS = 8191

# USD per token.
_COST_PER_TOKEN: dict[str, float] = {
    "text-embedding-ada-002": 0.0000001,
    "text-embedding-3-small": 0.00000002,
    "text-embedding-3-large": 0.00000013,
}

_MODEL_INFO: dict[str, dict[str, Any]] = {
    "text-embedding-ada-002": {"dimensions": 1536, "description": "Second-generation general model"},
    "text-embedding-3-small": {"dimensions": 1536, "description": "Small third-generation model"},
    "text-embedding-3-large": {"dimensions": 3072, "description": "Large third-generation model"},
}


class EmbeddingService:
    """Turns chunk texts and queries into vectors through one provider.

    Parameters
    ----------
    provider:
        The embedding backend.
    retry_policy:
        Policy wrapped around every provider call.  Defaults to 3 attempts
        with ``1s * attempt`` backoff.
    batch_size:
        Default batch size (``<= 100``).
    batch_pause:
        Seconds to wait between consecutive batches.
    sleep:
        Coroutine used for the inter-batch pause; tests pass a recorder.
    max_input_tokens:
        Per-input token limit before truncation.
    """

    def __init__(
        self,
        provider: IEmbeddingProvider,
        retry_policy: RetryPolicy | None = None,
        batch_size: int = DEFAULT_BATCH_SIZE,
        batch_pause: float = 0.1,
        sleep: Callable[[float], Awaitable[None]] | None = None,
        max_input_tokens: int = MAX_INPUT_TOKENS,
    ) -> None:
        self._provider = provider
        self._sleep = sleep or asyncio.sleep
        self._retry = retry_policy or RetryPolicy(max_attempts=3, base_delay=1.0, sleep=self._sleep)
        self._batch_size = self._check_batch_size(batch_size)
        self._batch_pause = batch_pause
        self._max_input_tokens = max_input_tokens

    @property
    def default_model(self) -> str:
        return self._provider.get_default_model()

    @property
    def provider(self) -> IEmbeddingProvider:
        return self._provider

    # ------------------------------------------------------------------
    # Generation
    # ------------------------------------------------------------------

    async def generate_embeddings(
        self,
        texts: list[str],
        model: str | None = None,
        batch_size: int | None = None,
        retry_attempts: int | None = None,
        retry_delay: float | None = None,
    ) -> EmbeddingBatchResult:
        """Embed *texts* in sequential batches.

        Parameters
        ----------
        texts:
            Chunk contents, in order.
        model:
            Model name; the provider default when ``None``.
        batch_size:
            Overrides the service's batch size for this call (``<= 100``).
        retry_attempts:
            Overrides the retry policy's attempt budget for this call.
        retry_delay:
            Overrides the retry policy's base delay in seconds for this
            call; the wait before retry *n* is ``retry_delay * n`` under the
            default linear schedule.

        Returns
        -------
        EmbeddingBatchResult
            One vector per input in input order, total tokens, cost and
            elapsed time.

        Raises
        ------
        ProviderError
            A batch failed on every attempt, or failed with a
            non-retryable error.
        ValidationError
            ``batch_size`` or ``retry_attempts`` out of range.
        """
        model = model or self.default_model
        size = self._check_batch_size(batch_size) if batch_size is not None else self._batch_size
        retry = self._retry
        if retry_attempts is not None or retry_delay is not None:
            retry = retry.replace(max_attempts=retry_attempts, base_delay=retry_delay)

        if not texts:
            return EmbeddingBatchResult(model=model)

        start = time.monotonic()
        prepared = [self.prepare_input(text) for text in texts]
        batches = [prepared[i : i + size] for i in range(0, len(prepared), size)]

        embeddings: list[list[float]] = []
        total_tokens = 0

        logger.info(
            "embedding_generation_started",
            inputs=len(texts),
            batches=len(batches),
            batch_size=size,
            model=model,
        )

        for batch_number, batch in enumerate(batches, start=1):
            response = await retry.run(
                lambda batch=batch: self._embed_batch(batch, model),
                operation_name=f"embedding_batch_{batch_number}",
            )
            embeddings.extend(response.vectors)
            total_tokens += response.total_tokens

            if batch_number < len(batches) and self._batch_pause > 0:
                await self._sleep(self._batch_pause)

        cost = self.calculate_cost(total_tokens, model)
        elapsed_ms = int((time.monotonic() - start) * 1000)
        logger.info(
            "embedding_generation_complete",
            inputs=len(texts),
            total_tokens=total_tokens,
            cost=cost,
            elapsed_ms=elapsed_ms,
            model=model,
        )
        return EmbeddingBatchResult(
            embeddings=embeddings,
            total_tokens=total_tokens,
            cost=cost,
            processing_time_ms=elapsed_ms,
            model=model,
        )

    async def generate_query_embedding(self, query: str, model: str | None = None) -> list[float]:
        """Embed a single search query.

        Raises
        ------
        EmptyInputError
            *query* is blank.
        ProviderError
            The provider call failed after retries.
        """
        if not query or not query.strip():
            raise EmptyInputError("Query text cannot be empty")

        model = model or self.default_model
        prepared = self.prepare_input(query.strip())
        response = await self._retry.run(
            lambda: self._embed_batch([prepared], model),
            operation_name="query_embedding",
        )
        logger.debug(
            "query_embedding_generated",
            query_length=len(query),
            tokens=response.total_tokens,
            model=model,
        )
        return response.vectors[0]

    async def _embed_batch(self, batch: list[str], model: str) -> EmbeddingResponse:
        response = await self._provider.embed(batch, model=model)
        if len(response.vectors) != len(batch):
            raise ProviderError(
                message=(
                    f"Provider returned {len(response.vectors)} vectors for {len(batch)} inputs"
                ),
                provider_name=self._provider.get_provider_name(),
                retryable=False,
            )
        return response

    # ------------------------------------------------------------------
    # Input preparation and cost
    # ------------------------------------------------------------------

    def prepare_input(self, text: str) -> str:
        """Truncate *text* when its estimated tokens exceed the model input limit."""
        estimated = estimate_tokens(text)
        if estimated <= self._max_input_tokens:
            return text

        truncated = text[: self._max_input_tokens * 4].strip()
        logger.warning(
            "embedding_input_truncated",
            original_length=len(text),
            truncated_length=len(truncated),
            estimated_tokens=estimated,
            max_tokens=self._max_input_tokens,
        )
        return truncated

    def calculate_cost(self, tokens: int, model: str | None = None) -> float:
        """Return the USD cost of *tokens* for *model* (0 for unknown models)."""
        model = model or self.default_model
        rate = _COST_PER_TOKEN.get(model)
        if rate is None:
            logger.warning("embedding_cost_unknown_model", model=model)
            return 0.0
        return tokens * rate

    def estimate_cost(self, texts: list[str], model: str | None = None) -> CostEstimate:
        """Estimate tokens and cost for *texts* without calling the provider."""
        model = model or self.default_model
        tokens = sum(estimate_tokens(text) for text in texts)
        return CostEstimate(
            estimated_tokens=tokens,
            estimated_cost=self.calculate_cost(tokens, model),
            model=model,
        )

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @staticmethod
    def available_models() -> list[dict[str, Any]]:
        """Describe the models with a known price."""
        return [
            {"name": name, "cost_per_token": _COST_PER_TOKEN[name], **info}
            for name, info in _MODEL_INFO.items()
        ]

    async def health_check(self) -> dict[str, str]:
        """Embed a short test string once (no retries) and report the outcome."""
        model = self.default_model
        try:
            await self._embed_batch(["health check"], model)
        except ProviderError as exc:
            logger.error("embedding_health_check_failed", error=str(exc), model=model)
            return {"status": "unhealthy", "model": model, "error": exc.message}
        return {"status": "healthy", "model": model}

    @staticmethod
    def _check_batch_size(batch_size: int) -> int:
        if not 1 <= batch_size <= MAX_BATCH_SIZE:
            raise ValidationError(
                f"batch_size must be between 1 and {MAX_BATCH_SIZE}, got {batch_size}"
            )
        return batch_size
