"""Unit tests for the OpenAI embedding provider adapter."""

from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import httpx
import openai
import pytest

from ragdocs.config.settings import Settings
from ragdocs.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider
from ragdocs.utils.errors import (
    ContentPolicyViolationError,
    InputTooLargeError,
    ProviderError,
    RateLimitedError,
)

_REQUEST = httpx.Request("POST", "https://api.openai.com/v1/embeddings")


def _settings(**overrides) -> Settings:
    defaults = {
        "openai_api_key": "sk-test",
        "openai_base_url": "",
        "openai_embedding_model": "text-embedding-3-small",
    }
    defaults.update(overrides)
    return Settings(**defaults)


def _client(create: AsyncMock) -> MagicMock:
    client = MagicMock()
    client.embeddings.create = create
    return client


def _status_error(cls: type[openai.APIStatusError], status: int, message: str, code: str | None = None):
    response = httpx.Response(status, request=_REQUEST)
    body = {"message": message, "code": code} if code else None
    return cls(message, response=response, body=body)


# ======================================================================
# Requests
# ======================================================================


class TestOpenAIEmbeddingProvider:
    def test_identity(self) -> None:
        provider = OpenAIEmbeddingProvider(_settings(), client=MagicMock())

        assert provider.get_provider_name() == "openai_embedding"
        assert provider.get_default_model() == "text-embedding-3-small"
        assert provider.get_dimension() == 1536
        assert provider.get_dimension("text-embedding-3-large") == 3072

    def test_base_url_changes_label(self) -> None:
        provider = OpenAIEmbeddingProvider(
            _settings(openai_base_url="http://localhost:8080/v1"), client=MagicMock()
        )
        assert provider.get_provider_name() == "openai-compatible_embedding"

    def test_is_available_depends_on_key(self) -> None:
        assert OpenAIEmbeddingProvider(_settings(), client=MagicMock()).is_available() is True
        assert (
            OpenAIEmbeddingProvider(_settings(openai_api_key=""), client=MagicMock()).is_available()
            is False
        )

    @pytest.mark.asyncio
    async def test_embed_restores_input_order(self) -> None:
        response = SimpleNamespace(
            data=[
                SimpleNamespace(index=1, embedding=[0.0, 1.0]),
                SimpleNamespace(index=0, embedding=[1.0, 0.0]),
            ],
            usage=SimpleNamespace(total_tokens=7),
        )
        create = AsyncMock(return_value=response)
        provider = OpenAIEmbeddingProvider(_settings(), client=_client(create))

        result = await provider.embed(["first", "second"])

        assert result.vectors == [[1.0, 0.0], [0.0, 1.0]]
        assert result.total_tokens == 7
        assert result.model == "text-embedding-3-small"
        create.assert_awaited_once_with(input=["first", "second"], model="text-embedding-3-small")

    @pytest.mark.asyncio
    async def test_embed_empty_batch_skips_request(self) -> None:
        create = AsyncMock()
        provider = OpenAIEmbeddingProvider(_settings(), client=_client(create))

        result = await provider.embed([])

        assert result.vectors == []
        create.assert_not_awaited()


# ======================================================================
# Error mapping
# ======================================================================


class TestErrorMapping:
    @pytest.mark.asyncio
    async def test_rate_limit_is_retryable(self) -> None:
        error = _status_error(openai.RateLimitError, 429, "Rate limit reached")
        provider = OpenAIEmbeddingProvider(_settings(), client=_client(AsyncMock(side_effect=error)))

        with pytest.raises(RateLimitedError) as exc_info:
            await provider.embed(["x"])
        assert exc_info.value.retryable is True
        assert exc_info.value.provider_name == "openai_embedding"

    @pytest.mark.asyncio
    async def test_context_length_is_input_too_large(self) -> None:
        error = _status_error(
            openai.BadRequestError,
            400,
            "This model's maximum context length is 8191 tokens",
            code="context_length_exceeded",
        )
        provider = OpenAIEmbeddingProvider(_settings(), client=_client(AsyncMock(side_effect=error)))

        with pytest.raises(InputTooLargeError) as exc_info:
            await provider.embed(["x"])
        assert exc_info.value.retryable is False

    @pytest.mark.asyncio
    async def test_flagged_input_is_content_policy_violation(self) -> None:
        error = _status_error(
            openai.BadRequestError, 400, "Input was flagged", code="content_policy_violation"
        )
        provider = OpenAIEmbeddingProvider(_settings(), client=_client(AsyncMock(side_effect=error)))

        with pytest.raises(ContentPolicyViolationError):
            await provider.embed(["x"])

    @pytest.mark.asyncio
    async def test_auth_error_is_not_retryable(self) -> None:
        error = _status_error(openai.AuthenticationError, 401, "Invalid API key")
        provider = OpenAIEmbeddingProvider(_settings(), client=_client(AsyncMock(side_effect=error)))

        with pytest.raises(ProviderError) as exc_info:
            await provider.embed(["x"])
        assert exc_info.value.retryable is False

    @pytest.mark.asyncio
    async def test_server_error_is_retryable(self) -> None:
        error = _status_error(openai.InternalServerError, 503, "Service unavailable")
        provider = OpenAIEmbeddingProvider(_settings(), client=_client(AsyncMock(side_effect=error)))

        with pytest.raises(ProviderError) as exc_info:
            await provider.embed(["x"])
        assert exc_info.value.retryable is True

    @pytest.mark.asyncio
    async def test_timeout_is_retryable(self) -> None:
        error = openai.APITimeoutError(request=_REQUEST)
        provider = OpenAIEmbeddingProvider(_settings(), client=_client(AsyncMock(side_effect=error)))

        with pytest.raises(ProviderError) as exc_info:
            await provider.embed(["x"])
        assert exc_info.value.retryable is True
