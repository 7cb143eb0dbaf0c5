"""Utility modules for ragdocs.

- **errors** -- exception hierarchy rooted at RagDocsError; each pipeline
  stage raises its own subclass so callers can handle failures precisely.
- **logging** -- structlog setup: coloured console output in development,
  JSON in production.
- **retry** -- bounded retry policy with pluggable backoff and an
  injectable sleep, used around every embedding provider call.
"""

from ragdocs.utils.errors import (
    ChunkingFailure,
    ConfigurationError,
    ContentPolicyViolationError,
    DataIntegrityError,
    EmptyContentError,
    EmptyInputError,
    InputTooLargeError,
    NotFoundError,
    ProviderError,
    RagDocsError,
    RateLimitedError,
    UnsupportedFormatError,
    ValidationError,
)
from ragdocs.utils.logging import configure_logging, get_logger
from ragdocs.utils.retry import RetryPolicy, backoff_for, exponential_backoff, linear_backoff

__all__ = [
    "ChunkingFailure",
    "ConfigurationError",
    "ContentPolicyViolationError",
    "DataIntegrityError",
    "EmptyContentError",
    "EmptyInputError",
    "InputTooLargeError",
    "NotFoundError",
    "ProviderError",
    "RagDocsError",
    "RateLimitedError",
    "RetryPolicy",
    "UnsupportedFormatError",
    "ValidationError",
    "backoff_for",
    "configure_logging",
    "exponential_backoff",
    "get_logger",
    "linear_backoff",
]
