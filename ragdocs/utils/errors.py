"""Custom exception hierarchy for ragdocs.

All application exceptions inherit from :class:`RagDocsError`, which
carries an optional ``provider_name`` so error handlers can identify which
component or external service (e.g. "openai", "sqlite_store") caused the
failure.

The hierarchy follows the ingestion and retrieval pipeline:

    RagDocsError  (base -- catch-all for any ragdocs error)
    +-- UnsupportedFormatError     (extraction: unknown / unreadable format)
    +-- EmptyContentError          (extraction: nothing left after normalizing)
    +-- ChunkingFailure            (chunking produced zero chunks)
    +-- ProviderError              (embedding provider call failed)
    |   +-- RateLimitedError           (retryable)
    |   +-- InputTooLargeError         (not retryable)
    |   +-- ContentPolicyViolationError (not retryable)
    +-- NotFoundError              (document absent or owned by someone else)
    +-- ValidationError            (malformed options or input)
    |   +-- EmptyInputError            (blank query / input text)
    +-- DataIntegrityError         (persisted data violates an invariant)
    +-- ConfigurationError         (startup / missing config)

Callers handle errors at the level they care about -- the embedding
service retries on ``ProviderError.retryable``, the document service turns
extraction and chunking errors into a ``failed`` status, and the API maps
each class to an HTTP status code.
"""


class RagDocsError(Exception):
    """Base exception for all ragdocs errors.

    Every subclass carries a human-readable ``message`` and an optional
    ``provider_name`` identifying which component triggered the error.
    The ``__str__`` method prefixes the provider name in brackets for
    structured log output, e.g. ``[openai] Rate limit exceeded``.
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        provider_name: str | None = None,
    ) -> None:
        self._message = message
        self._provider_name = provider_name
        super().__init__(self._message)

    @property
    def message(self) -> str:
        return self._message

    @property
    def provider_name(self) -> str | None:
        return self._provider_name

    def __str__(self) -> str:
        if self._provider_name:
            return f"[{self._provider_name}] {self._message}"
        return self._message


# ---------------------------------------------------------------------------
# Extraction / chunking errors
# ---------------------------------------------------------------------------

class UnsupportedFormatError(RagDocsError):
    """Raised when a declared file type has no extractor, or the bytes cannot be parsed."""

    def __init__(
        self,
        message: str = "Unsupported document format",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class EmptyContentError(RagDocsError):
    """Raised when extraction yields no text after normalization."""

    def __init__(
        self,
        message: str = "No text content could be extracted",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class ChunkingFailure(RagDocsError):
    """Raised when the chunker produces zero chunks for non-empty text."""

    def __init__(
        self,
        message: str = "No chunks were created from the document",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Embedding provider errors
# ---------------------------------------------------------------------------

class ProviderError(RagDocsError):
    """Raised when an embedding provider call fails.

    ``retryable`` tells the retry policy whether another attempt can
    succeed.  Transient failures (timeouts, 5xx, rate limits) are
    retryable; malformed or rejected input is not.
    """

    def __init__(
        self,
        message: str = "Embedding provider call failed",
        provider_name: str | None = None,
        retryable: bool = True,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)
        self._retryable = retryable

    @property
    def retryable(self) -> bool:
        return self._retryable


class RateLimitedError(ProviderError):
    """Raised when the provider signals that its rate limit was exceeded."""

    def __init__(
        self,
        message: str = "Rate limit exceeded",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name, retryable=True)


class InputTooLargeError(ProviderError):
    """Raised when an input exceeds the model's context window."""

    def __init__(
        self,
        message: str = "Input exceeds the model's maximum length",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name, retryable=False)


class ContentPolicyViolationError(ProviderError):
    """Raised when the provider refuses an input on content-policy grounds."""

    def __init__(
        self,
        message: str = "Input rejected by the provider's content policy",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name, retryable=False)


# ---------------------------------------------------------------------------
# Lookup / validation errors
# ---------------------------------------------------------------------------

class NotFoundError(RagDocsError):
    """Raised when a document does not exist or belongs to another owner."""

    def __init__(
        self,
        message: str = "Document not found",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class ValidationError(RagDocsError):
    """Raised when caller-supplied options or inputs are malformed."""

    def __init__(
        self,
        message: str = "Invalid input",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class EmptyInputError(ValidationError):
    """Raised when a query or input string is blank."""

    def __init__(
        self,
        message: str = "Input text cannot be empty",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Storage / configuration errors
# ---------------------------------------------------------------------------

class DataIntegrityError(RagDocsError):
    """Raised when persisted data violates an invariant (e.g. vector dimension)."""

    def __init__(
        self,
        message: str = "Stored data failed an integrity check",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class ConfigurationError(RagDocsError):
    """Raised when configuration is invalid or missing at startup."""

    def __init__(
        self,
        message: str = "Invalid or missing configuration",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)
