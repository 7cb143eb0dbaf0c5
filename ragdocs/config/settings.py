"""Application settings loaded from environment variables via pydantic-settings.

Values are read, highest priority first, from:

  1. Environment variables -- e.g. ``OPENAI_API_KEY=sk-abc123``
  2. A ``.env`` file in the working directory (local development)
  3. The defaults declared below

Field ``openai_api_key`` maps to ``OPENAI_API_KEY`` and so on; matching is
case-insensitive.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """ragdocs application settings.

    Environment variables override defaults. Loaded from .env file when present.
    """

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # === Embedding provider ===
    # Empty key = "not configured"; main.py logs a warning and embedding
    # calls fail until one is set.
    openai_api_key: str = ""
    openai_base_url: str = ""  # OpenAI-compatible endpoint override
    openai_embedding_model: str = "text-embedding-ada-002"

    # === Embedding pipeline ===
    embedding_batch_size: int = 50
    embedding_retry_attempts: int = 3
    embedding_retry_delay: float = 1.0  # base delay in seconds
    embedding_retry_backoff: str = "linear"  # "linear" (delay * attempt) or "exponential"
    embedding_batch_pause: float = 0.1  # seconds between sequential batches

    # === Chunking defaults ===
    chunk_max_size: int = 1000
    chunk_overlap: int = 100
    chunk_min_size: int = 100

    # === Retrieval defaults ===
    search_default_limit: int = 10
    search_default_threshold: float = 0.7
    hybrid_default_threshold: float = 0.5
    similar_documents_centroid_chunks: int = 3
    similar_documents_min_similarity: float = 0.6

    # === Storage ===
    database_path: str = "data/ragdocs.db"
    upload_dir: str = "data/uploads"
    # Documents stuck in "processing" longer than this are marked failed
    # by the stale-document watchdog.
    stale_processing_minutes: int = 30

    # === App Config ===
    app_host: str = "0.0.0.0"
    app_port: int = 8000
    app_env: str = "development"
    log_level: str = "INFO"

    def has_embedding_provider(self) -> bool:
        """Return ``True`` when an embedding API key is configured."""
        return bool(self.openai_api_key)
