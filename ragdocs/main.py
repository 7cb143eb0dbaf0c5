"""ragdocs FastAPI application entry point.

Wires together the store, embedding provider and services via dependency
injection.  Loads configuration from ``.env`` and ``config/config.yaml``
and configures structured logging.

Also provides :func:`build_services` for the CLI and scripts, which need
the same object graph without the web server.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import timedelta
from typing import Any

import structlog
import uvicorn
from fastapi import FastAPI

from ragdocs import __version__
from ragdocs.api.middleware import (
    ErrorHandlingMiddleware,
    RequestLoggingMiddleware,
    configure_cors,
)
from ragdocs.api.routes import router as api_router
from ragdocs.config.loader import load_config
from ragdocs.config.settings import Settings
from ragdocs.interfaces.document_store import IDocumentStore
from ragdocs.models.options import ChunkOptions
from ragdocs.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider
from ragdocs.providers.store.sqlite_store import SQLiteDocumentStore
from ragdocs.services.chunking.chunker import TextChunker
from ragdocs.services.document_service import DocumentService
from ragdocs.services.embedding_service import EmbeddingService
from ragdocs.services.extraction.extractor import TextExtractor
from ragdocs.services.retrieval.search_service import SearchService
from ragdocs.utils.logging import configure_logging, get_logger
from ragdocs.utils.retry import RetryPolicy

# ---------------------------------------------------------------------------
# Module-level settings & logging
# ---------------------------------------------------------------------------

settings = Settings()

configure_logging(
    log_level=settings.log_level,
    json_output=(settings.app_env == "production"),
)
_logger: structlog.BoundLogger = get_logger(__name__)


# ---------------------------------------------------------------------------
# Full DI assembly
# ---------------------------------------------------------------------------


def _build_all(app_settings: Settings) -> dict[str, Any]:
    """Construct every provider and service instance.

    Returns a flat dict of named components to be stored on ``app.state``.
    Nothing here performs I/O; call ``store.initialize()`` before use.
    """
    app_config = load_config(settings=app_settings)
    search_config = app_config.get("search", {})
    similar_config = search_config.get("similar_documents", {})

    # -- Store --
    store: IDocumentStore = SQLiteDocumentStore(db_path=app_settings.database_path)

    # -- Embedding --
    embedding_provider = OpenAIEmbeddingProvider(settings=app_settings)
    if not embedding_provider.is_available():
        _logger.warning(
            "embedding_provider_not_configured",
            hint="Set OPENAI_API_KEY; uploads with embeddings will fail until then.",
        )
    retry_policy = RetryPolicy(
        max_attempts=app_settings.embedding_retry_attempts,
        base_delay=app_settings.embedding_retry_delay,
        backoff=app_settings.embedding_retry_backoff,
    )
    embedding_service = EmbeddingService(
        provider=embedding_provider,
        retry_policy=retry_policy,
        batch_size=app_settings.embedding_batch_size,
        batch_pause=app_settings.embedding_batch_pause,
    )

    # -- Pipeline --
    chunker = TextChunker(
        default_options=ChunkOptions.build(
            max_chunk_size=app_settings.chunk_max_size,
            overlap=app_settings.chunk_overlap,
            min_chunk_size=app_settings.chunk_min_size,
        )
    )
    document_service = DocumentService(
        extractor=TextExtractor(),
        chunker=chunker,
        embedding_service=embedding_service,
        store=store,
        upload_dir=app_settings.upload_dir,
    )
    search_service = SearchService(
        store=store,
        embedding_service=embedding_service,
        centroid_chunks=similar_config.get(
            "centroid_chunks", app_settings.similar_documents_centroid_chunks
        ),
        similar_min_similarity=similar_config.get(
            "min_similarity", app_settings.similar_documents_min_similarity
        ),
    )

    return {
        "settings": app_settings,
        "store": store,
        "embedding_provider": embedding_provider,
        "embedding_service": embedding_service,
        "document_service": document_service,
        "search_service": search_service,
    }


async def build_services(custom_settings: Settings | None = None) -> dict[str, Any]:
    """Build and initialise the service graph for CLI or scripting use."""
    components = _build_all(custom_settings or settings)
    await components["store"].initialize()
    return components


# ---------------------------------------------------------------------------
# Application lifespan (startup / shutdown)
# ---------------------------------------------------------------------------


@asynccontextmanager
async def _lifespan(application: FastAPI):  # noqa: ANN201
    """Initialise the store and services on startup."""
    components = _build_all(settings)

    for key, value in components.items():
        setattr(application.state, key, value)

    await components["store"].initialize()

    # Anything still "processing" from a previous run cannot finish now.
    reaped = await components["document_service"].reclassify_stale_documents(
        timedelta(minutes=settings.stale_processing_minutes)
    )

    _logger.info(
        "app_startup",
        version=__version__,
        environment=settings.app_env,
        store=components["store"].get_provider_name(),
        embedding_provider=components["embedding_provider"].get_provider_name(),
        stale_documents_reaped=len(reaped),
    )

    yield

    _logger.info("app_shutdown")


# ---------------------------------------------------------------------------
# FastAPI application factory
# ---------------------------------------------------------------------------


def create_app() -> FastAPI:
    """Build and configure the FastAPI application."""
    application = FastAPI(
        title="ragdocs API",
        version=__version__,
        description=(
            "Upload documents, extract and chunk their text, embed the chunks, "
            "and retrieve relevant excerpts with semantic or hybrid search."
        ),
        lifespan=_lifespan,
    )

    # -- Middleware (order matters: last added = first executed) --
    application.add_middleware(ErrorHandlingMiddleware)
    application.add_middleware(RequestLoggingMiddleware)
    configure_cors(application)

    # -- API routes --
    application.include_router(api_router)

    return application


app = create_app()

# ---------------------------------------------------------------------------
# CLI entry point
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    uvicorn.run(
        "ragdocs.main:app",
        host=settings.app_host,
        port=settings.app_port,
        reload=(settings.app_env == "development"),
    )
