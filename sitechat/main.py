"""sitechat FastAPI application entry point.

Wires together all providers and services via dependency injection.
Loads configuration from ``config/config.yaml``, ``.env`` and the
environment, configures structured logging, and mounts the API routes.

``build_components`` is shared with the CLI, which needs the same object
graph without a web server.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any

import httpx
import structlog
import uvicorn
from fastapi import FastAPI

from sitechat.api.middleware import (
    ErrorHandlingMiddleware,
    RequestLoggingMiddleware,
    configure_cors,
)
from sitechat.api.routes import router as api_router
from sitechat.config.loader import load_settings
from sitechat.config.settings import Settings
from sitechat.interfaces.indexing_state_store import IIndexingStateStore
from sitechat.providers.completion.openai_completion_provider import OpenAICompletionProvider
from sitechat.providers.content.wordpress_provider import WordPressContentSource
from sitechat.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider
from sitechat.providers.indexing_state.memory_state_store import MemoryIndexingStateStore
from sitechat.providers.indexing_state.sqlite_state_store import SQLiteIndexingStateStore
from sitechat.providers.vector_store.supabase_provider import SupabaseVectorStore
from sitechat.services.chat_service import ChatService
from sitechat.services.extraction.text_extractor import TextExtractor
from sitechat.services.ingestion.chunker import CharacterChunker
from sitechat.services.ingestion.indexing_service import IndexingService
from sitechat.services.retrieval.hybrid_retriever import HybridRetriever
from sitechat.utils.logging import configure_logging, get_logger

_logger: structlog.BoundLogger = get_logger(__name__)

_VERSION = "0.1.0"


# ---------------------------------------------------------------------------
# Provider selection
# ---------------------------------------------------------------------------


def _build_state_store(app_settings: Settings) -> IIndexingStateStore:
    """Pick the indexing state backend named by ``indexing_state_backend``."""
    if app_settings.indexing_state_backend == "sqlite":
        return SQLiteIndexingStateStore(
            db_path=app_settings.indexing_state_db_path,
            ttl=app_settings.indexing_state_ttl_seconds,
            log_limit=app_settings.indexing_log_limit,
        )
    return MemoryIndexingStateStore(
        ttl=app_settings.indexing_state_ttl_seconds,
        log_limit=app_settings.indexing_log_limit,
    )


# ---------------------------------------------------------------------------
# Full DI assembly
# ---------------------------------------------------------------------------


def build_components(app_settings: Settings) -> dict[str, Any]:
    """Construct every provider and service instance.

    Returns a flat dict of named components, stored on ``app.state`` by the
    web server and used directly by the CLI.  The caller owns
    ``http_client`` and must close it.
    """
    http_client = httpx.AsyncClient(timeout=app_settings.http_timeout_seconds)

    embedding_provider = OpenAIEmbeddingProvider(settings=app_settings)
    completion_provider = OpenAICompletionProvider(
        settings=app_settings, http_client=http_client
    )
    vector_store = SupabaseVectorStore(settings=app_settings, http_client=http_client)
    content_source = WordPressContentSource(settings=app_settings, http_client=http_client)
    state_store = _build_state_store(app_settings)

    indexing_service = IndexingService(
        content_source=content_source,
        extractor=TextExtractor(),
        chunker=CharacterChunker(
            max_chunk_size=app_settings.max_chunk_size,
            overlap=app_settings.chunk_overlap,
        ),
        embedding_provider=embedding_provider,
        vector_store=vector_store,
        state_store=state_store,
        settings=app_settings,
    )
    indexing_service.register(content_source)

    retriever = HybridRetriever(
        embedding_provider=embedding_provider,
        vector_store=vector_store,
        settings=app_settings,
    )
    chat_service = ChatService(
        retriever=retriever,
        completion_provider=completion_provider,
        settings=app_settings,
    )

    return {
        "settings": app_settings,
        "http_client": http_client,
        "embedding_provider": embedding_provider,
        "completion_provider": completion_provider,
        "vector_store": vector_store,
        "content_source": content_source,
        "state_store": state_store,
        "indexing_service": indexing_service,
        "retriever": retriever,
        "chat_service": chat_service,
    }


async def initialize_components(components: dict[str, Any]) -> None:
    """Run one-time async setup (database tables) for built components."""
    state_store = components["state_store"]
    if isinstance(state_store, SQLiteIndexingStateStore):
        await state_store.initialize()


# ---------------------------------------------------------------------------
# Application lifespan (startup / shutdown)
# ---------------------------------------------------------------------------


@asynccontextmanager
async def _lifespan(application: FastAPI):  # noqa: ANN201
    """Build components on startup unless they were injected, clean up on shutdown."""
    owned = not hasattr(application.state, "chat_service")
    if owned:
        components = build_components(application.state.settings)
        for key, value in components.items():
            setattr(application.state, key, value)
        await initialize_components(components)

    app_settings: Settings = application.state.settings
    _logger.info(
        "app_startup",
        version=_VERSION,
        environment=app_settings.app_env,
        site_url=app_settings.site_url,
        store_configured=app_settings.is_store_configured(),
        openai_configured=app_settings.is_openai_configured(),
    )

    yield

    if owned:
        http_client: httpx.AsyncClient = application.state.http_client
        await http_client.aclose()
        _logger.info("app_shutdown", message="HTTP client closed")


# ---------------------------------------------------------------------------
# FastAPI application factory
# ---------------------------------------------------------------------------


def create_app(
    app_settings: Settings | None = None,
    components: dict[str, Any] | None = None,
) -> FastAPI:
    """Build and configure the FastAPI application.

    Parameters
    ----------
    app_settings:
        Resolved settings; loaded with :func:`load_settings` when omitted.
    components:
        Pre-built components (tests inject mocks here).  When omitted they
        are built during application startup.
    """
    app_settings = app_settings or load_settings()
    configure_logging(
        log_level=app_settings.log_level,
        json_output=app_settings.app_env == "production",
        app_env=app_settings.app_env,
    )

    application = FastAPI(
        title="sitechat API",
        version=_VERSION,
        description=(
            "Retrieval-augmented chat over a CMS site's content: indexing, "
            "hybrid retrieval and streamed answers."
        ),
        lifespan=_lifespan,
    )
    application.state.settings = app_settings
    for key, value in (components or {}).items():
        setattr(application.state, key, value)

    # -- Middleware (order matters: last added = first executed) --
    application.add_middleware(ErrorHandlingMiddleware)
    application.add_middleware(RequestLoggingMiddleware)
    configure_cors(application, allowed_origins=app_settings.allowed_origins)

    application.include_router(api_router)
    return application


def main() -> None:
    app_settings = load_settings()
    uvicorn.run(
        "sitechat.main:create_app",
        factory=True,
        host=app_settings.app_host,
        port=app_settings.app_port,
        reload=(app_settings.app_env == "development"),
    )


if __name__ == "__main__":
    main()
