"""FastAPI application factory for chatsearch."""

from __future__ import annotations

from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import ORJSONResponse
from loguru import logger

from chatsearch import __version__
from chatsearch.config import Settings, get_settings
from chatsearch.config_store import FileConfigStore
from chatsearch.db import ChatRepository, get_database_path, run_migrations
from chatsearch.routes import chats, config, health, metrics, search
from chatsearch.services.search import (
    SearchAggregator,
    SearxNGClient,
    SerpAPIProvider,
    TavilyProvider,
)
from chatsearch.utils.errors import (
    ApiError,
    api_error_handler,
    http_exception_handler,
    request_validation_exception_handler,
    unexpected_exception_handler,
)
from chatsearch.utils.logging import configure_logging, logging_middleware
from chatsearch.utils.ratelimit import RateLimiter, RateLimitMiddleware, SQLiteRateLimitStore

OPENAPI_TAGS: list[dict[str, str]] = [
    {"name": "health", "description": "Database probe and configured service flags."},
    {
        "name": "search",
        "description": "Web search with SerpAPI to Tavily fallback, and SearxNG categories.",
    },
    {"name": "chats", "description": "Chat and message history storage."},
    {"name": "config", "description": "Provider keys and endpoints stored in config.toml."},
]


def create_app(settings: Settings | None = None) -> FastAPI:
    """Instantiate the FastAPI application with its services and routes.

    Raises :class:`~chatsearch.config.ConfigurationError` when required
    environment variables are missing.
    """
    settings = settings or get_settings()
    configure_logging(settings.log_level)
    app = FastAPI(
        title="chatsearch",
        description="Search aggregation, SearxNG proxy and chat history backend.",
        version=__version__,
        default_response_class=ORJSONResponse,
        openapi_tags=OPENAPI_TAGS,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(GZipMiddleware, minimum_size=1000)

    database_path = run_migrations(get_database_path(settings.postgres_url))
    limiter = RateLimiter(
        SQLiteRateLimitStore(database_path),
        settings.rate_limit_tokens,
        settings.rate_limit_interval_seconds,
        bypass=settings.rate_limit_bypass,
    )
    # Prometheus scrapes must not consume client budgets.
    app.add_middleware(RateLimitMiddleware, limiter=limiter, exempt_paths=("/metrics",))
    app.middleware("http")(logging_middleware)

    config_store = FileConfigStore(settings.config_file, overrides=settings.config_overrides())
    aggregator = SearchAggregator(
        SerpAPIProvider(settings.serpapi_api_key, timeout=settings.search_timeout),
        TavilyProvider(settings.tavily_api_key, timeout=settings.search_timeout),
    )

    app.state.settings = settings
    app.state.database_path = database_path
    app.state.rate_limiter = limiter
    app.state.config_store = config_store
    app.state.search_aggregator = aggregator
    app.state.searxng_client = SearxNGClient(config_store, timeout=settings.search_timeout)
    app.state.chat_repository = ChatRepository(database_path)

    app.include_router(health.router)
    app.include_router(metrics.router)
    app.include_router(search.router)
    app.include_router(chats.router)
    app.include_router(config.router)

    app.add_exception_handler(Exception, unexpected_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(ApiError, api_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_exception_handler)

    logger.bind(
        environment=settings.environment,
        database=str(database_path),
        config_file=str(settings.config_file),
    ).info("app.created")
    return app


__all__ = ["OPENAPI_TAGS", "create_app"]
