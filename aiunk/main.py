"""
AI Unk backend application.

FastAPI application with structured logging, error handling,
and request context middleware.
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from datetime import UTC, datetime

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import SQLAlchemyError

from aiunk import __version__
from aiunk.api import (
    admin_router,
    auth_router,
    conversations_router,
    health_router,
    progress_router,
)
from aiunk.auth import cleanup_expired_sessions
from aiunk.config import get_settings
from aiunk.core import get_logger, setup_logging
from aiunk.core.middleware import (
    RequestContextMiddleware,
    RequestSizeLimitMiddleware,
    setup_exception_handlers,
)
from aiunk.db import (
    dispose_engine,
    get_session_factory,
    reset_session_factory,
    verify_database_connection,
)
from aiunk.providers import ProviderRegistry

logger = get_logger(__name__)


def _prune_expired_sessions() -> None:
    try:
        with get_session_factory()() as db:
            removed = cleanup_expired_sessions(db)
    except SQLAlchemyError as exc:
        logger.warning(
            "Expired session cleanup skipped - run 'alembic upgrade head'",
            data={"error": str(exc)},
        )
        return
    if removed:
        logger.info("Removed expired sessions", data={"count": removed})


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler for startup/shutdown."""
    settings = get_settings()

    setup_logging(
        level=settings.log_level,
        json_output=not settings.debug,
        log_file=settings.log_file or None,
    )
    logger.info(
        "Starting AI Unk backend",
        data={
            "host": settings.host,
            "port": settings.port,
            "debug": settings.debug,
            "cors_origins": settings.cors_origins_list,
        },
    )

    # Does NOT run migrations
    if verify_database_connection():
        logger.info("Database connection verified")
        _prune_expired_sessions()
    else:
        logger.warning("Database connection failed - run 'alembic upgrade head' to initialize")

    _app.state.start_time = datetime.now(UTC)

    # Tests may install their own registry before startup
    registry_created = False
    if not hasattr(_app.state, "provider_registry"):
        _app.state.provider_registry = ProviderRegistry(settings)
        registry_created = True

    if not settings.identity_bridge_token:
        logger.warning("IDENTITY_BRIDGE_TOKEN not set - logins are disabled")

    yield

    logger.info("Shutting down AI Unk backend")
    if registry_created:
        await _app.state.provider_registry.aclose()
    dispose_engine()
    reset_session_factory()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="AI Unk",
        description="Conversational mentor backend with admin-switchable AI providers",
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
    )

    # Setup exception handlers (must be before middleware)
    setup_exception_handlers(app)

    # Order matters - last added = first executed
    app.add_middleware(RequestSizeLimitMiddleware, max_bytes=settings.max_request_bytes)
    app.add_middleware(RequestContextMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID"],
    )

    app.include_router(health_router)
    app.include_router(auth_router)
    app.include_router(conversations_router)
    app.include_router(progress_router)
    app.include_router(admin_router)

    return app


# Create application instance
app = create_app()
