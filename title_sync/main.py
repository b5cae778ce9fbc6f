"""FastAPI application entry point."""

import asyncio
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError

from title_sync.api.v1.thread_title_router import router as thread_title_router
from title_sync.core.config import settings
from title_sync.core.exceptions import (
    AppException,
    app_exception_handler,
    validation_exception_handler,
)
from title_sync.core.redis import close_redis, init_redis
from title_sync.dependencies import (
    close_providers,
    get_thread_title_service,
    reset_thread_title_service,
)
from title_sync.schemas.response_schema import ApiResponse, success_response

logger = structlog.get_logger()


async def drain_title_attempts(grace_seconds: float) -> None:
    """Let title attempts still running finish before the store closes."""
    service = get_thread_title_service()
    try:
        async with asyncio.timeout(grace_seconds):
            await service.wait_for_pending()
    except TimeoutError:
        logger.warning(
            "Title attempts still running at shutdown",
            in_flight=service.tracker.in_flight_count,
        )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler for startup and shutdown events."""
    logger.info(
        "Starting application",
        app_name=settings.app.name,
        environment=settings.app.env,
        strategy=settings.thread_title.strategy,
        channels=sorted(
            name
            for name, enabled in (
                ("slack", settings.channels.slack_enabled),
                ("telegram", settings.channels.telegram_enabled),
            )
            if enabled
        ),
    )
    await init_redis()
    yield
    if settings.app.drains_on_shutdown:
        await drain_title_attempts(settings.app.shutdown_grace_seconds)
    reset_thread_title_service()
    await close_providers()
    await close_redis()
    logger.info("Shutting down application")


app = FastAPI(
    title=settings.app.name,
    description="Cross-platform conversation thread title synchronization",
    version="0.1.0",
    lifespan=lifespan,
    debug=settings.app.debug,
)

# Exception handlers
app.add_exception_handler(AppException, app_exception_handler)  # type: ignore[arg-type]
app.add_exception_handler(RequestValidationError, validation_exception_handler)  # type: ignore[arg-type]


@app.get("/health", response_model=ApiResponse[dict])
async def health_check() -> dict:
    """Health check endpoint."""
    return success_response({"status": "healthy"})


@app.get("/", response_model=ApiResponse[dict])
async def root() -> dict:
    """Root endpoint."""
    return success_response(
        {
            "app": settings.app.name,
            "version": "0.1.0",
            "docs": "/docs",
        }
    )


# Register routers
app.include_router(thread_title_router)
