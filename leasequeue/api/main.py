"""
FastAPI application entry point.
"""

import logging
import time
from collections.abc import Awaitable, Callable
from contextlib import asynccontextmanager
from uuid import uuid4

import uvicorn
from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse, Response

from leasequeue import __version__
from leasequeue.api.routes import health_router, messages_router
from leasequeue.config import Settings, get_settings
from leasequeue.db import Database, MessageStore
from leasequeue.errors import StoreUnavailable, ValidationError
from leasequeue.observability.logging import bind_context, clear_context, setup_logging
from leasequeue.observability.metrics import get_metrics, setup_metrics
from leasequeue.observability.tracing import (
    instrument_fastapi,
    instrument_sqlalchemy,
    setup_tracing,
)
from leasequeue.service import Clock, MessageQueue
from leasequeue.types.api import ErrorResponse

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"
STORE_RETRY_AFTER_SECONDS = "1"


def create_app(
    settings: Settings | None = None,
    database: Database | None = None,
    clock: Clock | None = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    The database handle, store and queue are built here and stored on
    ``app.state``. A database passed in by the caller is not disposed on
    shutdown.

    Args:
        settings: Application settings. Defaults to the cached settings.
        database: Existing database handle to use instead of building one.
        clock: Override for the queue's clock.

    Returns:
        FastAPI: The configured application instance.
    """
    settings = settings or get_settings()
    owns_database = database is None
    database = database or Database.from_settings(settings)

    store = MessageStore(database, claim_max_rounds=settings.claim_max_rounds)
    queue_kwargs = {"clock": clock} if clock is not None else {}
    queue = MessageQueue.from_settings(store, settings, **queue_kwargs)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Startup
        setup_logging(settings)
        setup_tracing(settings)
        if settings.otel_enabled:
            instrument_sqlalchemy(database.engine.sync_engine)
        if settings.auto_create_schema:
            await database.create_schema()

        logger.info(
            "Application started",
            extra={
                "backend": database.backend,
                "skip_locked": database.supports_skip_locked,
            },
        )

        yield

        # Shutdown
        if owns_database:
            await database.dispose()
        logger.info("Application shutdown")

    app = FastAPI(
        title="Lease Queue API",
        description="At-least-once message queue with visibility-timeout leases",
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    app.state.settings = settings
    app.state.database = database
    app.state.queue = queue

    setup_metrics()
    app.middleware("http")(_observe_request)
    _register_exception_handlers(app)

    app.include_router(health_router)
    app.include_router(messages_router)

    if settings.otel_enabled:
        instrument_fastapi(app)

    return app


async def _observe_request(
    request: Request,
    call_next: Callable[[Request], Awaitable[Response]],
) -> Response:
    """Bind a request id to the log context and record API metrics."""
    request_id = request.headers.get(REQUEST_ID_HEADER) or uuid4().hex
    clear_context()
    bind_context(request_id=request_id)

    started = time.perf_counter()
    response = await call_next(request)
    duration = time.perf_counter() - started

    route = request.scope.get("route")
    endpoint = getattr(route, "path", request.url.path)
    get_metrics().record_api_request(
        method=request.method,
        endpoint=endpoint,
        status=response.status_code,
        duration_seconds=duration,
    )

    response.headers[REQUEST_ID_HEADER] = request_id
    return response


def _register_exception_handlers(app: FastAPI) -> None:
    """Map queue errors to HTTP responses."""

    @app.exception_handler(ValidationError)
    async def validation_error_handler(request: Request, exc: ValidationError) -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content=ErrorResponse(error="validation_error", detail=str(exc)).model_dump(),
        )

    @app.exception_handler(StoreUnavailable)
    async def store_unavailable_handler(request: Request, exc: StoreUnavailable) -> JSONResponse:
        logger.error(
            "Store unavailable",
            extra={"operation": exc.operation, "path": request.url.path},
        )
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content=ErrorResponse(
                error="store_unavailable",
                detail=f"Store unavailable during {exc.operation}",
                retryable=True,
            ).model_dump(),
            headers={"Retry-After": STORE_RETRY_AFTER_SECONDS},
        )


def run() -> None:
    """Run the API server."""
    settings = get_settings()

    uvicorn.run(
        "leasequeue.api.main:create_app",
        factory=True,
        host=settings.api_host,
        port=settings.api_port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    run()
