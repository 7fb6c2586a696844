"""FastAPI application: routers, middleware, status endpoints and lifespan."""

import os
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from rtdn_collector import __version__
from rtdn_collector.config import get_config
from rtdn_collector.logging_config import configure_logging, get_logger
from rtdn_collector.middleware import ContextMiddleware, RequestLoggingMiddleware
from rtdn_collector.models import StatusCounts, StatusResponse
from rtdn_collector.repositories.record_store import (
    get_data_store,
    get_pull_store,
    get_push_store,
    get_subscription_store,
)
from rtdn_collector.services.pull_listener import get_streaming_listener, reset_streaming_listener

logger = get_logger(__name__)


def _stores():
    return (get_push_store(), get_pull_store(), get_subscription_store(), get_data_store())


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Load every snapshot on startup; close the streaming pull on shutdown."""
    logger.info("collector_starting", version=__version__)
    try:
        counts = {store.name: store.count() for store in _stores()}
        logger.info("collector_started", records=counts, **get_config().redacted())
        yield
    finally:
        reset_streaming_listener()
        logger.info("collector_stopped")


async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    """Last-resort handler: log with traceback and answer 500."""
    logger.error(
        "unhandled_exception",
        path=request.url.path,
        error=str(exc),
        error_type=type(exc).__name__,
        exc_info=True,
    )
    return JSONResponse(
        status_code=500,
        content={
            "error": "internal_server_error",
            "message": str(exc) or "An unexpected error occurred",
        },
    )


def create_app() -> FastAPI:
    """Create and configure FastAPI application.

    Returns:
        Configured FastAPI application instance
    """
    configure_logging(
        log_level=os.getenv("LOG_LEVEL", "INFO"),
        json_format=os.getenv("LOG_FORMAT", "json").lower() == "json",
    )

    app = FastAPI(
        title="RTDN Collector",
        description="Collects Google Play subscription notifications and enriches them with subscription state",
        version=__version__,
        lifespan=lifespan,
    )

    app.add_middleware(
        RequestLoggingMiddleware,
        include_request_details=os.getenv("LOG_REQUEST_DETAILS", "true").lower() == "true",
    )
    app.add_middleware(ContextMiddleware)
    app.add_exception_handler(Exception, handle_unexpected_error)

    from rtdn_collector.api import data, pull, push, subscriptions

    for module in (push, pull, subscriptions, data):
        app.include_router(module.router)

    @app.get("/", tags=["Service"])
    async def root() -> dict[str, str]:
        return {"service": "rtdn-collector", "status": "running", "version": __version__}

    @app.get("/status", response_model=StatusResponse, tags=["Service"])
    async def status() -> StatusResponse:
        """Record counts per collection, listener state and redacted configuration."""
        push_store, pull_store, subscription_store, data_store = _stores()
        return StatusResponse(
            pullListenerActive=get_streaming_listener().is_active(),
            counts=StatusCounts(
                push=push_store.count(),
                pull=pull_store.count(),
                subscriptions=subscription_store.count(),
                data=data_store.count(),
            ),
            config=get_config().redacted(),
        )

    logger.info("app_created", routes=len(app.routes))
    return app


app = create_app()
