"""FastAPI middleware for request logging and log context binding."""

import time
import uuid
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from rtdn_collector.logging_config import bind_context, clear_context, get_logger

logger = get_logger(__name__)

COLLECTIONS = ("push", "pull", "subscriptions", "data")


def _elapsed_ms(started: float) -> float:
    return round((time.perf_counter() - started) * 1000, 2)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Request/response logging with a per-request correlation id.

    The request id, method and path are bound to the log context, so every
    event logged while handling the request carries them. The id is echoed
    back in the X-Request-ID header.
    """

    def __init__(self, app: ASGIApp, include_request_details: bool = True):
        super().__init__(app)
        self.include_request_details = include_request_details

    def _request_details(self, request: Request) -> dict:
        if not self.include_request_details:
            return {}
        return {
            "client_host": request.client.host if request.client else "unknown",
            "user_agent": request.headers.get("user-agent"),
            "content_length": request.headers.get("content-length"),
        }

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = str(uuid.uuid4())
        bind_context(request_id=request_id, method=request.method, path=request.url.path)
        logger.info("request_started", **self._request_details(request))

        started = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception as exc:
            logger.error(
                "request_failed",
                duration_ms=_elapsed_ms(started),
                error=str(exc),
                error_type=type(exc).__name__,
                exc_info=True,
            )
            raise
        else:
            logger.info(
                "request_completed",
                status_code=response.status_code,
                duration_ms=_elapsed_ms(started),
            )
            response.headers["X-Request-ID"] = request_id
            return response
        finally:
            clear_context()


class ContextMiddleware(BaseHTTPMiddleware):
    """Binds the addressed collection and record id to the log context.

    Paths look like /push/{id}, /pull/{id}, /subscriptions/{id} or
    /data/{id}; action segments such as /pull/start are not record ids.
    """

    ACTIONS = {"start", "stop", "fetch", "lookup"}

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        parts = [part for part in request.url.path.split("/") if part]

        if parts and parts[0] in COLLECTIONS:
            bind_context(collection=parts[0])
            if len(parts) > 1 and parts[1] not in self.ACTIONS:
                bind_context(record_id=parts[1])

        return await call_next(request)
