"""Structured logging setup built on structlog.

Every log line carries:
- the service name and log level
- the request id bound by the request middleware
- collection / record / message ids when a handler binds them
- an ISO-8601 timestamp
"""

import logging
import os
import sys
from typing import Any, Optional

import structlog
from structlog.typing import EventDict, Processor

SERVICE_NAME = "rtdn-collector"

# Third-party loggers that are chatty at INFO.
_NOISY_LOGGERS = (
    "googleapiclient.discovery",
    "googleapiclient.discovery_cache",
    "google.auth.transport.requests",
    "google.cloud.pubsub_v1.subscriber._protocol.streaming_pull_manager",
)


def add_service_name(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """Tag every event with the service name."""
    event_dict.setdefault("service", SERVICE_NAME)
    return event_dict


def drop_debug_events(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """Drop debug events unless LOG_LEVEL asks for them."""
    if method_name == "debug" and os.getenv("LOG_LEVEL", "INFO").upper() != "DEBUG":
        raise structlog.DropEvent
    return event_dict


def configure_logging(log_level: str = "INFO", json_format: bool = True) -> None:
    """Configure structlog and the stdlib root logger.

    Args:
        log_level: DEBUG, INFO, WARNING, ERROR or CRITICAL
        json_format: JSON lines when True, colored console output otherwise
    """
    level = getattr(logging, log_level.upper(), logging.INFO)

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        add_service_name,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if level > logging.DEBUG:
        processors.append(drop_debug_events)

    if json_format:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(
            structlog.dev.ConsoleRenderer(
                colors=True,
                exception_formatter=structlog.dev.plain_traceback,
            )
        )

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str = __name__) -> structlog.stdlib.BoundLogger:
    """Return a structlog logger for the given module name."""
    return structlog.get_logger(name)


def short_token(token: Optional[str], keep: int = 16) -> Optional[str]:
    """Shorten a purchase token for log output."""
    if not token:
        return token
    return token if len(token) <= keep else token[:keep] + "..."


def bind_context(**kwargs: Any) -> None:
    """Bind values to every subsequent log event in this context.

    Example:
        bind_context(collection="pull", record_id="1700000000000-42")
    """
    structlog.contextvars.bind_contextvars(**kwargs)


def unbind_context(*keys: str) -> None:
    """Remove previously bound context values."""
    structlog.contextvars.unbind_contextvars(*keys)


def clear_context() -> None:
    """Remove all bound context values."""
    structlog.contextvars.clear_contextvars()
