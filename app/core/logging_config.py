"""
Structured logging configuration with structlog.

- All logs go to STDOUT/STDERR for container log collection
- JSON output in production, colored console output elsewhere
- Uvicorn and other stdlib loggers are rendered through the same processors
- Correlation IDs bound by the access log middleware appear on every entry
"""

import logging
import logging.config
import time
from typing import Any, Optional

import structlog
from structlog.types import EventDict, Processor

from app.config import Settings, settings

_app_context: dict = {
    "service": "group-directory",
    "app": settings.APP_NAME,
    "version": settings.APP_VERSION,
    "environment": settings.ENVIRONMENT,
}


def add_app_context(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """Add service name, app name, version and environment to every entry."""
    for key, value in _app_context.items():
        event_dict.setdefault(key, value)
    return event_dict


def add_severity_level(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """
    Add explicit severity level for better log aggregation filtering.

    Maps Python logging levels to standard severity labels.
    """
    if "level" in event_dict:
        event_dict["severity"] = event_dict["level"].upper()
    return event_dict


def add_trace_id_alias(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """Expose the correlation id as trace_id as well."""
    if "correlation_id" in event_dict:
        event_dict["trace_id"] = event_dict["correlation_id"]
    elif "request_id" in event_dict:
        event_dict["trace_id"] = event_dict["request_id"]

    return event_dict


def setup_logging(app_settings: Optional[Settings] = None) -> None:
    """
    Configure structlog and the standard library logging module.

    Production renders JSON to STDOUT; every other environment gets the
    colored console renderer. ERROR and above are also sent to STDERR.
    """
    app_settings = app_settings or settings
    _app_context.update(
        app=app_settings.APP_NAME,
        version=app_settings.APP_VERSION,
        environment=app_settings.ENVIRONMENT,
    )

    log_level_name = app_settings.LOG_LEVEL.upper()
    if not isinstance(getattr(logging, log_level_name, None), int):
        log_level_name = "INFO"
    json_output = app_settings.ENVIRONMENT == "production"

    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,  # correlation_id, etc
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        add_app_context,
        add_severity_level,
        add_trace_id_alias,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    renderer: Processor
    if json_output:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=True)

    structlog.configure(
        processors=shared_processors + [renderer],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.config.dictConfig({
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "structured": {
                "()": structlog.stdlib.ProcessorFormatter,
                "processor": renderer,
                "foreign_pre_chain": shared_processors,
            },
        },
        "handlers": {
            "default": {
                "level": log_level_name,
                "class": "logging.StreamHandler",
                "stream": "ext://sys.stdout",
                "formatter": "structured",
            },
            "error": {
                "level": "ERROR",
                "class": "logging.StreamHandler",
                "stream": "ext://sys.stderr",
                "formatter": "structured",
            },
        },
        "loggers": {
            "": {
                "handlers": ["default", "error"],
                "level": log_level_name,
                "propagate": False,
            },
            "app": {
                "handlers": ["default", "error"],
                "level": log_level_name,
                "propagate": False,
            },
            "uvicorn": {
                "handlers": ["default"],
                "level": log_level_name,
                "propagate": False,
            },
            "uvicorn.error": {
                "handlers": ["default", "error"],
                "level": log_level_name,
                "propagate": False,
            },
            # Replaced by AccessLogMiddleware
            "uvicorn.access": {
                "handlers": [],
                "level": "CRITICAL",
                "propagate": False,
            },
            "multipart": {
                "handlers": ["default"],
                "level": "WARNING",
                "propagate": False,
            },
        },
    })

    logger = get_logger(__name__)
    logger.info(
        "logging_configured",
        log_level=log_level_name,
        environment=app_settings.ENVIRONMENT,
        format="json" if json_output else "console",
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """
    Get a structured logger instance.

    Usage:
        logger = get_logger(__name__)
        logger.info("listing_created", listing_id="...", has_image=True)
    """
    return structlog.get_logger(name)


class PerformanceLogger:
    """
    Context manager for performance timing and logging.

    Usage:
        with PerformanceLogger("store_append", logger, path=str(path)):
            write_document(...)
    """

    def __init__(self, operation: str, logger: structlog.stdlib.BoundLogger, **context):
        self.operation = operation
        self.logger = logger
        self.context = context
        self.start_time = None
        self.duration_ms = 0.0

    def __enter__(self):
        self.start_time = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.duration_ms = (time.perf_counter() - self.start_time) * 1000

        if exc_type is None:
            self.logger.debug(
                "operation_completed",
                operation=self.operation,
                duration_ms=round(self.duration_ms, 2),
                **self.context
            )
        else:
            self.logger.error(
                "operation_failed",
                operation=self.operation,
                duration_ms=round(self.duration_ms, 2),
                error_type=exc_type.__name__,
                error=str(exc_val),
                **self.context
            )

        # Don't suppress exceptions
        return False
