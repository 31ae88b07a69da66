"""
Process-wide log configuration.

Queue modules log through the standard library (`logging.getLogger` with
`extra={...}`). `setup_logging` routes those records through structlog so
worker, reaper and API processes all emit the same JSON or console lines,
tagged with the service name and any bound worker context.
"""

import logging
import sys
from typing import Any

import structlog
from opentelemetry import trace
from structlog.types import Processor

from jobqueue import __version__
from jobqueue.config import Settings, get_settings

# Libraries that log every statement or request at INFO
QUIET_LOGGERS = (
    "sqlalchemy.engine",
    "aiosqlite",
    "alembic.runtime.migration",
    "uvicorn.access",
    "httpx",
)


def add_trace_ids(logger: Any, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    """
    Stamp the active OpenTelemetry span's ids onto the record.

    Claim, execute and ack spans are open around most worker log lines, so
    these ids tie a line to its job's trace.
    """
    span_context = trace.get_current_span().get_span_context()
    if span_context.is_valid:
        event_dict["trace_id"] = trace.format_trace_id(span_context.trace_id)
        event_dict["span_id"] = trace.format_span_id(span_context.span_id)
    return event_dict


def service_tagger(settings: Settings) -> Processor:
    """Build a processor stamping every record with the service name and version."""

    def add_service(logger: Any, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
        event_dict.setdefault("service", settings.otel_service_name)
        event_dict.setdefault("version", __version__)
        return event_dict

    return add_service


def setup_logging(settings: Settings | None = None) -> None:
    """
    Configure structured logging for the process.

    Args:
        settings: Source of `log_level`, `log_format` and the service name.
            Defaults to the environment settings.
    """
    settings = settings or get_settings()
    log_level = logging.getLevelName(settings.log_level.upper())
    if not isinstance(log_level, int):
        log_level = logging.INFO

    shared_processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        add_trace_ids,
        service_tagger(settings),
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.stdlib.ExtraAdder(),
    ]

    if settings.log_format == "json":
        # logger.exception() tracebacks become a string field
        render_chain: list[Any] = [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        render_chain = [structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())]

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            *render_chain,
        ],
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)
    # Sole root handler, so repeated calls do not duplicate lines
    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(log_level)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def bind_context(**kwargs: Any) -> None:
    """
    Attach key/value pairs to every later record from this context.

    The worker binds its `worker_id` once at startup.
    """
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_context() -> None:
    """Drop everything `bind_context` attached."""
    structlog.contextvars.clear_contextvars()
