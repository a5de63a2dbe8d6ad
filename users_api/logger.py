"""Structured logging for the users API.

structlog renders through the stdlib ``logging`` module so uvicorn, SQLAlchemy
and application records share one handler. Debug mode prints coloured console
lines; everything else emits one JSON object per line. When
``OTEL_EXPORTER_OTLP_ENDPOINT`` is set and the ``otel`` extra is installed,
records are also shipped over OTLP/HTTP.

Credentials never reach a handler: ``redact_sensitive`` masks password, hash
and token fields on every event.
"""

import logging
import sys
import time
from collections.abc import AsyncIterator, Iterator
from contextlib import asynccontextmanager, contextmanager
from typing import Any

import structlog
from structlog.stdlib import BoundLogger
from structlog.types import EventDict, Processor, WrappedLogger

from users_api.config import parse_key_value_pairs, settings

REDACTED = "[REDACTED]"
SENSITIVE_KEYS = frozenset(
    {
        "authorization",
        "password",
        "password_hash",
        "secret_key",
        "token",
    }
)


def redact_sensitive(_: WrappedLogger, __: str, event_dict: EventDict) -> EventDict:
    """Mask credential values passed as log context."""
    for key in SENSITIVE_KEYS.intersection(event_dict):
        event_dict[key] = REDACTED
    return event_dict


def _build_processors() -> list[Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        redact_sensitive,
        structlog.processors.add_log_level,
        structlog.processors.format_exc_info,
        structlog.processors.TimeStamper(fmt="iso"),
    ]


def _select_renderer() -> Processor:
    if settings.debug:
        return structlog.dev.ConsoleRenderer()
    return structlog.processors.JSONRenderer()


def _build_otlp_logs_endpoint(endpoint: str) -> str:
    base = endpoint.rstrip("/")
    return base if base.endswith("/v1/logs") else f"{base}/v1/logs"


def _otel_resource_attributes() -> dict[str, str]:
    attributes = {"service.name": settings.otel_service_name}
    attributes.update(parse_key_value_pairs(settings.otel_resource_attributes))
    return attributes


def _configure_otel_logging() -> None:
    endpoint = settings.otel_exporter_otlp_endpoint
    if not endpoint:
        return

    try:
        from opentelemetry._logs import set_logger_provider
        from opentelemetry.exporter.otlp.proto.http._log_exporter import OTLPLogExporter
        from opentelemetry.sdk._logs import LoggerProvider, LoggingHandler
        from opentelemetry.sdk._logs.export import BatchLogRecordProcessor
        from opentelemetry.sdk.resources import Resource
    except ImportError:
        logging.getLogger(__name__).warning(
            "OTEL log exporter not available; install the 'otel' extra",
            exc_info=True,
        )
        return

    provider = LoggerProvider(resource=Resource.create(_otel_resource_attributes()))
    provider.add_log_record_processor(
        BatchLogRecordProcessor(OTLPLogExporter(endpoint=_build_otlp_logs_endpoint(endpoint)))
    )
    set_logger_provider(provider)
    logging.getLogger().addHandler(LoggingHandler(level=logging.INFO, logger_provider=provider))


def configure_logging(level: int | None = None) -> None:
    """Install the structlog pipeline on the root logger.

    ``level`` defaults to DEBUG when ``settings.debug`` is on, INFO otherwise.
    """
    if level is None:
        level = logging.DEBUG if settings.debug else logging.INFO

    processors = _build_processors()
    structlog.configure(
        processors=[*processors, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processor=_select_renderer(),
            foreign_pre_chain=processors,
        )
    )
    logging.basicConfig(handlers=[handler], level=level)

    _configure_otel_logging()


def get_logger(name: str | None = None) -> BoundLogger:
    return structlog.get_logger(name)


def bind_request_context(request_id: str, method: str, path: str) -> None:
    """Start a fresh per-request logging context."""
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(request_id=request_id, method=method, path=path)


def current_request_id() -> str | None:
    return structlog.contextvars.get_contextvars().get("request_id")


# =============================================================================
# Timing
# =============================================================================


def _elapsed_ms(start: float) -> float:
    return round((time.perf_counter() - start) * 1000, 2)


def _emit_timing(
    log: BoundLogger,
    level: str,
    operation: str,
    duration_ms: float,
    context: dict[str, Any],
    collected: dict[str, Any],
) -> None:
    log_method = getattr(log, level, log.info)
    log_method(
        f"{operation} completed",
        operation=operation,
        duration_ms=duration_ms,
        **context,
        **{k: v for k, v in collected.items() if k != "duration_ms"},
    )


@contextmanager
def log_timing(
    operation: str,
    logger: BoundLogger | None = None,
    level: str = "info",
    **context: Any,
) -> Iterator[dict[str, Any]]:
    """Log how long the wrapped block took, even when it raises.

    The yielded dict collects extra fields to attach to the timing record::

        with log_timing("hash_password", logger=logger, level="debug"):
            hashed = bcrypt.hashpw(raw, salt)
    """
    log = logger or get_logger(__name__)
    collected: dict[str, Any] = {}
    start = time.perf_counter()
    try:
        yield collected
    finally:
        collected["duration_ms"] = _elapsed_ms(start)
        _emit_timing(log, level, operation, collected["duration_ms"], context, collected)


@asynccontextmanager
async def async_log_timing(
    operation: str,
    logger: BoundLogger | None = None,
    level: str = "info",
    **context: Any,
) -> AsyncIterator[dict[str, Any]]:
    """``log_timing`` for blocks that await::

    async with async_log_timing("list_users", logger=logger) as timing:
        users = await user_service.list_users(db)
        timing["count"] = len(users)
    """
    log = logger or get_logger(__name__)
    collected: dict[str, Any] = {}
    start = time.perf_counter()
    try:
        yield collected
    finally:
        collected["duration_ms"] = _elapsed_ms(start)
        _emit_timing(log, level, operation, collected["duration_ms"], context, collected)


# =============================================================================
# Exceptions
# =============================================================================


def log_exception(
    logger: BoundLogger,
    exc: BaseException,
    context: str,
    *,
    level: str = "error",
    include_traceback: bool = True,
    **extra: Any,
) -> None:
    """Log ``exc`` under the message ``context`` with its type and module.

    Used by routers before converting a storage error into an HTTP 500.
    """
    fields: dict[str, Any] = {
        "error": str(exc),
        "error_type": type(exc).__name__,
        "error_module": type(exc).__module__,
        **extra,
    }
    if include_traceback:
        fields["exc_info"] = exc

    getattr(logger, level, logger.error)(context, **fields)
