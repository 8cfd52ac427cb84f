"""Structured logging for the generation layer.

Every log line from a generation run carries the command and service kind,
and lines emitted while an attempt is in flight (backend requests, retry
backoff) also carry the attempt's role, provider and model, bound through
structlog context variables by `generation_context`.

Production renders JSON; development renders coloured console output.
"""

import logging
import sys
from contextlib import contextmanager
from typing import Any, Iterator

import structlog
from structlog.types import EventDict, WrappedLogger

SERVICE_NAME = "generation-layer"

REDACTED = "***"

# Event keys whose values are never written out
SECRET_KEYS = frozenset({"api_key", "api_keys", "authorization", "token"})

NOISY_LOGGERS = ("httpx", "httpcore", "asyncio", "redis", "uvicorn.access")


def add_service_context(
    logger: WrappedLogger, method_name: str, event_dict: EventDict
) -> EventDict:
    event_dict["service"] = SERVICE_NAME
    return event_dict


def redact_secrets(
    logger: WrappedLogger, method_name: str, event_dict: EventDict
) -> EventDict:
    """Mask provider credentials; snapshots and call params carry API keys."""
    for key in event_dict.keys() & SECRET_KEYS:
        if event_dict[key]:
            event_dict[key] = REDACTED
    return event_dict


@contextmanager
def generation_context(**fields: Any) -> Iterator[None]:
    """
    Bind fields to every log event emitted inside the block.

    None values are skipped so optional context (e.g. a missing command
    name) does not show up as `command=None`.

    Usage:
        with generation_context(role="main", provider="ollama", model="qwen2.5:7b"):
            await call_with_retry(...)
    """
    bound = {key: value for key, value in fields.items() if value is not None}
    with structlog.contextvars.bound_contextvars(**bound):
        yield


def configure_logging(log_level: str = "INFO", environment: str = "development") -> None:
    """Configure structlog on top of stdlib logging.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        environment: "production" selects JSON output and logger caching
    """
    log_level_int = getattr(logging, log_level.upper(), logging.INFO)
    is_production = environment.lower() == "production"

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        add_service_context,
        redact_secrets,
    ]

    if is_production:
        shared_processors.append(structlog.processors.format_exc_info)
        renderer: structlog.types.Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())

    # Cached loggers ignore later structlog.configure() calls (including
    # structlog.testing.capture_logs), so only production caches.
    structlog.configure(
        processors=shared_processors + [structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=is_production,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(processor=renderer, foreign_pre_chain=shared_processors)
    )

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(log_level_int)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(log_level_int, logging.WARNING))

    structlog.get_logger(__name__).info(
        "Logging configured",
        log_level=log_level,
        environment=environment,
        renderer="json" if is_production else "console",
    )
