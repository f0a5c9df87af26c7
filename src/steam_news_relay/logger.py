"""
Structured logging configuration using structlog.

Every record is rendered as one JSON line, or as colored console output
when `LOG_FORMAT=console`. Sync cycles bind a `cycle_id` through
contextvars so all lines emitted while a cycle runs can be grouped.
"""

import logging
import sys
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any

import structlog

if TYPE_CHECKING:
    from structlog.types import Processor

from steam_news_relay.config import LoggingConfig, get_settings

SERVICE_NAME = "steam-news-relay"

# Third-party loggers that log every request at INFO
QUIET_LOGGERS = ("httpx", "httpcore", "apscheduler.executors.default")


def _add_service(_: Any, __: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    event_dict.setdefault("service", SERVICE_NAME)
    return event_dict


def build_processors(config: LoggingConfig) -> list["Processor"]:
    """Processor chain for `config`, renderer last."""
    processors: list[Processor] = []
    if config.include_timestamp:
        processors.append(structlog.processors.TimeStamper(fmt="iso", utc=True))
    processors += [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        _add_service,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if config.format == "console":
        processors.append(
            structlog.dev.ConsoleRenderer(
                colors=sys.stdout.isatty(),
                exception_formatter=structlog.dev.plain_traceback,
            )
        )
    else:
        processors.append(structlog.processors.JSONRenderer(sort_keys=True))
    return processors


def setup_logging(config: LoggingConfig | None = None) -> None:
    """
    Configure structlog and the standard library logging module.

    Args:
        config: Logging section to apply (defaults to the cached settings)
    """
    config = config or get_settings().logging
    level = getattr(logging, config.level)

    structlog.configure(
        processors=build_processors(config),
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(format="%(name)s %(levelname)s %(message)s", stream=sys.stdout, level=level)
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))


@contextmanager
def cycle_context(cycle_id: str | None = None) -> Iterator[str]:
    """Bind a cycle id to every log line emitted inside the block."""
    cycle_id = cycle_id or uuid.uuid4().hex[:12]
    with structlog.contextvars.bound_contextvars(cycle_id=cycle_id):
        yield cycle_id


def get_logger(name: str | None = None, **initial_context: Any) -> structlog.BoundLogger:
    """
    Get a logger, optionally with context already bound.

    Example:
        >>> logger = get_logger(__name__, component="sync_engine")
        >>> logger.info("Cycle started", games=12)
    """
    logger = structlog.get_logger(name)
    if initial_context:
        logger = logger.bind(**initial_context)
    return logger
