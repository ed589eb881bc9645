"""
Structured logging for the match data worker.

structlog on top of stdlib logging, so library records (httpx, asyncpg,
SQLAlchemy) come out through the same renderer as ours. Console output in
dev, one JSON object per line everywhere else.
"""
from __future__ import annotations

import logging
import sys
from contextlib import contextmanager
from enum import Enum
from typing import Any, Iterator

import structlog

from shared.config import Environment, Settings, get_settings

NOISY_LOGGERS = ("httpx", "httpcore", "asyncio", "asyncpg", "sqlalchemy.engine")


def _enum_values(_logger: Any, _method: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    """Log status enums by value so callers can pass them directly."""
    for key, value in event_dict.items():
        if isinstance(value, Enum):
            event_dict[key] = value.value
    return event_dict


def setup_logging(
    service_name: str,
    settings: Settings | None = None,
    extra_context: dict[str, Any] | None = None,
) -> None:
    """
    Configure structlog and the root logger for one process.

    `service` and `instance_id` are bound into every entry; `extra_context`
    adds further static fields.
    """
    settings = settings or get_settings()
    level = logging.getLevelName(settings.log_level.upper())
    if not isinstance(level, int):
        level = logging.INFO

    pre_chain: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        _enum_values,
    ]
    if settings.environment == Environment.DEV:
        renderer: structlog.types.Processor = structlog.dev.ConsoleRenderer()
    else:
        renderer = structlog.processors.JSONRenderer()

    structlog.configure(
        processors=[
            *pre_chain,
            structlog.processors.StackInfoRenderer(),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                structlog.processors.format_exc_info,
                renderer,
            ],
            foreign_pre_chain=pre_chain,
        )
    )
    root = logging.getLogger()
    root.handlers[:] = [handler]
    root.setLevel(level)
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(
        service=service_name,
        instance_id=settings.instance_id,
        **(extra_context or {}),
    )


@contextmanager
def match_log_context(osu_match_id: int) -> Iterator[None]:
    """Tag every entry logged inside the block with the match being processed."""
    with structlog.contextvars.bound_contextvars(osu_match_id=osu_match_id):
        yield


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a named structured logger."""
    return structlog.get_logger(name)
