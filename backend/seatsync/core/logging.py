"""
Structured logging configuration using structlog.
Outputs JSON in production, pretty-printed in development.

Request ids come from the middleware; trip ids are bound per seat session
with `trip_context()` so feed and reconciliation logs can be grepped by trip.
"""

import logging
import sys
from contextlib import contextmanager
from enum import Enum
from typing import Iterator, Optional

import structlog
from seatsync.core.config import get_settings


def _enum_values(logger, method_name: str, event_dict: dict) -> dict:
    """Render SeatStatus / FeedStatus style enums as their plain values."""
    for key, value in event_dict.items():
        if isinstance(value, Enum):
            event_dict[key] = value.value
    return event_dict


def setup_logging() -> None:
    settings = get_settings()

    shared_processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        _enum_values,
    ]

    if settings.ENVIRONMENT == "production":
        shared_processors.append(structlog.processors.format_exc_info)
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=settings.DEBUG or sys.stdout.isatty())

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=shared_processors,
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                renderer,
            ],
        )
    )

    # Replace rather than append so a second setup (reload, tests) does not double every line.
    root_logger = logging.getLogger()
    root_logger.handlers = [handler]
    root_logger.setLevel(getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))

    for noisy in ("uvicorn.access", "sqlalchemy.engine", "redis", "asyncio"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


@contextmanager
def trip_context(trip_id: str, vessel_id: Optional[str] = None) -> Iterator[None]:
    """
    Run the block with only trip (and vessel) ids bound.

    Tasks created inside keep this context for their lifetime, so request
    ids are dropped first; the caller's context is restored afterwards.
    """
    saved = structlog.contextvars.get_contextvars()
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(trip_id=trip_id)
    if vessel_id is not None:
        structlog.contextvars.bind_contextvars(vessel_id=vessel_id)
    try:
        yield
    finally:
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(**saved)


def get_logger(name: str = __name__) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)
