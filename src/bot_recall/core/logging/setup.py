"""structlog and standard-library logging, forwarded to Logfire.

Logfire itself is configured by ``bot_recall.bootstrap``; this module only
builds the processor chain and routes stdlib records (neo4j driver, SDK
clients) through it.
"""

import logging
import sys
from typing import Literal

import logfire
import structlog
from structlog.processors import CallsiteParameter, CallsiteParameterAdder
from structlog.types import EventDict, Processor, WrappedLogger

from .base import LOG_LEVEL, NOISY_LOGGERS, get_logger

__all__ = ["get_logger", "setup_logging"]

LogFormat = Literal["console", "json"]


def tag_bot_events(_logger: WrappedLogger, _method_name: str, event_dict: EventDict) -> EventDict:
    """Derive filterable tags from well-known event keys."""
    if "error" in event_dict:
        event_dict["error_type"] = type(event_dict["error"]).__name__
    if "tier" in event_dict and "outcome" in event_dict:
        event_dict["retrieval_event"] = f"{event_dict['tier']}:{event_dict['outcome']}"
    if "bot_scope" in event_dict and "customer_id" in event_dict:
        event_dict["conversation"] = f"{event_dict['bot_scope']}/{event_dict['customer_id']}"
    return event_dict


def _shared_processors() -> list[Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        CallsiteParameterAdder(
            parameters=[CallsiteParameter.MODULE, CallsiteParameter.FUNC_NAME, CallsiteParameter.LINENO]
        ),
        tag_bot_events,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
    ]


def _renderer(log_format: LogFormat, colors: bool) -> Processor:
    if log_format == "json":
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(colors=colors)


def setup_logging(level: str = LOG_LEVEL, log_format: LogFormat = "console", colors: bool = True) -> None:
    """Configure structlog and the root logger.

    Args:
        level: Minimum level name for both structlog and stdlib records
        log_format: ``console`` for development, ``json`` for log shipping
        colors: Colourise console output
    """
    numeric_level = logging.getLevelName(level.upper())
    if not isinstance(numeric_level, int):
        numeric_level = logging.INFO

    shared = _shared_processors()
    renderer = _renderer(log_format, colors and log_format == "console")

    structlog.configure(
        # Logfire's processor must run before the renderer turns the event into text
        processors=[*shared, logfire.StructlogProcessor(), renderer],
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stdout),
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(structlog.stdlib.ProcessorFormatter(processor=renderer, foreign_pre_chain=shared))

    root_logger = logging.getLogger()
    root_logger.handlers = [handler]
    root_logger.setLevel(numeric_level)
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(numeric_level, logging.WARNING))

    get_logger(__name__).debug("Logging configured", level=level, log_format=log_format)
