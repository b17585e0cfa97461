"""structlog loggers, Logfire forwarding and conversation-scoped context."""

from .context import bound_log_context, get_log_context
from .setup import LogFormat, get_logger, setup_logging

__all__ = ["LogFormat", "bound_log_context", "get_log_context", "get_logger", "setup_logging"]
