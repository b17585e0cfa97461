"""Logger factory shared by every module of the package."""

import structlog
from structlog.typing import FilteringBoundLogger

LOG_LEVEL = "INFO"

# Third-party loggers that are chatty below WARNING
NOISY_LOGGERS = ("neo4j", "httpx", "httpcore", "anthropic", "apscheduler.executors.default")

_PACKAGE_PREFIX = "bot_recall."


def get_logger(name: str | None = None) -> FilteringBoundLogger:
    """Logger for ``name`` with the package prefix dropped, e.g. ``services.chat``."""
    if name and name.startswith(_PACKAGE_PREFIX):
        name = name[len(_PACKAGE_PREFIX) :]
    return structlog.get_logger(name)
