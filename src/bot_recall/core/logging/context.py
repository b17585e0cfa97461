"""Conversation-scoped logging context.

Keys live in structlog's contextvars and reach every logger through the
``merge_contextvars`` processor. Tasks created inside a bound block copy the
context, so background memory writes keep ``bot_scope`` and ``customer_id``.
"""

from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

import structlog


def get_log_context() -> dict[str, Any]:
    return dict(structlog.contextvars.get_contextvars())


@contextmanager
def bound_log_context(**context: Any) -> Iterator[None]:
    """Bind keys (e.g. bot_scope, customer_id) for the duration of a block.

    Keys bound before the block are restored afterwards.
    """
    with structlog.contextvars.bound_contextvars(**context):
        yield
