"""Error handling and Neo4j session decorators"""

import asyncio
import inspect
from collections.abc import Awaitable, Callable
from functools import wraps
from typing import Any, ParamSpec, TypeVar, cast

from .base import ApplicationError, ErrorLevel
from .error_context import ErrorContext
from .logging import get_logger

logger = get_logger(__name__)
P = ParamSpec("P")
T = TypeVar("T")

_TRACEBACK_LEVELS = frozenset({ErrorLevel.ERROR, ErrorLevel.CRITICAL})


def _report(func_name: str, error: Exception, fallback_level: ErrorLevel) -> None:
    level = error.level if isinstance(error, ApplicationError) else fallback_level
    logger.log(
        level.to_logging_level(),
        f"{func_name} failed: {error}",
        function=func_name,
        error_context=ErrorContext.capture(error).to_dict(),
        exc_info=level in _TRACEBACK_LEVELS,
    )


def with_error_handling(
    error_level: ErrorLevel = ErrorLevel.ERROR,
    reraise: bool = True,
    default: Any = None,
) -> Callable[[Callable[P, T]], Callable[P, T]]:
    """Log failures of the wrapped callable with their error context.

    ApplicationErrors are logged at their own level; anything else at
    ``error_level``. With ``reraise=False`` the failure is replaced by
    ``default``.
    """

    def decorator(func: Callable[P, T]) -> Callable[P, T]:
        signature = inspect.signature(func)

        if asyncio.iscoroutinefunction(func):

            @wraps(func)
            async def async_wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
                try:
                    return await cast("Callable[P, Awaitable[T]]", func)(*args, **kwargs)
                except Exception as e:
                    _report(func.__name__, e, error_level)
                    if reraise:
                        raise
                    return cast("T", default)

            async_wrapper.__signature__ = signature  # type: ignore
            return cast("Callable[P, T]", async_wrapper)

        @wraps(func)
        def sync_wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
            try:
                return func(*args, **kwargs)
            except Exception as e:
                _report(func.__name__, e, error_level)
                if reraise:
                    raise
                return cast("T", default)

        sync_wrapper.__signature__ = signature  # type: ignore
        return sync_wrapper

    return decorator


def with_session(
    driver_attr: str = "driver", database_attr: str | None = "database"
) -> Callable[[Callable[P, T]], Callable[P, T]]:
    """Open a Neo4j session for a store method and pass it after ``self``.

        @with_session()
        async def find_fragments(self, session, bot_scope):
            result = await session.run(query, params)
    """

    def decorator(func: Callable[P, T]) -> Callable[P, T]:
        @wraps(func)
        async def wrapper(self_obj: Any, *args: Any, **kwargs: Any) -> Any:
            driver = getattr(self_obj, driver_attr, None)
            if driver is None:
                raise AttributeError(f"{type(self_obj).__name__} has no Neo4j driver at '{driver_attr}'")

            database = getattr(self_obj, database_attr, None) if database_attr else None
            async with driver.session(**({"database": database} if database else {})) as session:
                return await func(self_obj, session, *args, **kwargs)  # type: ignore

        return cast("Callable[P, T]", wrapper)

    return decorator
