"""Process-wide namespaced cache with a full-flush TTL policy."""

import time
from collections import OrderedDict
from collections.abc import Callable, Hashable
from typing import Any

from .logging import get_logger

logger = get_logger(__name__)

EMBEDDING_NAMESPACE = "embedding"
RETRIEVAL_NAMESPACE = "retrieval"
BOT_PROFILE_NAMESPACE = "bot_profile"

_MISSING = object()


class CacheService:
    """In-memory cache shared by the embedding provider, retrieval and bot profiles.

    Every namespace is dropped together once ``ttl_seconds`` have elapsed since
    the last flush; expiry is checked lazily on access and can be forced with
    ``flush()``. Each namespace keeps at most ``max_entries`` items, evicting the
    least recently written one.
    """

    def __init__(
        self,
        ttl_seconds: float = 3600.0,
        max_entries: int | None = 10000,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self._clock = clock
        self._namespaces: dict[str, OrderedDict[Hashable, Any]] = {}
        self._flushed_at = clock()
        self.hits = 0
        self.misses = 0

    def _expire_if_due(self) -> None:
        if self._clock() - self._flushed_at >= self.ttl_seconds:
            self.flush()

    def get(self, namespace: str, key: Hashable, default: Any = None) -> Any:
        self._expire_if_due()
        value = self._namespaces.get(namespace, {}).get(key, _MISSING)
        if value is _MISSING:
            self.misses += 1
            return default
        self.hits += 1
        return value

    def set(self, namespace: str, key: Hashable, value: Any) -> None:
        self._expire_if_due()
        bucket = self._namespaces.setdefault(namespace, OrderedDict())
        bucket[key] = value
        bucket.move_to_end(key)
        if self.max_entries is not None:
            while len(bucket) > self.max_entries:
                bucket.popitem(last=False)

    def invalidate(self, namespace: str, key: Hashable | None = None) -> None:
        """Drop one key, or a whole namespace when no key is given."""
        if key is None:
            self._namespaces.pop(namespace, None)
        else:
            self._namespaces.get(namespace, {}).pop(key, None)

    def flush(self) -> int:
        """Drop every namespace. Returns the number of entries removed."""
        removed = sum(len(bucket) for bucket in self._namespaces.values())
        self._namespaces.clear()
        self._flushed_at = self._clock()
        if removed:
            logger.info(f"Cache flushed: {removed} entries removed")
        return removed

    def size(self, namespace: str | None = None) -> int:
        if namespace is not None:
            return len(self._namespaces.get(namespace, {}))
        return sum(len(bucket) for bucket in self._namespaces.values())

    def stats(self) -> dict[str, Any]:
        return {
            "namespaces": {name: len(bucket) for name, bucket in self._namespaces.items()},
            "hits": self.hits,
            "misses": self.misses,
            "ttl_seconds": self.ttl_seconds,
        }
