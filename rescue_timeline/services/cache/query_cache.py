"""In-process query cache with a stale time, keyed like `("calendar-events", org_id, ...)`."""

import time
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from rescue_timeline.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

QueryKey = tuple[Any, ...]


class QueryCache:
    """Memoizes fetch results until they go stale or their prefix is invalidated."""

    def __init__(
        self,
        stale_seconds: float = 300.0,
        max_items: int = 512,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.stale_seconds = stale_seconds
        self.max_items = max_items
        self._clock = clock
        self._entries: dict[QueryKey, tuple[float, Any]] = {}

    def get(self, key: QueryKey) -> Any | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        stored_at, value = entry
        if self._clock() - stored_at >= self.stale_seconds:
            self._entries.pop(key, None)
            return None
        return value

    def set(self, key: QueryKey, value: Any) -> None:
        if key not in self._entries and len(self._entries) >= self.max_items:
            self._prune()
        self._entries[key] = (self._clock(), value)

    async def get_or_fetch(self, key: QueryKey, fetcher: Callable[[], Awaitable[T]]) -> T:
        cached = self.get(key)
        if cached is not None:
            logger.debug("Query cache hit", query=key[0])
            return cached
        value = await fetcher()
        self.set(key, value)
        return value

    def invalidate(self, prefix: str) -> int:
        """Drop every entry whose key starts with `prefix`; returns how many."""
        stale = [key for key in self._entries if key and key[0] == prefix]
        for key in stale:
            del self._entries[key]
        if stale:
            logger.debug("Query cache invalidated", prefix=prefix, entries=len(stale))
        return len(stale)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def _prune(self) -> None:
        now = self._clock()
        expired = [
            key
            for key, (stored_at, _) in self._entries.items()
            if now - stored_at >= self.stale_seconds
        ]
        for key in expired:
            del self._entries[key]
        if len(self._entries) < self.max_items:
            return
        # Still full: drop the oldest entries to make room for one more
        oldest = sorted(self._entries.items(), key=lambda kv: kv[1][0])
        for key, _ in oldest[: len(self._entries) - self.max_items + 1]:
            del self._entries[key]
