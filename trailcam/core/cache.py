"""Short-lived lookup cache for hot stream reads.

Viewers poll status and segments several times a second; caching the slug
lookup for a couple of seconds keeps that load off PostgreSQL. Each worker
process holds its own cache, so every write path invalidates explicitly.
"""

import asyncio
import functools
from collections.abc import Awaitable, Callable
from typing import Any

from cachetools import TTLCache  # type: ignore[import-untyped]

_MISSING = object()


class AsyncTTLCache:
    """A ``TTLCache`` plus one lock per key so concurrent misses load once."""

    def __init__(self, maxsize: int = 128, ttl: float = 60.0):
        self._entries: TTLCache = TTLCache(maxsize=maxsize, ttl=ttl)
        self._loading: dict[str, asyncio.Lock] = {}
        self._waiters: dict[str, int] = {}

    def get(self, key: str) -> Any:
        return self._entries.get(key, _MISSING)

    def set(self, key: str, value: Any) -> None:
        self._entries[key] = value

    def invalidate(self, key: str) -> None:
        self._entries.pop(key, None)

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    async def get_or_load(self, key: str, load: Callable[[], Awaitable[Any]]) -> Any:
        """Return the cached value for *key*, calling *load* at most once per miss.

        ``None`` results are handed back but not stored, so a stream created
        right after a miss is visible on the next lookup.
        """
        value = self.get(key)
        if value is not _MISSING:
            return value

        lock = self._loading.setdefault(key, asyncio.Lock())
        self._waiters[key] = self._waiters.get(key, 0) + 1
        try:
            async with lock:
                value = self.get(key)
                if value is not _MISSING:
                    return value
                value = await load()
                if value is not None:
                    self.set(key, value)
                return value
        finally:
            self._waiters[key] -= 1
            if not self._waiters[key]:
                del self._waiters[key]
                del self._loading[key]


def cached(cache: AsyncTTLCache, key_func: Callable[..., str]):
    """Decorate an async method so its results go through *cache*.

    ``key_func`` gets the same arguments as the method. Errors propagate
    unchanged and leave nothing cached.
    """

    def decorator(func):
        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            return await cache.get_or_load(
                key_func(*args, **kwargs), lambda: func(*args, **kwargs)
            )

        return wrapper

    return decorator
