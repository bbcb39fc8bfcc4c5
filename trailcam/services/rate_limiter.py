"""Fixed-window rate limiting for chat submissions."""

from __future__ import annotations

import logging
import math
import time
from collections.abc import Callable, Hashable
from dataclasses import dataclass

from cachetools import TTLCache  # type: ignore[import-untyped]

logger = logging.getLogger(__name__)


@dataclass
class RateDecision:
    allowed: bool
    remaining: int
    wait: int  # whole seconds until the window resets (0 when allowed)


class _Window:
    __slots__ = ("count", "started")

    def __init__(self, started: float) -> None:
        self.count = 0
        self.started = started


class FixedWindowRateLimiter:
    """At most *limit* hits per key in a *window*-second window.

    A window opens on the first hit for a key and expires *window* seconds
    later regardless of further hits. Windows live in a ``TTLCache`` keyed by
    caller, so idle keys disappear on their own. ``hit`` runs without awaiting,
    which keeps check-and-increment atomic within one event loop.
    """

    def __init__(
        self,
        limit: int,
        window: float,
        *,
        maxsize: int = 10_000,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if limit < 1 or window <= 0:
            raise ValueError("limit must be >= 1 and window > 0")
        self.limit = limit
        self.window = window
        self._clock = clock
        self._windows: TTLCache = TTLCache(maxsize=maxsize, ttl=window, timer=clock)

    def hit(self, key: Hashable) -> RateDecision:
        now = self._clock()
        current: _Window | None = self._windows.get(key)
        if current is None:
            current = _Window(now)
            self._windows[key] = current

        if current.count >= self.limit:
            wait = max(0, math.ceil(self.window - (now - current.started)))
            return RateDecision(allowed=False, remaining=0, wait=wait)

        current.count += 1
        return RateDecision(allowed=True, remaining=self.limit - current.count, wait=0)

    def refund(self, key: Hashable) -> None:
        """Give back one allowed hit, for work that was rejected after counting."""
        current: _Window | None = self._windows.get(key)
        if current is not None and current.count > 0:
            current.count -= 1

    def forget(self, predicate: Callable[[Hashable], bool]) -> int:
        """Drop windows whose key matches *predicate*. Returns how many were dropped."""
        doomed = [key for key in list(self._windows.keys()) if predicate(key)]
        for key in doomed:
            self._windows.pop(key, None)
        return len(doomed)
