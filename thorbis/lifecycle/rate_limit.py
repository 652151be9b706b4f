"""Fixed-window rate limiting keyed by ``(actor_id, resource)``.

The limiter is an explicit object owned by whoever builds the application
(see :func:`thorbis.main.create_app`); nothing is kept at module level.
Windows that have ended are evicted lazily on access and in bulk through
:meth:`FixedWindowRateLimiter.evict_expired`.
"""

from __future__ import annotations

import math
import threading
import time
from dataclasses import dataclass
from typing import Callable, Optional

Key = tuple[str, str]


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    limit: int
    remaining: int
    reset_at: float
    retry_after: int = 0


@dataclass
class _Window:
    started_at: float
    count: int = 0


class FixedWindowRateLimiter:
    def __init__(
        self,
        limit: int,
        window_seconds: float,
        clock: Callable[[], float] = time.monotonic,
    ):
        if limit < 1:
            raise ValueError("limit must be at least 1")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")
        self._limit = limit
        self._window = float(window_seconds)
        self._clock = clock
        self._windows: dict[Key, _Window] = {}
        self._lock = threading.Lock()

    @property
    def limit(self) -> int:
        return self._limit

    def __len__(self) -> int:
        return len(self._windows)

    def _expired(self, window: _Window, now: float) -> bool:
        return now - window.started_at >= self._window

    def hit(self, actor_id: str, resource: str) -> RateLimitDecision:
        """Record one request for ``(actor_id, resource)`` and decide on it."""
        key = (actor_id, resource)
        with self._lock:
            now = self._clock()
            window = self._windows.get(key)
            if window is None or self._expired(window, now):
                window = _Window(started_at=now)
                self._windows[key] = window

            reset_at = window.started_at + self._window
            if window.count >= self._limit:
                return RateLimitDecision(
                    allowed=False,
                    limit=self._limit,
                    remaining=0,
                    reset_at=reset_at,
                    retry_after=max(1, math.ceil(reset_at - now)),
                )
            window.count += 1
            return RateLimitDecision(
                allowed=True,
                limit=self._limit,
                remaining=self._limit - window.count,
                reset_at=reset_at,
            )

    def evict_expired(self) -> int:
        """Drop finished windows; returns how many were removed."""
        with self._lock:
            now = self._clock()
            stale = [key for key, window in self._windows.items() if self._expired(window, now)]
            for key in stale:
                del self._windows[key]
            return len(stale)

    def reset(self, actor_id: Optional[str] = None, resource: Optional[str] = None) -> None:
        """Forget one key, every key of one actor, or everything."""
        with self._lock:
            if actor_id is None:
                self._windows.clear()
            elif resource is None:
                for key in [k for k in self._windows if k[0] == actor_id]:
                    del self._windows[key]
            else:
                self._windows.pop((actor_id, resource), None)
