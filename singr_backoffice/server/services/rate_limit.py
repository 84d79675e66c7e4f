"""
In-memory fixed-window rate limiter.

Used for the OpenKJ desktop API, which is keyed by client IP. State is per
process; a multi-worker deployment gets one window table per worker.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from singr_backoffice.server.core.config import settings


@dataclass
class _Window:
    count: int
    reset_at: float


class FixedWindowRateLimiter:
    """Allow ``limit`` hits per key every ``window_seconds``."""

    def __init__(self, limit: int, window_seconds: float = 60.0, clock: Callable[[], float] = time.monotonic) -> None:
        self.limit = limit
        self.window_seconds = window_seconds
        self._clock = clock
        self._windows: Dict[str, _Window] = {}
        self._next_prune = 0.0
        self._lock = asyncio.Lock()

    async def hit(self, key: str) -> bool:
        """Record a hit for ``key``; False once the window's limit is reached."""
        async with self._lock:
            now = self._clock()
            if now >= self._next_prune:
                self._prune(now)
            window = self._windows.get(key)
            if window is None or now > window.reset_at:
                self._windows[key] = _Window(count=1, reset_at=now + self.window_seconds)
                return True
            if window.count >= self.limit:
                return False
            window.count += 1
            return True

    def _prune(self, now: float) -> None:
        """Drop expired windows; runs at most once per window length."""
        expired = [key for key, window in self._windows.items() if now > window.reset_at]
        for key in expired:
            del self._windows[key]
        self._next_prune = now + self.window_seconds

    async def reset(self) -> None:
        async with self._lock:
            self._windows.clear()


_openkj_limiter: Optional[FixedWindowRateLimiter] = None


def get_openkj_rate_limiter() -> FixedWindowRateLimiter:
    global _openkj_limiter
    if _openkj_limiter is None:
        _openkj_limiter = FixedWindowRateLimiter(limit=settings.openkj_rate_limit_per_minute)
    return _openkj_limiter
