"""Fixed-window rate limiter for the subscription endpoint.

The limiter is constructed by the API app factory and injected into the
routes; it is the only mutable state shared between concurrent requests, so
every access goes through a lock.
"""

import logging
import math
import threading
import time
from collections.abc import Callable

from pydantic import BaseModel

from gazette.config import RateLimitConfig

logger = logging.getLogger(__name__)


class RateLimitDecision(BaseModel):
    allowed: bool
    remaining: int
    retry_after_seconds: int = 0


class _Window:
    __slots__ = ("count", "reset_at")

    def __init__(self, reset_at: float):
        self.count = 1
        self.reset_at = reset_at


class RateLimiter:
    """Allows `max_requests` per key per window."""

    def __init__(
        self,
        config: RateLimitConfig | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.config = config or RateLimitConfig()
        self._clock = clock
        self._windows: dict[str, _Window] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._windows)

    def _cleanup(self, now: float) -> None:
        """Drop expired windows once the map grows past the threshold. Caller holds the lock."""
        if len(self._windows) <= self.config.cleanup_threshold:
            return
        expired = [key for key, window in self._windows.items() if window.reset_at <= now]
        for key in expired:
            del self._windows[key]
        logger.info(f"Rate limiter cleanup removed {len(expired)} expired entries")

    def check(self, key: str) -> RateLimitDecision:
        """Count one request for `key` and decide whether it may proceed."""
        now = self._clock()
        with self._lock:
            self._cleanup(now)

            window = self._windows.get(key)
            if window is None or window.reset_at <= now:
                self._windows[key] = _Window(now + self.config.window_seconds)
                return RateLimitDecision(allowed=True, remaining=self.config.max_requests - 1)

            if window.count >= self.config.max_requests:
                return RateLimitDecision(
                    allowed=False,
                    remaining=0,
                    retry_after_seconds=math.ceil(window.reset_at - now),
                )

            window.count += 1
            return RateLimitDecision(
                allowed=True, remaining=self.config.max_requests - window.count
            )

    def reset(self) -> None:
        with self._lock:
            self._windows.clear()
