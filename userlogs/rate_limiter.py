"""Per-client rate limiting using fixed-window counters."""

import logging
import threading
import time
from dataclasses import dataclass

from userlogs.errors import RateLimited

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    limit: int
    remaining: int
    reset_at: float
    retry_after: float = 0.0


class Window:
    """Fixed-window counter for a single client key."""

    def __init__(self, window_seconds: float, now: float):
        self._window_seconds = window_seconds
        self.count = 1
        self.reset_at = now + window_seconds

    def expired(self, now: float) -> bool:
        return now > self.reset_at

    def hit(self, max_requests: int, now: float) -> bool:
        """Count a request. Return True if admitted, False if over the limit."""
        if self.expired(now):
            self.count = 1
            self.reset_at = now + self._window_seconds
            return True
        if self.count < max_requests:
            self.count += 1
            return True
        return False


class RateLimiter:
    """Manages per-client windows with thread-safe access.

    Windows whose reset time has passed are dropped at most once per window
    length when eviction is on. An evicted key and an expired key get the same
    treatment on their next request (fresh window, count 1), so eviction only
    bounds memory and never changes a decision.
    """

    def __init__(self, enabled: bool = True, max_requests: int = 100,
                 window_seconds: float = 60, eviction: bool = True,
                 time_func=None):
        self._enabled = enabled
        self._max_requests = max_requests
        self._window_seconds = window_seconds
        self._eviction = eviction
        self._time_func = time_func or time.monotonic
        self._windows: dict[str, Window] = {}
        self._lock = threading.Lock()
        self._last_sweep = self._time_func()

    @property
    def enabled(self) -> bool:
        return self._enabled

    @property
    def max_requests(self) -> int:
        return self._max_requests

    def __len__(self):
        with self._lock:
            return len(self._windows)

    def check(self, key: str) -> RateLimitDecision:
        """Count a request from ``key`` and return the admission decision."""
        now = self._time_func()
        if not self._enabled:
            return RateLimitDecision(True, self._max_requests, self._max_requests, now)

        with self._lock:
            if self._eviction and now - self._last_sweep > self._window_seconds:
                self._sweep(now)

            window = self._windows.get(key)
            if window is None:
                window = self._windows[key] = Window(self._window_seconds, now)
                allowed = True
            else:
                allowed = window.hit(self._max_requests, now)

            remaining = max(0, self._max_requests - window.count)
            retry_after = 0.0 if allowed else max(0.0, window.reset_at - now)
            return RateLimitDecision(allowed, self._max_requests, remaining,
                                     window.reset_at, retry_after)

    def allow(self, key: str) -> bool:
        """Check if a request from ``key`` is allowed."""
        return self.check(key).allowed

    def enforce(self, key: str) -> RateLimitDecision:
        """Like check(), but raise RateLimited on denial."""
        decision = self.check(key)
        if not decision.allowed:
            logger.warning("Rate limit exceeded for %s", key)
            raise RateLimited(key, decision.retry_after)
        return decision

    def evict_stale(self, now: float = None) -> int:
        """Drop windows whose reset time has passed. Returns how many were dropped."""
        if now is None:
            now = self._time_func()
        with self._lock:
            return self._sweep(now)

    def _sweep(self, now: float) -> int:
        stale = [key for key, window in self._windows.items() if window.expired(now)]
        for key in stale:
            del self._windows[key]
        self._last_sweep = now
        if stale:
            logger.debug("Evicted %d stale rate-limit window(s)", len(stale))
        return len(stale)
