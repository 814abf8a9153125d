"""
Per-client request limiting for the conversion endpoint.

Counting is delegated to the ``limits`` package (fixed window, in-memory
storage). Rejected requests count against the window too.
"""

import math
import time
from typing import Optional

from limits import RateLimitItemPerSecond
from limits.storage import MemoryStorage
from limits.strategies import FixedWindowRateLimiter

from .logging_config import get_logger

logger = get_logger()

RATE_LIMIT_MESSAGE = "Too many requests from this IP, please try again in an hour."


class RateLimitDecision:
    """Outcome of one hit."""

    def __init__(self, allowed: bool, remaining: int, retry_after: int):
        self.allowed = allowed
        self.remaining = remaining
        self.retry_after = retry_after

    def __repr__(self):
        return (f"RateLimitDecision(allowed={self.allowed}, remaining={self.remaining}, "
                f"retry_after={self.retry_after})")


class RateLimiter:
    """
    Fixed-window limiter keyed by client address.

    Args:
        max_requests: Requests allowed per window and key
        window_seconds: Window length
        namespace: Prefix kept apart from other limiters sharing the storage
    """

    def __init__(self, max_requests: int = 15, window_seconds: float = 60 * 60,
                 namespace: str = "convert"):
        self.max_requests = max_requests
        self.window_seconds = int(window_seconds)
        self.namespace = namespace
        self._storage = MemoryStorage()
        self._strategy = FixedWindowRateLimiter(self._storage)
        self._item = RateLimitItemPerSecond(max_requests, max(1, self.window_seconds))

    def hit(self, key: Optional[str]) -> RateLimitDecision:
        """Count one request for key and report whether it may proceed."""
        key = key or "unknown"
        allowed = self._strategy.hit(self._item, self.namespace, key)
        stats = self._strategy.get_window_stats(self._item, self.namespace, key)
        retry_after = max(1, math.ceil(stats.reset_time - time.time()))

        if not allowed:
            logger.warning(f"Rate limit exceeded for {key}; retry in {retry_after}s")
        return RateLimitDecision(allowed, stats.remaining, retry_after)

    def reset(self, key: Optional[str] = None):
        """Forget the count for one key, or for every key."""
        if key is None:
            self._storage.reset()
        else:
            self._strategy.clear(self._item, self.namespace, key)
