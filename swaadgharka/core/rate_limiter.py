from __future__ import annotations

import time
from abc import ABC, abstractmethod
from collections import deque
from dataclasses import dataclass
from threading import Lock

from swaadgharka.core.config import API_RATE_LIMIT, API_RATE_WINDOW_SECONDS


@dataclass
class RateLimitDecision:
    allowed: bool
    limit: int
    remaining: int
    retry_after_seconds: int


class RateLimiterService(ABC):
    @abstractmethod
    def check(self, *, subject: str, action: str) -> RateLimitDecision:
        """Decide whether ``subject`` may perform ``action`` now."""


class InMemoryRateLimiterService(RateLimiterService):
    """Sliding-window limiter keyed by subject+action.

    Kept behind an interface so a shared store (Redis) can replace it when
    the API runs on more than one process.
    """

    def __init__(self, *, limit: int = API_RATE_LIMIT, window_seconds: int = API_RATE_WINDOW_SECONDS) -> None:
        self.limit = limit
        self.window_seconds = window_seconds
        self._store: dict[tuple[str, str], deque[float]] = {}
        self._lock = Lock()

    def check(self, *, subject: str, action: str) -> RateLimitDecision:
        now = time.monotonic()
        key = (subject, action)

        with self._lock:
            bucket = self._store.setdefault(key, deque())
            cutoff = now - self.window_seconds
            while bucket and bucket[0] <= cutoff:
                bucket.popleft()

            if len(bucket) >= self.limit:
                retry_after = max(1, int(self.window_seconds - (now - bucket[0])))
                return RateLimitDecision(
                    allowed=False,
                    limit=self.limit,
                    remaining=0,
                    retry_after_seconds=retry_after,
                )

            bucket.append(now)
            remaining = max(0, self.limit - len(bucket))
            return RateLimitDecision(
                allowed=True,
                limit=self.limit,
                remaining=remaining,
                retry_after_seconds=0,
            )

    def reset(self) -> None:
        with self._lock:
            self._store.clear()


# Global per-client budget for /api/ requests
api_rate_limiter = InMemoryRateLimiterService()
