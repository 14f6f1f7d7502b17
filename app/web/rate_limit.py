"""In-memory sliding-window rate limiter for API endpoints."""

from __future__ import annotations

import threading
import time
from collections import deque
from collections.abc import Callable
from typing import Any

from app.infrastructure.exceptions import RateLimitExceededError
from app.infrastructure.logging import get_logger

logger = get_logger(__name__)


class RateLimiter:
    """
    Sliding-window rate limiter.

    Keeps the timestamps of accepted requests per key (usually the client
    address) and rejects a request once ``max_requests`` were accepted within
    the last ``window_seconds``. One instance is created per budget by the
    application factory and stored on ``app.state``.
    """

    def __init__(
        self,
        max_requests: int = 100,
        window_seconds: int = 60,
        name: str = "standard",
        clock: Callable[[], float] = time.monotonic,
    ):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.name = name
        self._clock = clock
        self._hits: dict[str, deque[float]] = {}
        self._last_sweep = clock()
        self._lock = threading.Lock()

    def _prune(self, key: str, now: float) -> deque[float]:
        hits = self._hits.get(key)
        if hits is None:
            return deque()
        cutoff = now - self.window_seconds
        while hits and hits[0] <= cutoff:
            hits.popleft()
        if not hits:
            del self._hits[key]
        return hits

    def _sweep(self, now: float) -> None:
        cutoff = now - self.window_seconds
        expired = [key for key, hits in self._hits.items() if not hits or hits[-1] <= cutoff]
        for key in expired:
            del self._hits[key]
        self._last_sweep = now

    def check(self, key: str) -> None:
        """
        Record a request for ``key``.

        Raises:
            RateLimitExceededError: If the key already used its budget in the window
        """
        with self._lock:
            now = self._clock()
            if now - self._last_sweep >= self.window_seconds:
                self._sweep(now)
            hits = self._prune(key, now)
            if len(hits) >= self.max_requests:
                retry_after = max(0.0, hits[0] + self.window_seconds - now)
                logger.warning(
                    f"Rate limit exceeded for key: {key} ({self.name}), "
                    f"{len(hits)}/{self.max_requests} in {self.window_seconds}s, "
                    f"retry after: {retry_after:.1f}s"
                )
                raise RateLimitExceededError(key, self.max_requests, self.window_seconds, retry_after)
            hits.append(now)
            self._hits[key] = hits

    def tracked_keys(self) -> int:
        with self._lock:
            return len(self._hits)

    def get_stats(self, key: str) -> dict[str, Any]:
        with self._lock:
            hits = self._prune(key, self._clock())
            return {
                "limiter": self.name,
                "requests_in_window": len(hits),
                "remaining": max(0, self.max_requests - len(hits)),
                "max_requests": self.max_requests,
                "window_seconds": self.window_seconds,
            }

    def reset(self, key: str | None = None) -> None:
        with self._lock:
            if key is None:
                self._hits.clear()
            else:
                self._hits.pop(key, None)
        logger.info(f"Rate limit reset for key: {key or '*'} ({self.name})")
