"""Per-client sliding-window rate limiter for the analysis endpoint."""

from __future__ import annotations

import logging
import time
from collections import deque
from typing import Callable

from .errors import RateLimited

logger = logging.getLogger(__name__)


class SlidingWindowLimiter:
    """
    At most ``limit`` requests per client within ``window_seconds``.

    Rejects instead of waiting: callers get RateLimited with a retry hint
    and decide for themselves whether to come back.
    """

    def __init__(
        self,
        limit: int = 10,
        window_seconds: float = 3600.0,
        clock: Callable[[], float] = time.time,
    ):
        self.limit = limit
        self.window_seconds = window_seconds
        self._clock = clock
        self._hits: dict[str, deque[float]] = {}
        self._last_sweep = clock()

    def _prune(self, identifier: str, now: float) -> deque[float]:
        """Drop hits outside the window; idle clients lose their key."""
        hits = self._hits.get(identifier)
        if hits is None:
            return deque()
        while hits and now - hits[0] >= self.window_seconds:
            hits.popleft()
        if not hits:
            del self._hits[identifier]
        return hits

    def _sweep(self, now: float) -> None:
        """Forget every idle client, at most once per window."""
        if now - self._last_sweep < self.window_seconds:
            return
        self._last_sweep = now
        for identifier in list(self._hits):
            self._prune(identifier, now)

    def check(self, identifier: str) -> int:
        """Record one request; return how many remain in the window."""
        now = self._clock()
        self._sweep(now)
        hits = self._prune(identifier, now)
        if len(hits) >= self.limit:
            retry_after = self.window_seconds - (now - hits[0])
            logger.warning("Rate limit hit for %s (%d/%d)", identifier, len(hits), self.limit)
            raise RateLimited(
                f"Too many analysis requests. Try again in {int(retry_after // 60) + 1} minutes.",
                retry_after=retry_after,
            )
        hits.append(now)
        self._hits[identifier] = hits
        return self.limit - len(hits)

    def remaining(self, identifier: str) -> int:
        hits = self._prune(identifier, self._clock())
        return max(0, self.limit - len(hits))

    def tracked_clients(self) -> int:
        return len(self._hits)
