"""
TTL key/value store and the analysis cache built on it.

The store wraps a ``cachetools.TTLCache`` with an injectable clock, so
tests can substitute a fake clock and assert expiry deterministically.
Writes purge expired entries and the cache is bounded by ``max_entries``.
"""

from __future__ import annotations

import hashlib
import json
import logging
import time
from typing import Any, Callable, Generic, Optional, TypeVar

from cachetools import TTLCache

from ..strategies.base import AnalysisRequest, AnalysisResult

logger = logging.getLogger(__name__)

V = TypeVar("V")

DEFAULT_ANALYSIS_TTL = 1200.0
DEFAULT_MAX_ENTRIES = 1000


class TTLStore(Generic[V]):
    """key -> (value, stored_at); entries ``ttl_seconds`` old or older are gone."""

    def __init__(
        self,
        ttl_seconds: float,
        clock: Callable[[], float] = time.time,
        max_entries: int = DEFAULT_MAX_ENTRIES,
    ):
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self._clock = clock
        self._data: TTLCache[str, tuple[V, float]] = TTLCache(
            maxsize=max_entries, ttl=ttl_seconds, timer=clock
        )

    def get(self, key: str) -> Optional[tuple[V, float]]:
        return self._data.get(key)

    def set(self, key: str, value: V) -> None:
        # TTLCache expires stale entries on every write; at capacity the
        # oldest live entry is evicted.
        self._data[key] = (value, self._clock())

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def purge_expired(self) -> int:
        return len(self._data.expire())

    def __len__(self) -> int:
        self._data.expire()
        return len(self._data)


def fingerprint(request: AnalysisRequest) -> str:
    """Deterministic key over market identity, weather snapshot and mode."""
    weather = request.weather.fingerprint() if request.weather else None
    canonical = json.dumps(
        {"market_id": request.market.market_id, "weather": weather, "mode": request.mode},
        sort_keys=True,
    )
    return hashlib.sha256(canonical.encode()).hexdigest()


class AnalysisCache:
    """Stores serialized AnalysisResults keyed by request fingerprint."""

    def __init__(self, store: TTLStore[str]):
        self.store = store

    @classmethod
    def with_ttl(
        cls,
        ttl_seconds: float = DEFAULT_ANALYSIS_TTL,
        clock: Callable[[], float] = time.time,
        max_entries: int = DEFAULT_MAX_ENTRIES,
    ) -> "AnalysisCache":
        return cls(TTLStore(ttl_seconds, clock, max_entries))

    def get(self, key: str) -> Optional[AnalysisResult]:
        entry = self.store.get(key)
        if entry is None:
            logger.debug("Analysis cache miss %s", key[:12])
            return None
        logger.debug("Analysis cache hit %s", key[:12])
        return AnalysisResult.from_json(entry[0]).with_provenance(cached=True)

    def put(self, key: str, result: AnalysisResult) -> None:
        # Stored as not-cached; ``get`` flips the flag on the way out.
        self.store.set(key, result.with_provenance(cached=False).to_json())

    def status(self) -> dict[str, Any]:
        return {
            "entries": len(self.store),
            "max_entries": self.store.max_entries,
            "ttl_seconds": self.store.ttl_seconds,
        }

    def __len__(self) -> int:
        return len(self.store)
