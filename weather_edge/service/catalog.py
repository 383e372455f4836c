"""
Catalog cache: the process-wide market universe with a freshness window.

One slot, replaced wholesale on refresh.  Refreshes are single-flight:
concurrent callers that find the slot stale share one upstream fetch, and a
caller going away never cancels that fetch.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

import httpx

from .errors import UpstreamUnavailable
from ..polymarket.models import Market

logger = logging.getLogger(__name__)

DEFAULT_TTL = 1800.0
DEFAULT_VOLUME_FLOOR = 50_000.0

Fetcher = Callable[[float], Awaitable[list[Market]]]


@dataclass(frozen=True)
class CatalogEntry:
    markets: tuple[Market, ...]
    fetched_at: float
    volume_floor: float


@dataclass(frozen=True)
class CatalogSnapshot:
    """What callers get: the entry filtered to their floor, plus provenance."""
    markets: tuple[Market, ...]
    fetched_at: float
    volume_floor: float
    cached: bool
    stale: bool = False


class CatalogCache:
    """Single-slot TTL cache in front of the market fetcher."""

    def __init__(
        self,
        fetcher: Fetcher,
        ttl_seconds: float = DEFAULT_TTL,
        volume_floor: float = DEFAULT_VOLUME_FLOOR,
        fetch_timeout: float = 20.0,
        clock: Callable[[], float] = time.time,
    ):
        self._fetcher = fetcher
        self.ttl_seconds = ttl_seconds
        self.volume_floor = volume_floor
        self.fetch_timeout = fetch_timeout
        self._clock = clock
        self._entry: Optional[CatalogEntry] = None
        self._inflight: Optional[asyncio.Task] = None
        self._inflight_floor: float = 0.0
        self.fetch_count = 0

    # ── Public API ───────────────────────────────────────────────────

    async def get_catalog(self, min_volume: float | None = None) -> CatalogSnapshot:
        """
        Markets with ``volume_24h >= min_volume`` (default: the configured floor).

        Fresh entry -> served from memory.  Stale or missing -> one shared
        refetch.  Refetch failure -> previous entry flagged ``stale``, or
        ``UpstreamUnavailable`` when there is nothing to fall back to.
        """
        floor = self.volume_floor if min_volume is None else min_volume
        entry = self._entry
        if entry is not None and self._usable(entry, floor):
            logger.debug("Catalog hit (%d markets, floor $%s)", len(entry.markets), f"{floor:,.0f}")
            return self._snapshot(entry, floor, cached=True)

        try:
            entry = await self._refresh(min(self.volume_floor, floor))
        except UpstreamUnavailable as e:
            stale = self._entry
            if stale is None:
                raise
            logger.warning("Catalog refresh failed (%s); serving stale entry", e.message)
            return self._snapshot(stale, floor, cached=True, stale=True)
        return self._snapshot(entry, floor, cached=False)

    def invalidate(self) -> None:
        self._entry = None

    def status(self) -> dict[str, Any]:
        entry = self._entry
        return {
            "markets": len(entry.markets) if entry else 0,
            "age_seconds": round(self._clock() - entry.fetched_at, 1) if entry else None,
            "volume_floor": entry.volume_floor if entry else None,
            "ttl_seconds": self.ttl_seconds,
            "refreshing": self._inflight is not None,
            "fetch_count": self.fetch_count,
        }

    # ── Internals ────────────────────────────────────────────────────

    def _usable(self, entry: CatalogEntry, floor: float) -> bool:
        fresh = self._clock() - entry.fetched_at <= self.ttl_seconds
        return fresh and entry.volume_floor <= floor

    @staticmethod
    def _snapshot(
        entry: CatalogEntry, floor: float, cached: bool, stale: bool = False
    ) -> CatalogSnapshot:
        markets = tuple(m for m in entry.markets if m.volume_24h >= floor)
        return CatalogSnapshot(
            markets=markets,
            fetched_at=entry.fetched_at,
            volume_floor=entry.volume_floor,
            cached=cached,
            stale=stale,
        )

    async def _refresh(self, floor: float) -> CatalogEntry:
        task = self._inflight
        if task is not None and self._inflight_floor > floor:
            # The running fetch cannot satisfy this floor: let it land first.
            # asyncio.wait neither raises its outcome nor cancels it.
            await asyncio.wait({task})
            entry = self._entry
            if entry is not None and self._usable(entry, floor):
                return entry
            task = self._inflight

        if task is None or self._inflight_floor > floor:
            task = asyncio.create_task(self._fetch(floor))
            self._inflight = task
            self._inflight_floor = floor
            task.add_done_callback(self._clear_inflight)
        else:
            logger.debug("Joining in-flight catalog fetch")

        # shield: a cancelled caller must not cancel the shared fetch
        return await asyncio.shield(task)

    def _clear_inflight(self, task: asyncio.Task) -> None:
        if self._inflight is task:
            self._inflight = None
        if not task.cancelled():
            task.exception()  # mark retrieved; callers already saw it

    async def _fetch(self, floor: float) -> CatalogEntry:
        self.fetch_count += 1
        logger.info("Refreshing catalog (floor $%s)", f"{floor:,.0f}")
        try:
            markets = await asyncio.wait_for(self._fetcher(floor), self.fetch_timeout)
        except asyncio.TimeoutError as e:
            logger.error("Catalog fetch timed out after %.0fs", self.fetch_timeout)
            raise UpstreamUnavailable("market fetch timed out") from e
        except (httpx.HTTPError, ValueError) as e:
            logger.error("Catalog fetch failed: %s", e)
            raise UpstreamUnavailable(f"market fetch failed: {e}") from e

        entry = CatalogEntry(tuple(markets), self._clock(), floor)
        self._entry = entry
        logger.info("Catalog refreshed: %d markets", len(entry.markets))
        return entry
