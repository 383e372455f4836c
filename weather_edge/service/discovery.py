"""
Discovery service: catalog -> edge scoring -> ranking.

Scoring and ranking are pure and operate on the immutable catalog snapshot;
the only I/O here is the catalog read and the optional venue weather lookup.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional, Protocol

from .catalog import CatalogCache
from ..domains.weather.edge import DEFAULT_POLICY, EdgePolicy, score
from ..domains.weather.futures import classify
from ..domains.weather.ranker import DiscoveryFilters, ScoredMarket, apply_filters, rank
from ..polymarket.models import WeatherSnapshot
from ..polymarket.utils import utc_now

logger = logging.getLogger(__name__)

EMPTY_MESSAGE = "No markets matched these filters. Try broadening them."


class WeatherProvider(Protocol):
    """Anything that can return current conditions for a venue name."""

    async def current(self, venue: str) -> Optional[WeatherSnapshot]:
        ...


@dataclass(frozen=True)
class DiscoveryResult:
    markets: list[ScoredMarket]
    total_found: int
    cached: bool
    stale: bool
    message: Optional[str] = None


class DiscoveryService:
    def __init__(
        self,
        catalog: CatalogCache,
        policy: EdgePolicy = DEFAULT_POLICY,
        weather_provider: Optional[WeatherProvider] = None,
        weather_timeout: float = 5.0,
        now: Callable[[], datetime] = utc_now,
    ):
        self.catalog = catalog
        self.policy = policy
        self.weather_provider = weather_provider
        self.weather_timeout = weather_timeout
        self._now = now

    async def discover(self, filters: DiscoveryFilters) -> DiscoveryResult:
        """Score the catalog above the requested floor and rank it."""
        snapshot = await self.catalog.get_catalog(filters.min_volume)
        now = self._now()
        weather = await self._venue_weather({m.venue for m in snapshot.markets if m.venue})

        scored = [
            ScoredMarket(
                market=m,
                edge=score(m, weather.get(m.venue) if m.venue else None, self.policy),
                futures=classify(m, now),
            )
            for m in snapshot.markets
        ]
        ranked = rank(scored, filters, now)
        total_found = len(apply_filters(scored, filters, now))
        logger.info(
            "Discovery: %d scored, %d ranked (cached=%s stale=%s)",
            len(scored), len(ranked), snapshot.cached, snapshot.stale,
        )
        return DiscoveryResult(
            markets=ranked,
            total_found=total_found,
            cached=snapshot.cached,
            stale=snapshot.stale,
            message=None if ranked else EMPTY_MESSAGE,
        )

    async def _venue_weather(self, venues: set[str]) -> dict[str, WeatherSnapshot]:
        """One lookup per distinct venue; failures fall back to text-only scoring."""
        if self.weather_provider is None or not venues:
            return {}
        ordered = sorted(venues)
        results = await asyncio.gather(
            *(asyncio.wait_for(self.weather_provider.current(v), self.weather_timeout)
              for v in ordered),
            return_exceptions=True,
        )
        weather: dict[str, WeatherSnapshot] = {}
        for venue, result in zip(ordered, results):
            if isinstance(result, BaseException):
                logger.warning("Weather lookup for %s failed: %r", venue, result)
            elif result is not None:
                weather[venue] = result
        return weather
