"""
Discovery ranker.

Applies conjunctive user filters to a scored catalog snapshot and returns a
deterministically ordered, capped list.  Pure: no I/O, ``now`` injected.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .edge import EdgeScoreBreakdown
from .futures import FuturesClassification
from .metadata import is_sport
from ...polymarket.models import Market

TIER_RANK = {"LOW": 0, "MEDIUM": 1, "HIGH": 2}

DEFAULT_LIMIT = 12
MAX_LIMIT = 200


class DiscoveryFilters(BaseModel):
    """
    User filters for discovery.  Field aliases match the ``POST /markets`` body.

    ``confidence`` uses "at least" semantics: MEDIUM keeps MEDIUM and HIGH.
    """
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    event_type: Optional[str] = Field(default=None, alias="eventType")
    confidence: Literal["HIGH", "MEDIUM", "LOW", "all"] = "all"
    location: Optional[str] = None
    min_volume: Optional[float] = Field(default=None, ge=0, alias="minVolume")
    max_days_to_resolution: Optional[float] = Field(
        default=None, gt=0, alias="maxDaysToResolution"
    )
    exclude_futures: bool = Field(default=True, alias="excludeFutures")
    limit: int = Field(default=DEFAULT_LIMIT, ge=1, le=MAX_LIMIT, alias="limitCount")

    @field_validator("confidence", mode="before")
    @classmethod
    def _upper_tier(cls, v):
        if v is None or v == "":
            return "all"
        if isinstance(v, str):
            return "all" if v.lower() == "all" else v.upper()
        return v

    @field_validator("event_type", "location", mode="before")
    @classmethod
    def _blank_is_none(cls, v):
        if isinstance(v, str) and (not v.strip() or v.strip().lower() == "all"):
            return None
        return v


@dataclass(frozen=True)
class ScoredMarket:
    """A market with its edge breakdown and futures classification."""
    market: Market
    edge: EdgeScoreBreakdown
    futures: FuturesClassification

    def to_dict(self) -> dict:
        m = self.market
        return {
            "marketID": m.market_id,
            "title": m.title,
            "description": m.description,
            "slug": m.slug,
            "tags": list(m.tags),
            "eventType": m.event_type,
            "location": m.venue,
            "participants": list(m.participants),
            "volume24h": m.volume_24h,
            "liquidity": m.liquidity,
            "currentOdds": m.odds.model_dump() if m.odds else None,
            "resolutionDate": m.resolution_date.isoformat() if m.resolution_date else None,
            "isFutures": self.futures.is_futures,
            "edgeScore": self.edge.total,
            "edgeFactors": self.edge.factors(),
            "confidence": self.edge.confidence,
        }


# ── Filters ──────────────────────────────────────────────────────────

def _matches_event_type(market: Market, wanted: str) -> bool:
    if wanted.lower() == "sports":
        return is_sport(market.event_type)
    return (market.event_type or "").lower() == wanted.lower()


def _matches_location(market: Market, wanted: str) -> bool:
    needle = wanted.lower()
    return needle in (market.venue or "").lower() or needle in market.title.lower()


def _within_days(market: Market, max_days: float, now: datetime) -> bool:
    if market.resolution_date is None:
        return False
    days = (market.resolution_date - now).total_seconds() / 86400
    return 0 <= days <= max_days


def _passes(item: ScoredMarket, filters: DiscoveryFilters, now: datetime) -> bool:
    m = item.market
    if filters.event_type and not _matches_event_type(m, filters.event_type):
        return False
    if filters.confidence != "all" and (
        TIER_RANK[item.edge.confidence] < TIER_RANK[filters.confidence]
    ):
        return False
    if filters.location and not _matches_location(m, filters.location):
        return False
    if filters.min_volume is not None and m.volume_24h < filters.min_volume:
        return False
    if filters.max_days_to_resolution is not None and not _within_days(
        m, filters.max_days_to_resolution, now
    ):
        return False
    if filters.exclude_futures and item.futures.is_futures:
        return False
    return True


def apply_filters(
    scored: list[ScoredMarket], filters: DiscoveryFilters, now: datetime
) -> list[ScoredMarket]:
    """Every market passing all filters, in input order, uncapped."""
    return [item for item in scored if _passes(item, filters, now)]


def sort_key(item: ScoredMarket) -> tuple:
    return (-item.edge.total, -item.market.volume_24h, item.market.market_id)


def rank(
    scored: list[ScoredMarket],
    filters: DiscoveryFilters,
    now: datetime,
) -> list[ScoredMarket]:
    """
    Filter, sort by (total desc, volume desc, market id asc), cap at limit.

    An empty list is a valid answer ("broaden your filters"), not an error.
    """
    kept = apply_filters(scored, filters, now)
    kept.sort(key=sort_key)
    return kept[: filters.limit]
