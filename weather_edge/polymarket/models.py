"""
Pydantic models for market and weather data.

Shared type definitions used by the scorer, classifier, ranker, caches and
the HTTP / MCP surfaces.  Everything upstream gets normalised into these
shapes exactly once (see ``normalize.py``).
"""

from __future__ import annotations

import hashlib
import json
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class MarketOdds(BaseModel):
    """Implied probabilities for the YES / NO outcomes.  No sum constraint."""
    model_config = ConfigDict(frozen=True)

    yes: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    no: Optional[float] = Field(default=None, ge=0.0, le=1.0)


class Market(BaseModel):
    """
    A tradable binary prediction market.

    Markets are immutable once fetched; rescoring produces new breakdowns,
    never mutates the market.
    """
    model_config = ConfigDict(frozen=True)

    market_id: str = Field(min_length=1)
    title: str
    description: str = ""
    slug: Optional[str] = None
    tags: tuple[str, ...] = ()
    volume_24h: float = Field(default=0.0, ge=0.0)
    liquidity: float = Field(default=0.0, ge=0.0)
    odds: Optional[MarketOdds] = None
    resolution_date: Optional[datetime] = None
    event_type: Optional[str] = None
    venue: Optional[str] = None
    participants: tuple[str, ...] = ()

    @property
    def text(self) -> str:
        """Title + description, lower-cased, for keyword matching."""
        return f"{self.title} {self.description}".lower()

    def snapshot(self) -> dict:
        """JSON-safe dump used for hashing and persistence."""
        return self.model_dump(mode="json")


class WeatherSnapshot(BaseModel):
    """Venue conditions at (or forecast for) event time."""
    model_config = ConfigDict(frozen=True)

    temp_f: Optional[float] = None
    precip_chance: Optional[float] = Field(default=None, ge=0.0, le=100.0)
    wind_mph: Optional[float] = Field(default=None, ge=0.0)
    humidity: Optional[float] = Field(default=None, ge=0.0, le=100.0)
    condition: Optional[str] = None

    def is_empty(self) -> bool:
        return all(v is None for v in self.model_dump().values())

    def fingerprint(self) -> str:
        """Stable SHA-256 over the canonical JSON form."""
        canonical = json.dumps(self.model_dump(mode="json"), sort_keys=True)
        return hashlib.sha256(canonical.encode()).hexdigest()
