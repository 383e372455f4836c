"""Shared fixtures: market factory, fake clock, fake model client."""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from weather_edge.polymarket.models import Market, MarketOdds, WeatherSnapshot

NOW = datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeLLM:
    """Stands in for LLMClient; returns canned text or raises a canned error."""

    def __init__(self, response: str = "", error: Exception | None = None, delay: float = 0.0):
        self.response = response
        self.error = error
        self.delay = delay
        self.calls: list[tuple[list, str]] = []
        self.model = "fake-model"
        self.configured = True
        self.started = asyncio.Event()
        self.release: asyncio.Event | None = None

    def timeout_for(self, mode: str) -> float:
        return 30.0

    async def complete(self, messages, mode="basic") -> str:
        self.calls.append((messages, mode))
        self.started.set()
        if self.release is not None:
            await self.release.wait()
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.response


GOOD_RESPONSE = """{
  "weather_impact": "HIGH",
  "odds_efficiency": "UNDERPRICED",
  "confidence": "MEDIUM",
  "analysis": "Sustained 25 mph crosswinds at Highmark Stadium suppress deep passing.",
  "key_factors": ["25 mph gusts", "Open-air stadium"],
  "recommended_action": "Lean UNDER on the total"
}"""


def build_market(
    market_id: str = "m-1",
    title: str = "Will it rain in Seattle on Saturday?",
    *,
    days_out: float | None = 3,
    yes: float | None = 0.4,
    **fields,
) -> Market:
    resolution = NOW + timedelta(days=days_out) if days_out is not None else None
    odds = MarketOdds(yes=yes, no=1 - yes) if yes is not None else None
    return Market(
        market_id=market_id,
        title=title,
        resolution_date=resolution,
        odds=odds,
        **fields,
    )


@pytest.fixture
def make_market():
    return build_market


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def calm_weather():
    return WeatherSnapshot(temp_f=60, precip_chance=10, wind_mph=4, humidity=40, condition="Clear")


@pytest.fixture
def stormy_weather():
    return WeatherSnapshot(temp_f=28, precip_chance=80, wind_mph=30, humidity=90, condition="Snow")


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def fake_llm():
    """Factory: ``fake_llm(response=..., error=...)``."""
    return FakeLLM


@pytest.fixture
def good_response():
    return GOOD_RESPONSE
