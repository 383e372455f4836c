"""
Weather edge scorer.

Pure, table-driven scoring of how exposed a market is to weather:

  weather_direct             0-3  weather vocabulary in the question itself
  weather_sensitive_event    0-2  outdoor category, minus indoor/controlled venues
  contextual_weather_impact  0-5  live conditions x category exposure (+ alignment)
  asymmetry_signal           0-1  24h volume / liquidity as a mispricing proxy

All keyword sets and weights live in ``EdgePolicy`` so the policy can be
tuned and tested without touching the scoring code.  No I/O, no clock.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Optional

from ...polymarket.models import Market, WeatherSnapshot


def _rx(*fragments: str) -> re.Pattern:
    return re.compile(r"\b(?:" + "|".join(fragments) + r")\b", re.IGNORECASE)


# ── Policy tables ────────────────────────────────────────────────────

@dataclass(frozen=True)
class OutdoorCategory:
    name: str
    pattern: re.Pattern
    exposure: float  # how strongly conditions move outcomes, 0-1
    event_types: tuple[str, ...] = ()


@dataclass(frozen=True)
class TierThresholds:
    high: float = 8.0
    medium: float = 4.0

    def tier(self, total: float) -> str:
        if total >= self.high:
            return "HIGH"
        if total >= self.medium:
            return "MEDIUM"
        return "LOW"


@dataclass(frozen=True)
class EdgePolicy:
    """Keyword tables and weights for the four scoring components."""

    weather_terms: re.Pattern = _rx(
        r"weather", r"rain(?:s|y|fall|ing)?", r"snow(?:s|y|fall|ing|storm)?",
        r"wind(?:s|y)?", r"temperatures?", r"storms?", r"hurricanes?",
        r"tornado(?:es)?", r"blizzards?", r"heat ?waves?", r"precipitation",
        r"degrees", r"fahrenheit", r"celsius", r"freez(?:e|ing)", r"hail",
        r"humidity", r"fog",
    )
    direct_title_points: float = 3.0
    direct_description_points: float = 1.0

    outdoor: tuple[OutdoorCategory, ...] = (
        OutdoorCategory("american_football",
                        _rx(r"nfl", r"super bowl", r"american football", r"touchdowns?",
                            r"field goals?", r"quarterback"),
                        1.0, ("NFL",)),
        OutdoorCategory("baseball",
                        _rx(r"mlb", r"baseball", r"world series", r"home runs?", r"innings?"),
                        1.0, ("MLB",)),
        OutdoorCategory("golf",
                        _rx(r"golf", r"pga", r"lpga", r"the masters", r"ryder cup",
                            r"open championship"),
                        1.0, ("Golf",)),
        OutdoorCategory("endurance",
                        _rx(r"marathon", r"triathlon", r"tour de france", r"cycling",
                            r"ultramarathon", r"ironman"),
                        1.0, ("Marathon",)),
        OutdoorCategory("sailing",
                        _rx(r"sailing", r"regatta", r"america'?s cup"),
                        1.0),
        OutdoorCategory("cricket", _rx(r"cricket", r"ipl", r"t20", r"test match"), 1.0,
                        ("Cricket",)),
        OutdoorCategory("motorsport",
                        _rx(r"f1", r"formula 1", r"grand prix", r"nascar", r"indy ?500"),
                        0.8, ("F1",)),
        OutdoorCategory("soccer",
                        _rx(r"soccer", r"premier league", r"champions league", r"la liga",
                            r"serie a", r"bundesliga", r"mls", r"world cup"),
                        0.8, ("Soccer",)),
        OutdoorCategory("rugby", _rx(r"rugby"), 0.8, ("Rugby",)),
        OutdoorCategory("tennis",
                        _rx(r"tennis", r"wimbledon", r"us open", r"french open",
                            r"roland garros", r"australian open"),
                        0.6, ("Tennis",)),
    )
    outdoor_points: float = 2.0

    # Super Bowl venues are domed or climate-controlled far more often than not.
    indoor_terms: re.Pattern = _rx(
        r"domes?", r"domed", r"arenas?", r"indoors?", r"nba", r"nhl", r"basketball",
        r"hockey", r"stanley cup", r"super bowl", r"retractable roof", r"esports?",
    )
    indoor_event_types: tuple[str, ...] = ("NBA", "NHL")
    indoor_penalty: float = 2.0

    # (threshold, points), highest first
    precip_tiers: tuple[tuple[float, float], ...] = ((60.0, 2.0), (30.0, 1.0))
    wind_tiers: tuple[tuple[float, float], ...] = ((25.0, 2.0), (15.0, 1.0))
    temp_extreme: tuple[float, float] = (32.0, 95.0)
    temp_notable: tuple[float, float] = (45.0, 85.0)
    temp_extreme_points: float = 1.0
    temp_notable_points: float = 0.5

    rain_terms: re.Pattern = _rx(r"rain(?:s|y|fall|ing)?", r"snow(?:s|y|fall|ing|storm)?",
                                 r"precipitation", r"storms?", r"wet", r"hail",
                                 r"blizzards?", r"delay(?:ed|s)?", r"postpone(?:d|ment)?")
    wind_terms: re.Pattern = _rx(r"wind(?:s|y)?", r"gusts?", r"sail(?:ing)?",
                                 r"field goals?", r"kick(?:er|s)?", r"passing yards")
    temp_terms: re.Pattern = _rx(r"cold", r"heat", r"hot", r"freez(?:e|ing)",
                                 r"temperatures?", r"degrees", r"fahrenheit", r"celsius",
                                 r"heat ?waves?")
    alignment_points: float = 1.5
    text_only_points: float = 0.5
    text_only_cap: float = 1.0
    contextual_cap: float = 5.0

    # (volume / liquidity ratio, points), highest first
    asymmetry_tiers: tuple[tuple[float, float], ...] = ((5.0, 1.0), (2.0, 0.5))

    thresholds: TierThresholds = field(default_factory=TierThresholds)


DEFAULT_POLICY = EdgePolicy()

MAX_TOTAL = 11.0


# ── Result ───────────────────────────────────────────────────────────

@dataclass(frozen=True)
class EdgeScoreBreakdown:
    """Four bounded components, their clamped sum and the confidence tier."""
    weather_direct: float
    weather_sensitive_event: float
    contextual_weather_impact: float
    asymmetry_signal: float
    total: float
    confidence: str
    matched_categories: tuple[str, ...] = ()

    def factors(self) -> dict[str, float]:
        """Wire form used by the HTTP surface (``edgeFactors``)."""
        return {
            "weatherDirect": self.weather_direct,
            "weatherSensitiveEvent": self.weather_sensitive_event,
            "contextualWeatherImpact": self.contextual_weather_impact,
            "asymmetrySignal": self.asymmetry_signal,
        }


# ── Components ───────────────────────────────────────────────────────

def _weather_direct(market: Market, policy: EdgePolicy) -> float:
    if policy.weather_terms.search(market.title):
        return policy.direct_title_points
    if market.description and policy.weather_terms.search(market.description):
        return policy.direct_description_points
    return 0.0


def _categories(market: Market, haystack: str, policy: EdgePolicy) -> list[OutdoorCategory]:
    return [
        c for c in policy.outdoor
        if c.pattern.search(haystack) or (market.event_type in c.event_types)
    ]


def _is_indoor(market: Market, haystack: str, policy: EdgePolicy) -> bool:
    return bool(policy.indoor_terms.search(haystack)) or (
        market.event_type in policy.indoor_event_types
    )


def _tier_points(value: Optional[float], tiers: tuple[tuple[float, float], ...]) -> float:
    if value is None:
        return 0.0
    for threshold, points in tiers:
        if value >= threshold:
            return points
    return 0.0


def _temp_points(temp: Optional[float], policy: EdgePolicy) -> float:
    if temp is None:
        return 0.0
    lo, hi = policy.temp_extreme
    if temp <= lo or temp >= hi:
        return policy.temp_extreme_points
    lo, hi = policy.temp_notable
    if temp < lo or temp > hi:
        return policy.temp_notable_points
    return 0.0


def _contextual(
    text: str,
    weather: Optional[WeatherSnapshot],
    exposure: float,
    policy: EdgePolicy,
) -> float:
    if exposure <= 0:
        return 0.0

    if weather is None or weather.is_empty():
        mentioned = sum(
            1 for p in (policy.rain_terms, policy.wind_terms, policy.temp_terms)
            if p.search(text)
        )
        return min(policy.text_only_cap, mentioned * policy.text_only_points)

    precip = _tier_points(weather.precip_chance, policy.precip_tiers)
    wind = _tier_points(weather.wind_mph, policy.wind_tiers)
    temp = _temp_points(weather.temp_f, policy)

    alignment = 0.0
    if precip and policy.rain_terms.search(text):
        alignment += policy.alignment_points
    if wind and policy.wind_terms.search(text):
        alignment += policy.alignment_points
    if temp and policy.temp_terms.search(text):
        alignment += policy.alignment_points

    raw = (precip + wind + temp + alignment) * exposure
    return min(policy.contextual_cap, round(raw, 2))


def _asymmetry(market: Market, policy: EdgePolicy) -> float:
    if market.volume_24h <= 0 or market.liquidity <= 0:
        return 0.0
    return _tier_points(market.volume_24h / market.liquidity, policy.asymmetry_tiers)


# ── Entry point ──────────────────────────────────────────────────────

def score(
    market: Market,
    weather: Optional[WeatherSnapshot] = None,
    policy: EdgePolicy = DEFAULT_POLICY,
) -> EdgeScoreBreakdown:
    """
    Score one market against an optional weather snapshot.

    Deterministic: the same (market, weather, policy) always yields an equal
    breakdown.  Markets with no signal score 0 / LOW, never raise.
    """
    text = market.text
    haystack = f"{text} {' '.join(market.tags).lower()}"

    direct = _weather_direct(market, policy)

    categories = _categories(market, haystack, policy)
    indoor = _is_indoor(market, haystack, policy)
    sensitive = policy.outdoor_points if categories else 0.0
    if indoor:
        sensitive -= policy.indoor_penalty
    sensitive = max(0.0, sensitive)

    if indoor:
        exposure = 0.0
    elif categories:
        exposure = max(c.exposure for c in categories)
    elif direct:
        exposure = 1.0  # pure weather market
    else:
        exposure = 0.0
    contextual = _contextual(text, weather, exposure, policy)

    asymmetry = 0.0
    if direct + sensitive + contextual > 0:
        asymmetry = _asymmetry(market, policy)

    total = round(min(MAX_TOTAL, max(0.0, direct + sensitive + contextual + asymmetry)), 2)
    return EdgeScoreBreakdown(
        weather_direct=direct,
        weather_sensitive_event=sensitive,
        contextual_weather_impact=contextual,
        asymmetry_signal=asymmetry,
        total=total,
        confidence=policy.thresholds.tier(total),
        matched_categories=tuple(c.name for c in categories),
    )
