"""
Boundary normalisation.

Every "whichever field happens to be present" decision for Gamma payloads,
``/analyze`` request bodies and weather payloads lives here.  Downstream code
only ever sees ``Market`` / ``WeatherSnapshot``.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from pydantic import ValidationError as PydanticValidationError

from .models import Market, MarketOdds, WeatherSnapshot
from .utils import parse_datetime, safe_json, to_float
from ..domains.weather.metadata import (
    extract_location,
    extract_teams,
    infer_event_type,
)

logger = logging.getLogger(__name__)


def _tag_labels(raw_tags: Any) -> tuple[str, ...]:
    """Gamma tags come as strings or ``{"label": ...}`` objects."""
    labels: list[str] = []
    for tag in raw_tags or ():
        if isinstance(tag, str) and tag.strip():
            labels.append(tag.strip())
        elif isinstance(tag, dict) and tag.get("label"):
            labels.append(str(tag["label"]).strip())
    return tuple(dict.fromkeys(labels))


def _odds_from_prices(outcomes: Any, prices: Any) -> Optional[MarketOdds]:
    names = [str(o).lower() for o in safe_json(outcomes)]
    values = [to_float(p, None) for p in safe_json(prices)]
    if not values:
        return None
    yes = no = None
    if "yes" in names and "no" in names:
        yes_idx, no_idx = names.index("yes"), names.index("no")
        yes = values[yes_idx] if yes_idx < len(values) else None
        no = values[no_idx] if no_idx < len(values) else None
    else:
        yes = values[0]
        no = values[1] if len(values) > 1 else None
    return _clamped_odds(yes, no)


def _clamped_odds(yes: Any, no: Any) -> Optional[MarketOdds]:
    def _prob(v: Any) -> Optional[float]:
        f = to_float(v, None)
        if f is None:
            return None
        # Some clients send percentages.
        if 1.0 < f <= 100.0:
            f /= 100.0
        return f if 0.0 <= f <= 1.0 else None

    yes_p, no_p = _prob(yes), _prob(no)
    if yes_p is None and no_p is None:
        return None
    return MarketOdds(yes=yes_p, no=no_p)


def _participants(title: str, description: str, explicit: Any = None) -> tuple:
    if isinstance(explicit, list) and explicit:
        return tuple(str(p) for p in explicit if p)
    return tuple(t.name for t in extract_teams(f"{title} {description}"))


# ── Gamma records ────────────────────────────────────────────────────

def market_from_gamma(raw: dict, event: dict | None = None) -> Market | None:
    """
    Normalise one Gamma market record (optionally with its parent event).

    Returns None for records that cannot form a valid market (no id, no
    title, negative numbers); those are logged and skipped.
    """
    event = event or {}
    market_id = raw.get("id") or raw.get("conditionId") or raw.get("condition_id")
    title = raw.get("question") or raw.get("title") or event.get("title")
    if not market_id or not title:
        return None

    description = raw.get("description") or event.get("description") or ""
    tags = _tag_labels(raw.get("tags") or event.get("tags"))
    volume = to_float(
        raw.get("volume24hr", raw.get("volume24h", raw.get("volume"))), 0.0
    )
    liquidity = to_float(raw.get("liquidityNum", raw.get("liquidity")), 0.0)
    teams = extract_teams(f"{title} {description}")
    venue = extract_location(title) or extract_location(event.get("title"))
    if venue is None and teams:
        venue = teams[0].city

    try:
        return Market(
            market_id=str(market_id),
            title=str(title),
            description=str(description),
            slug=raw.get("slug") or event.get("slug"),
            tags=tags,
            volume_24h=volume,
            liquidity=liquidity,
            odds=_odds_from_prices(raw.get("outcomes"), raw.get("outcomePrices")),
            resolution_date=parse_datetime(raw.get("endDate") or event.get("endDate")),
            event_type=infer_event_type(str(title), str(description), tags, teams),
            venue=venue,
            participants=tuple(t.name for t in teams),
        )
    except PydanticValidationError as e:
        logger.debug("Skipping invalid market %s: %s", market_id, e)
        return None


def markets_from_event(event: dict) -> list[Market]:
    """Flatten an event into its markets, inheriting event tags/dates."""
    markets = []
    for raw in event.get("markets") or []:
        market = market_from_gamma(raw, event)
        if market is not None:
            markets.append(market)
    return markets


# ── Request bodies ───────────────────────────────────────────────────

def market_from_request(body: dict) -> Market:
    """
    Build a Market from an ``/analyze`` style body.

    Raises pydantic's ValidationError on unusable input; the service layer
    maps that to its own ValidationError.
    """
    title = str(body.get("title") or "")
    description = str(body.get("description") or "")
    location = body.get("location")
    if isinstance(location, dict):
        location = location.get("name")
    odds = body.get("currentOdds") or {}
    event_type = body.get("eventType")
    return Market(
        market_id=str(body.get("marketID") or body.get("marketId") or ""),
        title=title,
        description=description,
        tags=_tag_labels(body.get("tags")),
        volume_24h=to_float(body.get("volume24h"), 0.0),
        liquidity=to_float(body.get("liquidity"), 0.0),
        odds=_clamped_odds(odds.get("yes"), odds.get("no")) if isinstance(odds, dict) else None,
        resolution_date=parse_datetime(body.get("eventDate") or body.get("endDate")),
        event_type=str(event_type) if event_type else infer_event_type(title, description),
        venue=str(location) if location else extract_location(title),
        participants=_participants(title, description, body.get("participants")),
    )


# ── Weather payloads ─────────────────────────────────────────────────

def weather_from_payload(payload: Any) -> WeatherSnapshot | None:
    """
    Accept either a flat snapshot or a WeatherAPI-shaped payload.

    Current conditions win; the first forecast day fills whatever is
    missing.  Returns None when nothing usable is present.
    """
    if not isinstance(payload, dict) or not payload:
        return None

    current = payload.get("current") if isinstance(payload.get("current"), dict) else payload
    day: dict = {}
    forecast = payload.get("forecast")
    if isinstance(forecast, dict):
        days = forecast.get("forecastday") or []
        if days and isinstance(days[0], dict):
            day = days[0].get("day") or {}

    def _pick(*candidates: Any) -> Optional[float]:
        for c in candidates:
            f = to_float(c, None)
            if f is not None:
                return f
        return None

    condition = current.get("condition")
    if isinstance(condition, dict):
        condition = condition.get("text")
    if not condition and isinstance(day.get("condition"), dict):
        condition = day["condition"].get("text")

    def _bounded(v: Optional[float], hi: float | None = None) -> Optional[float]:
        if v is None or v < 0 or (hi is not None and v > hi):
            return None
        return v

    snapshot = WeatherSnapshot(
        temp_f=_pick(current.get("temp_f"), current.get("temperature"), day.get("avgtemp_f")),
        precip_chance=_bounded(_pick(
            current.get("precip_chance"),
            current.get("precip_prob"),
            current.get("chance_of_rain"),
            day.get("daily_chance_of_rain"),
        ), 100.0),
        wind_mph=_bounded(_pick(current.get("wind_mph"), day.get("maxwind_mph"))),
        humidity=_bounded(_pick(current.get("humidity"), day.get("avghumidity")), 100.0),
        condition=str(condition) if condition else None,
    )
    return None if snapshot.is_empty() else snapshot
