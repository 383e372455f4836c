"""
Futures classifier.

Decides whether a market resolves on a season/championship outcome (a
"futures" bet) rather than a single dated event.  Weather analysis is
meaningless for futures, so the orchestrator short-circuits on them.

Signals, summed:
  resolution_date   >=120d: 5, >60d: 3, >30d: 1
  language          championship / season / playoff phrasing: 3 (first match)
  odds              max YES price <=5%: 2, <15%: 1
  metadata          futures tags: 3, single-game tags: -2
  single_event      explicit matchup or calendar date in the title: -2
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from ...polymarket.models import Market
from ...polymarket.utils import utc_now


@dataclass(frozen=True)
class Signal:
    name: str
    score: float
    detail: str


@dataclass(frozen=True)
class FuturesClassification:
    is_futures: bool
    confidence: str
    score: float
    signals: tuple[Signal, ...] = field(default_factory=tuple)
    reason: str = ""

    def to_dict(self) -> dict:
        return {
            "isFutures": self.is_futures,
            "confidence": self.confidence,
            "score": self.score,
            "reason": self.reason,
            "signals": [s.__dict__ for s in self.signals],
        }


# ── Pattern tables ───────────────────────────────────────────────────

_LANGUAGE_PATTERNS: tuple[tuple[str, re.Pattern, float], ...] = (
    ("championship_language",
     re.compile(r"will.*win(?:\s+(?:the|a))?\s+(championship|super bowl|world series|"
                r"stanley cup|nba finals|premier league|champions league|world cup|"
                r"title|pennant|mvp)", re.I), 3),
    ("season_winner",
     re.compile(r"season winner|season champion|division winner", re.I), 3),
    ("future_season",
     re.compile(r"\b(202[5-9]|203[0-9])\b.*\b(season|championship)", re.I), 3),
    ("playoff_qualification", re.compile(r"make (the )?playoffs", re.I), 3),
    ("season_standings",
     re.compile(r"finish (first|top|1st|last) in (the )?(division|conference|league)", re.I), 3),
    ("season_end", re.compile(r"by (the )?(end|conclusion) of (the )?(season|year)", re.I), 2),
    ("season_totals",
     re.compile(r"\b(over|under) \d+(\.\d+)? (wins|points|goals|games) "
                r"(this|next|the) season", re.I), 3),
    ("division_winner",
     re.compile(r"win.*\b(nfc|afc|eastern|western) (east|west|north|south|conference)\b",
                re.I), 3),
)

_FUTURES_TAGS = re.compile(r"\b(futures|season winner|championship)\b", re.I)
_SINGLE_GAME_TAGS = re.compile(r"\b(game|games|match|tonight)\b", re.I)

_MONTHS = (r"jan(?:uary)?|feb(?:ruary)?|mar(?:ch)?|apr(?:il)?|may|june?|july?|"
           r"aug(?:ust)?|sep(?:t(?:ember)?)?|oct(?:ober)?|nov(?:ember)?|dec(?:ember)?")
_SINGLE_EVENT = (
    ("matchup", re.compile(r"\b(vs\.?|versus|v\.)\s|\s@\s", re.I)),
    ("calendar_date", re.compile(
        rf"\b(?:{_MONTHS})\.?\s+\d{{1,2}}(?:st|nd|rd|th)?\b|\b\d{{4}}-\d{{2}}-\d{{2}}\b|"
        r"\b\d{1,2}/\d{1,2}\b", re.I)),
)


# ── Individual signals ───────────────────────────────────────────────

def _resolution_signal(market: Market, now: datetime) -> Optional[Signal]:
    if market.resolution_date is None:
        return None
    days = (market.resolution_date - now).total_seconds() / 86400
    if days >= 120:
        return Signal("resolution_date", 5, f"{round(days)} days away - definitely futures")
    if days > 60:
        return Signal("resolution_date", 3, f"{round(days)} days away - likely futures")
    if days > 30:
        return Signal("resolution_date", 1, f"{round(days)} days away - possibly futures")
    return None


def _language_signal(market: Market) -> Optional[Signal]:
    text = market.text
    for name, pattern, points in _LANGUAGE_PATTERNS:
        if pattern.search(text):
            return Signal("language_patterns", points, f"Matched: {name}")
    return None


def _odds_signal(market: Market) -> Optional[Signal]:
    if market.odds is None or not market.odds.yes:
        return None
    yes = market.odds.yes
    if yes <= 0.05:
        return Signal("odds_analysis", 2,
                      f"Very low odds ({yes * 100:.1f}%) suggests multi-outcome futures")
    if yes < 0.15:
        return Signal("odds_analysis", 1, f"Low odds ({yes * 100:.1f}%) might indicate futures")
    return None


def _metadata_signal(market: Market) -> Optional[Signal]:
    tags = " ".join(market.tags)
    if _FUTURES_TAGS.search(tags):
        return Signal("metadata", 3, "Futures tag detected")
    if _SINGLE_GAME_TAGS.search(tags):
        return Signal("metadata", -2, "Single event tag detected")
    return None


def _single_event_signal(market: Market) -> Optional[Signal]:
    for name, pattern in _SINGLE_EVENT:
        if pattern.search(market.title):
            return Signal("single_event", -2, f"Title names a specific {name.replace('_', ' ')}")
    return None


# ── Entry points ─────────────────────────────────────────────────────

def classify(market: Market, now: datetime | None = None) -> FuturesClassification:
    """Classify a market as futures or single-event.  Pure given ``now``."""
    now = now or utc_now()
    time_sig = _resolution_signal(market, now)
    lang_sig = _language_signal(market)
    meta_sig = _metadata_signal(market)
    single_sig = _single_event_signal(market)
    signals = tuple(
        s for s in (time_sig, lang_sig, _odds_signal(market), meta_sig, single_sig)
        if s is not None
    )
    total = sum(s.score for s in signals)

    is_futures = total >= 3
    if time_sig and time_sig.score >= 3:
        is_futures = True
    if meta_sig and meta_sig.score >= 3:
        is_futures = True
    # Championship phrasing alone is not enough once a matchup/date is named.
    if lang_sig and lang_sig.score >= 2 and single_sig is None:
        is_futures = True

    if total >= 5:
        confidence = "HIGH"
    elif total >= 3:
        confidence = "MEDIUM"
    else:
        confidence = "LOW"

    if is_futures:
        reason = "; ".join(s.detail for s in signals if s.score >= 2) or "Futures bet detected"
    else:
        reason = "Single event - weather analysis applicable"

    return FuturesClassification(
        is_futures=is_futures,
        confidence=confidence,
        score=total,
        signals=signals,
        reason=reason,
    )


def is_futures_bet(market: Market, now: datetime | None = None) -> bool:
    return classify(market, now).is_futures
