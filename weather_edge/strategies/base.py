"""
Analysis request / result types and the prompt builder interface.

Domain-agnostic: the orchestrator receives an AnalysisRequest, a domain
PromptBuilder turns it into chat messages, and the result comes back as an
immutable AnalysisResult.
"""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field, replace
from typing import Any, Literal, Optional, Protocol

from ..polymarket.models import Market, WeatherSnapshot
from ..service.errors import ValidationError

Mode = Literal["basic", "deep"]
MODES = ("basic", "deep")

WEATHER_IMPACT_LEVELS = ("LOW", "MEDIUM", "HIGH", "UNKNOWN", "N/A")
ODDS_EFFICIENCY_VERDICTS = ("FAIR", "OVERPRICED", "UNDERPRICED", "UNKNOWN")
CONFIDENCE_LEVELS = ("LOW", "MEDIUM", "HIGH")


# ── Request ──────────────────────────────────────────────────────────

@dataclass(frozen=True)
class AnalysisRequest:
    """Everything the orchestrator needs to analyse one market."""
    market: Market
    weather: Optional[WeatherSnapshot] = None
    mode: Mode = "basic"
    is_futures: bool = False  # caller-supplied hint; the classifier also runs
    event_date: Optional[str] = None

    def __post_init__(self) -> None:
        if self.mode not in MODES:
            raise ValidationError(f"mode must be one of {', '.join(MODES)}, got {self.mode!r}")


# ── Result ───────────────────────────────────────────────────────────

@dataclass(frozen=True)
class Assessment:
    weather_impact: str = "UNKNOWN"
    odds_efficiency: str = "UNKNOWN"
    confidence: str = "LOW"


@dataclass(frozen=True)
class AnalysisResult:
    """Immutable analysis outcome plus provenance (cached / source / timestamp)."""
    assessment: Assessment
    reasoning: str
    key_factors: tuple[str, ...] = ()
    recommended_action: str = "Monitor manually"
    cached: bool = False
    source: str = "model"
    timestamp: str = ""
    limitations: Optional[str] = None
    citations: tuple[str, ...] = field(default_factory=tuple)

    def with_provenance(self, **changes: Any) -> "AnalysisResult":
        return replace(self, **changes)

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["key_factors"] = list(self.key_factors)
        data["citations"] = list(self.citations)
        return data

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), sort_keys=True)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AnalysisResult":
        return cls(
            assessment=Assessment(**data.get("assessment", {})),
            reasoning=data.get("reasoning", ""),
            key_factors=tuple(data.get("key_factors", ())),
            recommended_action=data.get("recommended_action", "Monitor manually"),
            cached=data.get("cached", False),
            source=data.get("source", "model"),
            timestamp=data.get("timestamp", ""),
            limitations=data.get("limitations"),
            citations=tuple(data.get("citations", ())),
        )

    @classmethod
    def from_json(cls, raw: str) -> "AnalysisResult":
        return cls.from_dict(json.loads(raw))


# ── Prompt builder protocol ──────────────────────────────────────────

class PromptBuilder(Protocol):
    """
    Protocol that domain modules implement to turn an analysis request into
    chat messages for the model.
    """

    def build_messages(self, request: AnalysisRequest) -> list[dict[str, str]]:
        """Return OpenAI-style ``[{"role": ..., "content": ...}]`` messages."""
        ...
