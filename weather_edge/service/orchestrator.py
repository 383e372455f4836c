"""
Analysis orchestrator.

  START -> FUTURES_SHORT_CIRCUIT                       (no cache, no model)
  START -> CACHE_CHECK -> CACHE_HIT
                       -> MODEL_CALL -> RECOVERY -> SUCCESS (cache write)
                                                 -> DECODE_FAILURE (no write)

At most one model call per fingerprint is in flight; concurrent callers for
the same fingerprint join it.  The call runs in its own task, so a caller
that is cancelled does not abort it and the cache still gets populated.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Callable

from .cache import AnalysisCache, fingerprint
from .errors import DecodeFailure, ModelUnavailable, WeatherEdgeError
from ..domains.weather.futures import FuturesClassification, classify
from ..polymarket.models import Market
from ..strategies.base import AnalysisRequest, AnalysisResult, Assessment, PromptBuilder
from ..strategies.llm import LLMClient
from ..strategies.recovery import recover

logger = logging.getLogger(__name__)

FUTURES_SOURCE = "futures_bypass"
MODEL_SOURCE = "model"


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def futures_result(title: str, timestamp: str | None = None) -> AnalysisResult:
    """Fixed disclaimer returned for futures / season-long markets."""
    return AnalysisResult(
        assessment=Assessment(weather_impact="N/A", odds_efficiency="UNKNOWN", confidence="LOW"),
        reasoning=(
            f"This is a futures bet for {title or 'a championship market'}. Weather "
            "analysis isn't applicable since the event won't be decided until the "
            "season plays out. The current odds reflect team strength, injuries, and "
            "schedule difficulty rather than weather conditions."
        ),
        key_factors=(
            "Futures bets cannot be analyzed based on current weather",
            "Championship location and weather unknown until event is scheduled",
            "Season-long performance depends on many games in varying conditions",
        ),
        recommended_action=(
            "Focus on team fundamentals - weather won't impact this outcome. Research "
            "team performance metrics, schedule difficulty, and injury reports instead."
        ),
        cached=False,
        source=FUTURES_SOURCE,
        timestamp=timestamp or _now_iso(),
        limitations="Weather analysis not applicable to futures bets",
    )


def failure_result(error: WeatherEdgeError, timestamp: str | None = None) -> AnalysisResult:
    """Disclaimer shown instead of a blank analysis when the model path fails."""
    if isinstance(error, DecodeFailure):
        reasoning = "The analysis model answered, but its response could not be interpreted."
        action = "Retry the analysis shortly or review the market manually"
    else:
        reasoning = "Analysis is temporarily unavailable."
        action = "Monitor manually and retry later"
    return AnalysisResult(
        assessment=Assessment(),
        reasoning=reasoning,
        key_factors=(),
        recommended_action=action,
        cached=False,
        source=error.code,
        timestamp=timestamp or _now_iso(),
        limitations="No model assessment available",
    )


class AnalysisOrchestrator:
    """Futures check -> cache -> single-flight model call -> recovery -> cache."""

    def __init__(
        self,
        llm: LLMClient,
        cache: AnalysisCache,
        prompt_builder: PromptBuilder,
        classifier: Callable[[Market], FuturesClassification] = classify,
        timestamp: Callable[[], str] = _now_iso,
    ):
        self.llm = llm
        self.cache = cache
        self.prompt_builder = prompt_builder
        self.classifier = classifier
        self._timestamp = timestamp
        self._inflight: dict[str, asyncio.Task] = {}
        self.model_calls = 0

    async def analyze(self, request: AnalysisRequest) -> AnalysisResult:
        """
        Analyse one market.

        Raises:
            DecodeFailure: model answered but nothing structured was recoverable.
            ModelUnavailable: timeout / transport / provider failure.
            RateLimited: provider-side 429.
        """
        if request.is_futures or self.classifier(request.market).is_futures:
            logger.info("Futures market %s: skipping weather analysis", request.market.market_id)
            return futures_result(request.market.title, self._timestamp())

        key = fingerprint(request)
        cached = self.cache.get(key)
        if cached is not None:
            return cached

        task = self._inflight.get(key)
        if task is None:
            task = asyncio.create_task(self._compute(key, request))
            self._inflight[key] = task
            task.add_done_callback(lambda t, k=key: self._finish(k, t))
        else:
            logger.debug("Joining in-flight analysis %s", key[:12])

        return await asyncio.shield(task)

    def in_flight(self) -> int:
        return len(self._inflight)

    # ── Internals ────────────────────────────────────────────────────

    def _finish(self, key: str, task: asyncio.Task) -> None:
        if self._inflight.get(key) is task:
            del self._inflight[key]
        if not task.cancelled() and task.exception() is not None:
            logger.debug("Analysis %s ended with %r", key[:12], task.exception())

    async def _compute(self, key: str, request: AnalysisRequest) -> AnalysisResult:
        messages = self.prompt_builder.build_messages(request)
        self.model_calls += 1
        timeout = self.llm.timeout_for(request.mode)
        try:
            raw = await asyncio.wait_for(self.llm.complete(messages, request.mode), timeout + 5)
        except asyncio.TimeoutError as e:
            # Outer bound in case the transport timeout does not fire.
            raise ModelUnavailable() from e

        parsed = recover(raw)
        result = AnalysisResult(
            assessment=Assessment(
                weather_impact=parsed["weather_impact"],
                odds_efficiency=parsed["odds_efficiency"],
                confidence=parsed["confidence"],
            ),
            reasoning=parsed["analysis"],
            key_factors=tuple(parsed["key_factors"]),
            recommended_action=parsed["recommended_action"],
            cached=False,
            source=MODEL_SOURCE,
            timestamp=self._timestamp(),
            limitations=parsed.get("limitations"),
            citations=tuple(parsed.get("citations", ())),
        )
        self.cache.put(key, result)
        logger.info(
            "Analysed %s (%s): impact=%s confidence=%s",
            request.market.market_id, request.mode,
            result.assessment.weather_impact, result.assessment.confidence,
        )
        return result
