"""Tests for the analysis orchestrator state machine."""

import asyncio

import pytest

from weather_edge.domains.weather.prompts import WeatherPromptBuilder
from weather_edge.polymarket.models import WeatherSnapshot
from weather_edge.service.cache import AnalysisCache, fingerprint
from weather_edge.service.errors import (
    DecodeFailure,
    ModelUnavailable,
    RateLimited,
    ValidationError,
)
from weather_edge.service.orchestrator import (
    FUTURES_SOURCE,
    MODEL_SOURCE,
    AnalysisOrchestrator,
)
from weather_edge.strategies.base import AnalysisRequest

STAMP = "2026-01-15T12:00:00+00:00"


def orchestrator(llm, clock):
    return AnalysisOrchestrator(
        llm=llm,
        cache=AnalysisCache.with_ttl(1200, clock),
        prompt_builder=WeatherPromptBuilder(),
        timestamp=lambda: STAMP,
    )


@pytest.fixture
def request_(make_market):
    market = make_market(
        "bills-dolphins",
        "Bills vs Dolphins: over 44.5 points in Buffalo?",
        event_type="NFL",
        venue="Buffalo",
        participants=("Buffalo Bills", "Miami Dolphins"),
    )
    return AnalysisRequest(market, WeatherSnapshot(wind_mph=28, temp_f=19))


# ═══════════════════════════════════════════════════════════
#  FUTURES SHORT-CIRCUIT
# ═══════════════════════════════════════════════════════════

class TestFuturesBypass:

    def test_championship_market_skips_model(self, make_market, fake_llm, clock):
        llm = fake_llm()
        orch = orchestrator(llm, clock)
        market = make_market("bengals", "Will the Cincinnati Bengals win Super Bowl 2026?")
        result = asyncio.run(orch.analyze(AnalysisRequest(market)))

        assert llm.calls == []
        assert result.assessment.weather_impact == "N/A"
        assert result.source == FUTURES_SOURCE
        assert result.cached is False
        assert len(orch.cache) == 0

    def test_caller_hint_respected(self, request_, fake_llm, clock):
        llm = fake_llm()
        orch = orchestrator(llm, clock)
        hinted = AnalysisRequest(request_.market, request_.weather, is_futures=True)
        assert asyncio.run(orch.analyze(hinted)).source == FUTURES_SOURCE
        assert llm.calls == []


# ═══════════════════════════════════════════════════════════
#  MODEL PATH
# ═══════════════════════════════════════════════════════════

class TestModelPath:

    def test_success_then_cache_hit(self, request_, fake_llm, good_response, clock):
        llm = fake_llm(good_response)
        orch = orchestrator(llm, clock)

        async def run():
            return await orch.analyze(request_), await orch.analyze(request_)

        first, second = asyncio.run(run())
        assert first.source == MODEL_SOURCE
        assert first.cached is False
        assert first.assessment.weather_impact == "HIGH"
        assert first.timestamp == STAMP
        assert second.cached is True
        assert second.reasoning == first.reasoning
        assert len(llm.calls) == 1

    def test_cache_expiry_calls_model_again(self, request_, fake_llm, good_response, clock):
        llm = fake_llm(good_response)
        orch = orchestrator(llm, clock)

        async def run():
            await orch.analyze(request_)
            clock.advance(1201)
            return await orch.analyze(request_)

        assert asyncio.run(run()).cached is False
        assert len(llm.calls) == 2

    def test_prompt_carries_event_context(self, request_, fake_llm, good_response, clock):
        llm = fake_llm(good_response)
        asyncio.run(orchestrator(llm, clock).analyze(request_))
        messages, mode = llm.calls[0]
        assert mode == "basic"
        assert messages[0]["role"] == "system"
        user = messages[1]["content"]
        assert "Buffalo Bills vs Miami Dolphins" in user
        assert "Buffalo" in user

    def test_unknown_mode_rejected(self, request_):
        with pytest.raises(ValidationError, match="fast"):
            AnalysisRequest(request_.market, request_.weather, mode="fast")

    def test_decode_failure_not_cached(self, request_, fake_llm, clock):
        orch = orchestrator(fake_llm("Sorry, no JSON today."), clock)
        with pytest.raises(DecodeFailure):
            asyncio.run(orch.analyze(request_))
        assert len(orch.cache) == 0

    def test_partial_response_uses_defaults(self, request_, fake_llm, clock):
        orch = orchestrator(fake_llm('{"weather_impact": "medium"}'), clock)
        result = asyncio.run(orch.analyze(request_))
        assert result.assessment.weather_impact == "MEDIUM"
        assert result.assessment.confidence == "LOW"
        assert result.recommended_action == "Monitor manually"

    @pytest.mark.parametrize("error", [ModelUnavailable(), RateLimited(retry_after=30)])
    def test_model_errors_propagate_uncached(self, request_, fake_llm, clock, error):
        orch = orchestrator(fake_llm(error=error), clock)
        with pytest.raises(type(error)):
            asyncio.run(orch.analyze(request_))
        assert len(orch.cache) == 0
        assert orch.in_flight() == 0


# ═══════════════════════════════════════════════════════════
#  CONCURRENCY
# ═══════════════════════════════════════════════════════════

class TestSingleFlight:

    def test_concurrent_requests_share_one_call(self, request_, fake_llm, good_response, clock):
        async def run():
            llm = fake_llm(good_response)
            llm.release = asyncio.Event()
            orch = orchestrator(llm, clock)
            callers = [asyncio.create_task(orch.analyze(request_)) for _ in range(4)]
            await llm.started.wait()
            assert orch.in_flight() == 1
            llm.release.set()
            results = await asyncio.gather(*callers)
            return llm, orch, results

        llm, orch, results = asyncio.run(run())
        assert len(llm.calls) == 1
        assert orch.model_calls == 1
        assert {r.reasoning for r in results} == {results[0].reasoning}
        assert orch.in_flight() == 0

    def test_different_modes_are_separate_flights(self, request_, fake_llm, good_response, clock):
        async def run():
            llm = fake_llm(good_response)
            orch = orchestrator(llm, clock)
            deep = AnalysisRequest(request_.market, request_.weather, mode="deep")
            await asyncio.gather(orch.analyze(request_), orch.analyze(deep))
            return llm

        llm = asyncio.run(run())
        assert sorted(mode for _, mode in llm.calls) == ["basic", "deep"]

    def test_cancelled_caller_still_populates_cache(self, request_, fake_llm, good_response, clock):
        async def run():
            llm = fake_llm(good_response)
            llm.release = asyncio.Event()
            orch = orchestrator(llm, clock)
            caller = asyncio.create_task(orch.analyze(request_))
            await llm.started.wait()
            caller.cancel()
            with pytest.raises(asyncio.CancelledError):
                await caller
            llm.release.set()
            while orch.in_flight():
                await asyncio.sleep(0)
            return orch

        orch = asyncio.run(run())
        hit = orch.cache.get(fingerprint(request_))
        assert hit is not None
        assert hit.cached is True
