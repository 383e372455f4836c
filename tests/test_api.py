"""HTTP surface tests using FastAPI's TestClient with in-process fakes."""

import httpx
import pytest
from fastapi.testclient import TestClient

from weather_edge.domains.weather.prompts import WeatherPromptBuilder
from weather_edge.service.api import create_app
from weather_edge.service.cache import AnalysisCache
from weather_edge.service.catalog import CatalogCache
from weather_edge.service.database import SignalStore
from weather_edge.service.discovery import EMPTY_MESSAGE, DiscoveryService
from weather_edge.service.errors import ModelUnavailable
from weather_edge.service.orchestrator import AnalysisOrchestrator
from weather_edge.service.ratelimit import SlidingWindowLimiter

ANALYZE_BODY = {
    "marketID": "bills-dolphins",
    "title": "Bills vs Dolphins: over 44.5 points in Buffalo?",
    "eventType": "NFL",
    "location": "Buffalo",
    "weatherData": {"temp_f": 19, "wind_mph": 28, "precip_chance": 40},
    "currentOdds": {"yes": 0.55, "no": 0.45},
}


@pytest.fixture
def build(tmp_path, make_market, now, fake_llm, good_response):
    """Factory returning (client, llm) around real services and a fake model."""

    def _build(llm=None, fail_upstream=False, limit=10):
        llm = llm or fake_llm(good_response)

        async def fetcher(floor):
            if fail_upstream:
                raise httpx.ConnectError("gamma down")
            return [
                make_market("snow", "Will it snow in Denver?", volume_24h=90_000,
                            liquidity=30_000, venue="Denver", event_type="Weather"),
                make_market("quiet", "Will the Fed cut rates?", volume_24h=70_000),
            ]

        catalog = CatalogCache(fetcher)
        app = create_app(
            discovery=DiscoveryService(catalog, now=lambda: now),
            orchestrator=AnalysisOrchestrator(
                llm=llm,
                cache=AnalysisCache.with_ttl(1200),
                prompt_builder=WeatherPromptBuilder(),
            ),
            signals=SignalStore(str(tmp_path / "signals.db")),
            limiter=SlidingWindowLimiter(limit=limit, window_seconds=3600),
        )
        return TestClient(app), llm

    return _build


# ═══════════════════════════════════════════════════════════
#  POST /markets
# ═══════════════════════════════════════════════════════════

class TestMarkets:

    def test_ranked_markets(self, build):
        client, _ = build()
        with client:
            first = client.post("/markets", json={})
            second = client.post("/markets", json={"limitCount": 1})
        body = first.json()
        assert first.status_code == 200
        assert body["success"] is True
        assert body["markets"][0]["marketID"] == "snow"
        assert body["markets"][0]["edgeFactors"]["weatherDirect"] == 3
        assert body["totalFound"] == 2
        assert body["cached"] is False
        assert second.json()["cached"] is True
        assert len(second.json()["markets"]) == 1

    def test_empty_result_message(self, build):
        client, _ = build()
        with client:
            body = client.post("/markets", json={"location": "Tokyo"}).json()
        assert body["markets"] == []
        assert body["message"] == EMPTY_MESSAGE

    @pytest.mark.parametrize("payload", [{"confidence": "EXTREME"}, {"limitCount": 0}, [1, 2]])
    def test_bad_filters(self, build, payload):
        client, _ = build()
        with client:
            resp = client.post("/markets", json=payload)
        assert resp.status_code == 400
        assert resp.json()["error"] == "validation_error"

    def test_malformed_json_rejected(self, build):
        client, _ = build()
        with client:
            resp = client.post(
                "/markets", content=b"{not json", headers={"content-type": "application/json"}
            )
        assert resp.status_code == 400
        assert resp.json()["message"] == "request body must be valid JSON"

    def test_empty_body_uses_defaults(self, build):
        client, _ = build()
        with client:
            resp = client.post("/markets")
        assert resp.status_code == 200
        assert resp.json()["totalFound"] == 2

    def test_upstream_down(self, build):
        client, _ = build(fail_upstream=True)
        with client:
            resp = client.post("/markets", json={})
        assert resp.status_code == 502
        assert resp.json()["error"] == "upstream_unavailable"


# ═══════════════════════════════════════════════════════════
#  POST /analyze
# ═══════════════════════════════════════════════════════════

class TestAnalyze:

    def test_analysis_then_cached(self, build):
        client, llm = build()
        with client:
            first = client.post("/analyze", json=ANALYZE_BODY)
            second = client.post("/analyze", json=ANALYZE_BODY)
        body = first.json()
        assert first.status_code == 200
        assert body["success"] is True
        assert body["assessment"]["weather_impact"] == "HIGH"
        assert body["weather_conditions"]["wind"] == "28 mph"
        assert body["web_search"] is False
        assert body["cached"] is False
        assert second.json()["cached"] is True
        assert len(llm.calls) == 1

    def test_futures_bypass(self, build):
        client, llm = build()
        with client:
            resp = client.post("/analyze", json={
                "marketID": "bengals",
                "title": "Will the Cincinnati Bengals win Super Bowl 2026?",
            })
        body = resp.json()
        assert resp.status_code == 200
        assert body["assessment"]["weather_impact"] == "N/A"
        assert body["source"] == "futures_bypass"
        assert llm.calls == []

    @pytest.mark.parametrize("missing", ["title", "marketID"])
    def test_required_fields(self, build, missing):
        client, _ = build()
        body = {k: v for k, v in ANALYZE_BODY.items() if k != missing}
        with client:
            resp = client.post("/analyze", json=body)
        assert resp.status_code == 400
        assert missing in resp.json()["message"]

    def test_decode_failure(self, build, fake_llm):
        client, _ = build(llm=fake_llm("I'd rather not answer in JSON."))
        with client:
            resp = client.post("/analyze", json=ANALYZE_BODY)
        body = resp.json()
        assert resp.status_code == 502
        assert body["success"] is False
        assert body["error"] == "decode_failure"
        assert body["assessment"]["weather_impact"] == "UNKNOWN"
        assert body["reasoning"]

    def test_model_unavailable(self, build, fake_llm):
        client, _ = build(llm=fake_llm(error=ModelUnavailable()))
        with client:
            resp = client.post("/analyze", json=ANALYZE_BODY)
        assert resp.status_code == 503
        assert resp.json()["error"] == "model_unavailable"

    def test_rate_limited(self, build):
        client, _ = build(limit=1)
        with client:
            client.post("/analyze", json=ANALYZE_BODY)
            resp = client.post("/analyze", json=ANALYZE_BODY)
        assert resp.status_code == 429
        assert int(resp.headers["retry-after"]) > 0

    def test_status(self, build):
        client, _ = build()
        with client:
            body = client.get("/analyze").json()
        assert body["status"] == "operational"
        assert body["model"] == "fake-model"
        assert body["rate_limit"] == {"requests": 10, "window_seconds": 3600}


# ═══════════════════════════════════════════════════════════
#  /signals
# ═══════════════════════════════════════════════════════════

class TestSignals:

    def test_save_list_and_patch(self, build):
        client, _ = build()
        with client:
            saved = client.post("/signals", json={
                "market": {"marketID": "snow", "title": "Will it snow in Denver?"},
                "analysis": {"assessment": {"confidence": "HIGH"}, "reasoning": "Storm"},
            }).json()
            patched = client.patch("/signals", json={"id": saved["id"], "tx_hash": "0x1"})
            missing = client.patch("/signals", json={"id": "nope", "tx_hash": "0x2"})
            listed = client.get("/signals", params={"limit": 5}).json()
        assert saved["success"] is True
        assert patched.status_code == 200
        assert missing.status_code == 404
        assert listed["signals"][0]["tx_hash"] == "0x1"

    def test_bad_limit(self, build):
        client, _ = build()
        with client:
            assert client.get("/signals", params={"limit": 0}).status_code == 400
