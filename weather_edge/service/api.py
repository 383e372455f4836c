"""
HTTP surface.

  POST  /markets   discovery: catalog -> score -> rank
  POST  /analyze   weather-impact analysis of one market
  GET   /analyze   service status
  POST  /signals   persist a completed analysis
  GET   /signals   latest persisted signals
  PATCH /signals   attach an on-chain tx hash to a signal

Service errors map straight to status codes via ``WeatherEdgeError``.
"""

from __future__ import annotations

import json
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, Literal, Optional, Union

from fastapi import FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from .database import SignalStore
from .discovery import DiscoveryService
from .errors import (
    DecodeFailure,
    ModelUnavailable,
    RateLimited,
    ValidationError,
    WeatherEdgeError,
)
from .orchestrator import AnalysisOrchestrator, failure_result
from .ratelimit import SlidingWindowLimiter
from ..domains.weather.ranker import DiscoveryFilters
from ..polymarket.models import WeatherSnapshot
from ..polymarket.normalize import market_from_request, weather_from_payload
from ..strategies.base import AnalysisRequest, AnalysisResult

logger = logging.getLogger(__name__)


# ── Request bodies ───────────────────────────────────────────────────

class AnalyzeBody(BaseModel):
    model_config = ConfigDict(extra="allow")

    title: str = Field(min_length=1)
    eventType: Optional[str] = None
    location: Union[str, dict, None] = None
    weatherData: Optional[dict] = None
    currentOdds: Optional[dict] = None
    participants: Optional[list] = None
    marketID: str = Field(min_length=1)
    eventDate: Optional[str] = None
    mode: Literal["basic", "deep"] = "basic"
    isFuturesBet: bool = False


class SignalBody(BaseModel):
    market: dict
    analysis: dict
    weather: Optional[dict] = None
    authorAddress: Optional[str] = None


class TxHashBody(BaseModel):
    id: str = Field(min_length=1)
    tx_hash: str = Field(min_length=1)


# ── Helpers ──────────────────────────────────────────────────────────

def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def client_identifier(request: Request) -> str:
    """Best-effort caller identity for rate limiting."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()
    if request.client and request.client.host:
        return request.client.host
    return request.headers.get("user-agent", "unknown")


def _weather_conditions(venue: Optional[str], weather: Optional[WeatherSnapshot]) -> dict:
    w = weather or WeatherSnapshot()

    def _v(value: Any, suffix: str) -> str:
        return f"{value:g}{suffix}" if isinstance(value, (int, float)) else "N/A"

    return {
        "location": venue or "Unknown",
        "temperature": _v(w.temp_f, "°F"),
        "condition": w.condition or "Unknown",
        "precipitation": _v(w.precip_chance, "%"),
        "wind": _v(w.wind_mph, " mph"),
    }


def analysis_body(
    result: AnalysisResult,
    market_id: str,
    mode: str,
    venue: Optional[str] = None,
    weather: Optional[WeatherSnapshot] = None,
) -> dict[str, Any]:
    return {
        "marketId": market_id,
        "assessment": {
            "weather_impact": result.assessment.weather_impact,
            "odds_efficiency": result.assessment.odds_efficiency,
            "confidence": result.assessment.confidence,
        },
        "reasoning": result.reasoning,
        "key_factors": list(result.key_factors),
        "recommended_action": result.recommended_action,
        "limitations": result.limitations,
        "citations": list(result.citations),
        "weather_conditions": _weather_conditions(venue, weather),
        "cached": result.cached,
        "source": result.source,
        "timestamp": result.timestamp,
        "web_search": mode == "deep",
    }


def _error_response(exc: WeatherEdgeError, extra: dict | None = None) -> JSONResponse:
    headers = {}
    if isinstance(exc, RateLimited) and exc.retry_after is not None:
        headers["Retry-After"] = str(int(round(exc.retry_after)))
    content = {"success": False, **exc.to_dict(), **(extra or {})}
    return JSONResponse(status_code=exc.status_code, content=content, headers=headers)


# ── App factory ──────────────────────────────────────────────────────

def create_app(
    *,
    discovery: DiscoveryService,
    orchestrator: AnalysisOrchestrator,
    signals: SignalStore,
    limiter: SlidingWindowLimiter,
    on_shutdown: Any = None,
) -> FastAPI:
    """Build the FastAPI app around already-constructed services."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await signals.init_schema()
        yield
        if on_shutdown is not None:
            await on_shutdown()

    app = FastAPI(title="Weather Edge", lifespan=lifespan)

    @app.exception_handler(WeatherEdgeError)
    async def _service_error(request: Request, exc: WeatherEdgeError) -> JSONResponse:
        return _error_response(exc)

    @app.exception_handler(RequestValidationError)
    async def _body_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        return _error_response(ValidationError.from_pydantic(exc))

    # ── Discovery ────────────────────────────────────────────────────

    @app.post("/markets")
    async def post_markets(request: Request) -> dict:
        raw = await request.body()
        try:
            body = json.loads(raw) if raw.strip() else {}
        except ValueError as e:
            raise ValidationError("request body must be valid JSON") from e
        if not isinstance(body, dict):
            raise ValidationError("request body must be a JSON object")
        try:
            filters = DiscoveryFilters.model_validate(body)
        except PydanticValidationError as e:
            raise ValidationError.from_pydantic(e) from e

        result = await discovery.discover(filters)
        response = {
            "success": True,
            "markets": [m.to_dict() for m in result.markets],
            "totalFound": result.total_found,
            "cached": result.cached,
            "stale": result.stale,
            "timestamp": _now_iso(),
        }
        if result.message:
            response["message"] = result.message
        return response

    # ── Analysis ─────────────────────────────────────────────────────

    @app.post("/analyze")
    async def post_analyze(body: AnalyzeBody, request: Request):
        limiter.check(client_identifier(request))

        try:
            market = market_from_request(body.model_dump())
            weather = weather_from_payload(body.weatherData)
        except PydanticValidationError as e:
            raise ValidationError.from_pydantic(e) from e

        analysis_request = AnalysisRequest(
            market=market,
            weather=weather,
            mode=body.mode,
            is_futures=body.isFuturesBet,
            event_date=body.eventDate,
        )
        try:
            result = await orchestrator.analyze(analysis_request)
        except (DecodeFailure, ModelUnavailable, RateLimited) as e:
            logger.warning("Analysis of %s failed: %s", market.market_id, e.message)
            disclaimer = analysis_body(
                failure_result(e), market.market_id, body.mode, market.venue, weather
            )
            return _error_response(e, disclaimer)

        return {
            "success": True,
            **analysis_body(result, market.market_id, body.mode, market.venue, weather),
        }

    @app.get("/analyze")
    async def get_analyze() -> dict:
        llm = orchestrator.llm
        return {
            "status": "operational" if llm.configured else "degraded",
            "service": "Weather Edge analysis",
            "model": llm.model,
            "available": llm.configured,
            "analysis_cache": orchestrator.cache.status(),
            "catalog": discovery.catalog.status(),
            "in_flight": orchestrator.in_flight(),
            "rate_limit": {
                "requests": limiter.limit,
                "window_seconds": limiter.window_seconds,
            },
            "timestamp": _now_iso(),
        }

    # ── Signals ──────────────────────────────────────────────────────

    @app.post("/signals")
    async def post_signal(body: SignalBody) -> dict:
        signal_id = await signals.save_signal(
            body.market, body.analysis, body.weather, body.authorAddress
        )
        return {"success": True, "id": signal_id}

    @app.get("/signals")
    async def get_signals(limit: int = Query(default=20, ge=1, le=200)) -> dict:
        return {"success": True, "signals": await signals.latest_signals(limit)}

    @app.patch("/signals")
    async def patch_signal(body: TxHashBody):
        updated = await signals.update_tx_hash(body.id, body.tx_hash)
        if not updated:
            return JSONResponse(
                status_code=404,
                content={"success": False, "error": "not_found", "message": f"no signal {body.id}"},
            )
        return {"success": True}

    return app
