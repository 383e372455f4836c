"""
MCP server exposing discovery and analysis as agent tools.

Tools:
  - discover_markets   ranked weather-sensitive markets from the catalog
  - analyze_market     weather-impact analysis of one market
  - classify_market    futures vs single-event classification
  - score_market       edge score breakdown for an ad-hoc market

Entry point:
    python -m weather_edge.mcp.server [--config config.yaml]
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
from typing import Any

import mcp.server.stdio
import mcp.types as types
from mcp.server import Server
from pydantic import ValidationError as PydanticValidationError

from ..domains.weather.edge import score
from ..domains.weather.futures import classify
from ..domains.weather.ranker import DiscoveryFilters
from ..polymarket import gamma
from ..polymarket.models import Market
from ..polymarket.normalize import market_from_request, weather_from_payload
from ..service.config import load_config
from ..service.errors import ValidationError, WeatherEdgeError
from ..service.main import LOG_FORMAT, Services, build_services
from ..strategies.base import AnalysisRequest

logger = logging.getLogger(__name__)

_MARKET_PROPERTIES: dict[str, Any] = {
    "marketID": {"type": "string", "description": "Market id (Gamma id or conditionId)."},
    "title": {"type": "string", "description": "Market question, e.g. 'Will it snow in Denver?'"},
    "description": {"type": "string", "description": "Optional resolution text."},
    "eventType": {"type": "string", "description": "NFL, MLB, Soccer, Weather, ..."},
    "location": {"type": "string", "description": "Venue or city."},
    "eventDate": {"type": "string", "description": "ISO date of the event / resolution."},
    "currentOdds": {
        "type": "object",
        "description": "Implied probabilities, e.g. {\"yes\": 0.42, \"no\": 0.58}.",
    },
}

_WEATHER_PROPERTY: dict[str, Any] = {
    "type": "object",
    "description": (
        "Venue conditions: flat {temp_f, precip_chance, wind_mph, humidity, condition} "
        "or a WeatherAPI payload with 'current' / 'forecast'."
    ),
}


class WeatherEdgeMCPServer:
    """MCP server for weather edge research."""

    def __init__(self, services: Services, name: str = "weather-edge"):
        self.services = services
        self.server = Server(name)
        self._register_handlers()

    def _register_handlers(self) -> None:
        @self.server.list_tools()
        async def list_tools() -> list[types.Tool]:
            return self._tools()

        @self.server.call_tool()
        async def call_tool(
            name: str, arguments: dict[str, Any]
        ) -> list[types.TextContent]:
            try:
                result = await self._dispatch(name, arguments or {})
                text = json.dumps(result, indent=2, default=str)
            except WeatherEdgeError as e:
                logger.error("Tool %s failed: %s", name, e.message)
                text = json.dumps({**e.to_dict(), "tool": name}, indent=2)
            return [types.TextContent(type="text", text=text)]

    @staticmethod
    def _tools() -> list[types.Tool]:
        return [
            types.Tool(
                name="discover_markets",
                description=(
                    "List open markets ranked by weather edge score. "
                    "Filters are optional and combine: eventType ('Sports' for any sport), "
                    "confidence (at least HIGH/MEDIUM/LOW), location substring, minVolume, "
                    "maxDaysToResolution. Futures markets are excluded unless "
                    "excludeFutures=false."
                ),
                inputSchema={
                    "type": "object",
                    "properties": {
                        "eventType": {"type": "string"},
                        "confidence": {"type": "string", "enum": ["HIGH", "MEDIUM", "LOW", "all"]},
                        "location": {"type": "string"},
                        "minVolume": {"type": "number"},
                        "maxDaysToResolution": {"type": "number"},
                        "excludeFutures": {"type": "boolean", "default": True},
                        "limitCount": {"type": "integer", "default": 12},
                    },
                },
            ),
            types.Tool(
                name="analyze_market",
                description=(
                    "Ask the analysis model whether current odds misprice weather risk "
                    "for one market. Returns weather impact, odds efficiency, confidence, "
                    "reasoning and key factors. Futures markets return a fixed "
                    "'not applicable' result without calling the model."
                ),
                inputSchema={
                    "type": "object",
                    "properties": {
                        **_MARKET_PROPERTIES,
                        "weatherData": _WEATHER_PROPERTY,
                        "mode": {"type": "string", "enum": ["basic", "deep"], "default": "basic"},
                    },
                    "required": ["marketID", "title"],
                },
            ),
            types.Tool(
                name="classify_market",
                description=(
                    "Decide whether a market is a futures / season-long bet or a single "
                    "dated event, with the signals that drove the decision."
                ),
                inputSchema={
                    "type": "object",
                    "properties": _MARKET_PROPERTIES,
                    "required": ["marketID", "title"],
                },
            ),
            types.Tool(
                name="score_market",
                description=(
                    "Compute the weather edge score breakdown (weatherDirect, "
                    "weatherSensitiveEvent, contextualWeatherImpact, asymmetrySignal) "
                    "for an arbitrary market and optional weather snapshot."
                ),
                inputSchema={
                    "type": "object",
                    "properties": {
                        **_MARKET_PROPERTIES,
                        "volume24h": {"type": "number"},
                        "liquidity": {"type": "number"},
                        "weatherData": _WEATHER_PROPERTY,
                    },
                    "required": ["marketID", "title"],
                },
            ),
        ]

    async def _dispatch(self, name: str, args: dict[str, Any]) -> Any:
        if name == "discover_markets":
            filters = _validated(DiscoveryFilters, args)
            result = await self.services.discovery.discover(filters)
            return {
                "markets": [m.to_dict() for m in result.markets],
                "totalFound": result.total_found,
                "cached": result.cached,
                "stale": result.stale,
                "message": result.message,
            }

        if name == "analyze_market":
            market = _market(args)
            request = AnalysisRequest(
                market=market,
                weather=weather_from_payload(args.get("weatherData")),
                mode=args.get("mode", "basic"),
                event_date=args.get("eventDate"),
            )
            result = await self.services.orchestrator.analyze(request)
            return result.to_dict()

        if name == "classify_market":
            return classify(_market(args)).to_dict()

        if name == "score_market":
            breakdown = score(_market(args), weather_from_payload(args.get("weatherData")))
            return {
                "edgeScore": breakdown.total,
                "edgeFactors": breakdown.factors(),
                "confidence": breakdown.confidence,
                "categories": list(breakdown.matched_categories),
            }

        return {"error": f"Unknown tool: {name}"}

    async def run(self) -> None:
        logger.info("Starting MCP server '%s' ...", self.server.name)
        async with mcp.server.stdio.stdio_server() as (read_stream, write_stream):
            await self.server.run(
                read_stream,
                write_stream,
                self.server.create_initialization_options(),
            )
        await gamma.close_client()


# ── Helpers ──────────────────────────────────────────────────────────

def _validated(model, args: dict[str, Any]):
    try:
        return model.model_validate(args)
    except PydanticValidationError as e:
        raise ValidationError.from_pydantic(e) from e


def _market(args: dict[str, Any]) -> Market:
    try:
        return market_from_request(args)
    except PydanticValidationError as e:
        raise ValidationError.from_pydantic(e) from e


# ── Entry point ──────────────────────────────────────────────────────

def main() -> None:
    parser = argparse.ArgumentParser(description="Weather Edge MCP server")
    parser.add_argument("--config", default="config.yaml", help="Config file path")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format=LOG_FORMAT)
    server = WeatherEdgeMCPServer(build_services(load_config(args.config)))
    asyncio.run(server.run())


if __name__ == "__main__":
    main()
