"""
Weather-impact prompt templates for the analysis model.

Implements the PromptBuilder protocol expected by the analysis orchestrator.
"""

from __future__ import annotations

from ...polymarket.models import WeatherSnapshot
from ...strategies.base import AnalysisRequest

SYSTEM_PROMPT = """You are an expert sports betting analyst specializing in weather impacts on event outcomes. Provide SPECIFIC, ACTIONABLE analysis with clear reasoning.

STRICT REQUIREMENTS:
- Tailor analysis to the given event, venue and participants only
- Do NOT reuse or reference any example content; generate event-specific analysis
- You MUST respond with ONLY a valid JSON object, no other text before or after
- Do NOT wrap the JSON in markdown code blocks
- Output a single JSON object with the required fields only"""

RESPONSE_SCHEMA = """{
  "weather_impact": "LOW|MEDIUM|HIGH",
  "odds_efficiency": "FAIR|OVERPRICED|UNDERPRICED|UNKNOWN",
  "confidence": "LOW|MEDIUM|HIGH",
  "analysis": "Event-specific reasoning only, no example content",
  "key_factors": ["specific, measurable factors"],
  "recommended_action": "Clear recommendation"
}"""

DEEP_ADDENDUM = """
Use web search to confirm the venue, kickoff time and any roof/dome status,
and list the sources you relied on in an optional "citations" array."""


def _fmt(value, suffix: str = "", missing: str = "unknown") -> str:
    if value is None:
        return missing
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return f"{value}{suffix}"


class WeatherPromptBuilder:
    """Builds chat messages for weather-impact analysis of a single market."""

    def build_messages(self, request: AnalysisRequest) -> list[dict[str, str]]:
        market = request.market
        weather = request.weather or WeatherSnapshot()

        participants = " vs ".join(market.participants) or "Unknown"
        scheduled = request.event_date or (
            market.resolution_date.date().isoformat() if market.resolution_date else "Unknown"
        )
        if market.odds is not None:
            odds = (
                f"YES {_fmt(market.odds.yes and round(market.odds.yes * 100, 1), '%')}, "
                f"NO {_fmt(market.odds.no and round(market.odds.no * 100, 1), '%')}"
            )
        else:
            odds = "unavailable"

        user = f"""EVENT CONTEXT
- Event Title: {market.title or "Unknown"}
- Event Type: {market.event_type or "Unknown"}
- Participants: {participants}
- Venue: {market.venue or "Unknown"}
- Scheduled Date: {scheduled}

WEATHER
- Temperature: {_fmt(weather.temp_f, "°F")}
- Condition: {_fmt(weather.condition)}
- Precipitation chance: {_fmt(weather.precip_chance, "%")}
- Wind: {_fmt(weather.wind_mph, " mph")}
- Humidity: {_fmt(weather.humidity, "%")}

MARKET ODDS: {odds}

RESPONSE FORMAT - You MUST respond with ONLY this JSON structure, no other text:
{RESPONSE_SCHEMA}
{DEEP_ADDENDUM if request.mode == "deep" else ""}
Respond with ONLY the JSON object above. Do not include any text before or after the JSON."""

        return [
            {"role": "system", "content": SYSTEM_PROMPT},
            {"role": "user", "content": user},
        ]
