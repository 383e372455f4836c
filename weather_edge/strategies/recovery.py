"""
Response recovery for model output.

The model is asked for a bare JSON object but routinely wraps it in a
reasoning trace, a markdown fence, leading prose, or all three.  Recovery is
a pipeline of named stages composed left to right; each takes text and
returns refined text (or, for the last stages, a dict) or raises
``DecodeFailure(stage, reason)``.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Callable

from .base import CONFIDENCE_LEVELS, ODDS_EFFICIENCY_VERDICTS, WEATHER_IMPACT_LEVELS
from ..service.errors import DecodeFailure

logger = logging.getLogger(__name__)

DEFAULTS: dict[str, Any] = {
    "weather_impact": "UNKNOWN",
    "odds_efficiency": "UNKNOWN",
    "confidence": "LOW",
    "analysis": "No reasoning provided",
    "key_factors": [],
    "recommended_action": "Monitor manually",
}

_ENUMS = {
    "weather_impact": WEATHER_IMPACT_LEVELS,
    "odds_efficiency": ODDS_EFFICIENCY_VERDICTS,
    "confidence": CONFIDENCE_LEVELS,
}

# Placeholder strings from the response template; seeing them means the
# model echoed the template instead of answering.
_TEMPLATE_ECHOES = (
    "event-specific reasoning only",
    "specific, measurable factors",
    "low|medium|high",
)

_TRACE_TAGS = ("think", "thinking", "reasoning")
_TRACE_CLOSE = re.compile(r"</(?:%s)\s*>" % "|".join(_TRACE_TAGS), re.I)
_TRACE_OPEN = re.compile(r"^\s*<(?:%s)\s*>" % "|".join(_TRACE_TAGS), re.I)
_FENCE = re.compile(r"```[ \t]*[A-Za-z0-9_-]*[ \t]*\r?\n?(.*?)```", re.S)


# ── Stages ───────────────────────────────────────────────────────────

def strip_reasoning_trace(text: str) -> str:
    """Keep only what follows the last closing trace tag."""
    if not text or not text.strip():
        raise DecodeFailure("strip_reasoning_trace", "empty response")
    closes = list(_TRACE_CLOSE.finditer(text))
    if closes:
        return text[closes[-1].end():].strip()
    # Unterminated trace: drop the opener and let later stages find the object.
    return _TRACE_OPEN.sub("", text, count=1).strip()


def strip_code_fence(text: str) -> str:
    """Return the body of the first fenced block, if any."""
    match = _FENCE.search(text)
    if match:
        return match.group(1).strip()
    # Dangling opener with no closing fence.
    if text.lstrip().startswith("```"):
        return re.sub(r"^\s*```[A-Za-z0-9_-]*", "", text).strip()
    return text


def extract_json_object(text: str) -> str:
    """First balanced ``{...}`` span; braces inside strings are ignored."""
    start = text.find("{")
    if start == -1:
        raise DecodeFailure("extract_json_object", "no JSON object found")

    depth = 0
    in_string = False
    escaped = False
    for i in range(start, len(text)):
        ch = text[i]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return text[start:i + 1]
    raise DecodeFailure("extract_json_object", "unbalanced braces")


def decode_json_object(text: str) -> dict:
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise DecodeFailure("decode_json_object", f"invalid JSON: {e.msg}") from e
    if not isinstance(data, dict):
        raise DecodeFailure("decode_json_object", "expected a JSON object")
    return data


def _normalise_enum(key: str, value: Any) -> str:
    allowed = _ENUMS[key]
    if isinstance(value, str):
        candidate = value.strip().upper().replace(" ", "_")
        if candidate in allowed:
            return candidate
        # "MEDIUM-HIGH", "High confidence" and friends: first allowed word wins.
        for word in re.split(r"[^A-Z/]+", candidate):
            if word in allowed:
                return word
    return DEFAULTS[key]


def _normalise_factors(value: Any) -> list[str]:
    if isinstance(value, list):
        return [str(v).strip() for v in value if str(v).strip()]
    if isinstance(value, str) and value.strip():
        return [value.strip()]
    return []


def apply_defaults(data: dict) -> dict:
    """
    Fill documented defaults for missing keys and coerce enumerations.

    A decoded object that carries none of the expected keys is not an
    assessment at all and fails.
    """
    if not any(key in data for key in DEFAULTS):
        raise DecodeFailure("apply_defaults", "no expected keys present")

    analysis = data.get("analysis")
    if isinstance(analysis, str) and any(e in analysis.lower() for e in _TEMPLATE_ECHOES):
        raise DecodeFailure("apply_defaults", "model echoed the response template")

    out: dict[str, Any] = {}
    for key in _ENUMS:
        out[key] = _normalise_enum(key, data.get(key))
    out["analysis"] = (
        analysis.strip() if isinstance(analysis, str) and analysis.strip()
        else DEFAULTS["analysis"]
    )
    out["key_factors"] = _normalise_factors(data.get("key_factors"))
    action = data.get("recommended_action")
    out["recommended_action"] = (
        action.strip() if isinstance(action, str) and action.strip()
        else DEFAULTS["recommended_action"]
    )
    out["citations"] = _normalise_factors(data.get("citations"))
    limitations = data.get("limitations")
    out["limitations"] = limitations if isinstance(limitations, str) and limitations else None
    return out


# ── Pipeline ─────────────────────────────────────────────────────────

STAGES: tuple[Callable[[Any], Any], ...] = (
    strip_reasoning_trace,
    strip_code_fence,
    extract_json_object,
    decode_json_object,
    apply_defaults,
)


def recover(raw: str) -> dict:
    """Run every stage in order; the first DecodeFailure ends recovery."""
    value: Any = raw if isinstance(raw, str) else ""
    try:
        for stage in STAGES:
            value = stage(value)
    except DecodeFailure as e:
        logger.warning("Response recovery failed at %s: %s", e.stage, e.reason)
        raise
    return value
