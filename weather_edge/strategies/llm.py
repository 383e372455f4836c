"""
LLM client for weather analysis.

Domain-agnostic: takes chat messages built by a domain PromptBuilder, calls
an OpenAI-compatible ``/chat/completions`` endpoint (Venice by default) and
returns the raw assistant text.  Parsing is the job of ``recovery``.

Transport problems surface as typed service errors and are never retried
here; retry policy belongs to the caller.
"""

import logging
from typing import Any, Optional

import httpx

from .base import Mode
from ..service.errors import DecodeFailure, ModelUnavailable, RateLimited

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.venice.ai/api/v1"
DEFAULT_MODEL = "llama-3.3-70b"


class LLMClient:
    """Thin async client over an OpenAI-compatible chat completions API."""

    def __init__(self, config: dict, transport: Optional[httpx.AsyncBaseTransport] = None):
        """
        Args:
            config: The ``model`` config section.  Uses 'api_key', 'base_url',
                    'model', 'temperature' and the per-mode
                    '{basic,deep}_max_tokens' / '{basic,deep}_timeout'.
            transport: Optional httpx transport (tests use MockTransport).
        """
        self.api_key = config.get("api_key")
        self.base_url = config.get("base_url", DEFAULT_BASE_URL).rstrip("/")
        self.model = config.get("model", DEFAULT_MODEL)
        self.temperature = config.get("temperature", 0.3)
        self.mode_params = {
            "basic": {
                "max_tokens": config.get("basic_max_tokens", 1000),
                "timeout": config.get("basic_timeout", 30.0),
                "web_search": False,
            },
            "deep": {
                "max_tokens": config.get("deep_max_tokens", 2000),
                "timeout": config.get("deep_timeout", 120.0),
                "web_search": True,
            },
        }
        self._transport = transport

    @property
    def name(self) -> str:
        return f"LLM ({self.model})"

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    def timeout_for(self, mode: Mode) -> float:
        return float(self.mode_params[mode]["timeout"])

    def build_payload(self, messages: list[dict[str, str]], mode: Mode) -> dict[str, Any]:
        params = self.mode_params[mode]
        payload: dict[str, Any] = {
            "model": self.model,
            "messages": messages,
            "temperature": self.temperature,
            "max_tokens": params["max_tokens"],
        }
        # Venice wants the string "auto", not a boolean.
        if params["web_search"]:
            payload["venice_parameters"] = {"enable_web_search": "auto"}
        return payload

    # ── LLM call ─────────────────────────────────────────────────────

    async def complete(self, messages: list[dict[str, str]], mode: Mode = "basic") -> str:
        """Send one chat completion request and return the message content."""
        if not self.api_key:
            raise ModelUnavailable("analysis model is not configured")

        url = f"{self.base_url}/chat/completions"
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        payload = self.build_payload(messages, mode)
        timeout = self.timeout_for(mode)

        logger.debug("POST %s model=%s mode=%s", url, self.model, mode)
        try:
            async with httpx.AsyncClient(timeout=timeout, transport=self._transport) as client:
                response = await client.post(url, json=payload, headers=headers)
        except httpx.TimeoutException as e:
            logger.warning("Model call timed out after %.0fs (%s)", timeout, mode)
            raise ModelUnavailable() from e
        except httpx.TransportError as e:
            logger.error("Model transport error: %s", e)
            raise ModelUnavailable() from e

        if response.status_code == 429:
            retry_after = _retry_after(response.headers.get("retry-after"))
            logger.warning("Model provider rate limited (retry-after=%s)", retry_after)
            raise RateLimited("model provider rate limit", retry_after=retry_after)
        if response.status_code >= 400:
            logger.error("Model HTTP %d: %s", response.status_code, response.text[:200])
            raise ModelUnavailable()

        try:
            data = response.json()
            content = data["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise DecodeFailure("envelope", "unexpected completion payload") from e
        if not isinstance(content, str):
            raise DecodeFailure("envelope", "completion content is not text")
        return content


def _retry_after(raw: Optional[str]) -> Optional[float]:
    if raw is None:
        return None
    try:
        return float(raw)
    except ValueError:
        return None
