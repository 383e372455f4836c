"""Tests for the chat-completions client, using httpx.MockTransport."""

import asyncio
import json

import httpx
import pytest

from weather_edge.service.errors import DecodeFailure, ModelUnavailable, RateLimited
from weather_edge.strategies.llm import LLMClient

MESSAGES = [{"role": "user", "content": "hi"}]


def client(handler, **config):
    return LLMClient({"api_key": "test-key", **config}, transport=httpx.MockTransport(handler))


def completion(content):
    return httpx.Response(200, json={"choices": [{"message": {"content": content}}]})


class TestPayload:

    def test_basic_mode(self):
        payload = LLMClient({}).build_payload(MESSAGES, "basic")
        assert payload["model"] == "llama-3.3-70b"
        assert payload["temperature"] == 0.3
        assert payload["max_tokens"] == 1000
        assert "venice_parameters" not in payload

    def test_deep_mode_enables_web_search(self):
        payload = LLMClient({}).build_payload(MESSAGES, "deep")
        assert payload["max_tokens"] == 2000
        assert payload["venice_parameters"] == {"enable_web_search": "auto"}

    def test_timeouts_per_mode(self):
        llm = LLMClient({"basic_timeout": 10, "deep_timeout": 90})
        assert llm.timeout_for("basic") == 10.0
        assert llm.timeout_for("deep") == 90.0


class TestComplete:

    def test_returns_content_and_sends_auth(self):
        seen = {}

        def handler(request):
            seen["auth"] = request.headers["authorization"]
            seen["url"] = str(request.url)
            seen["body"] = json.loads(request.content)
            return completion('{"confidence": "HIGH"}')

        llm = client(handler, base_url="https://models.example/v1/")
        assert asyncio.run(llm.complete(MESSAGES)) == '{"confidence": "HIGH"}'
        assert seen["auth"] == "Bearer test-key"
        assert seen["url"] == "https://models.example/v1/chat/completions"
        assert seen["body"]["messages"] == MESSAGES

    def test_missing_key(self):
        llm = LLMClient({})
        assert llm.configured is False
        with pytest.raises(ModelUnavailable):
            asyncio.run(llm.complete(MESSAGES))

    def test_rate_limited_carries_retry_after(self):
        llm = client(lambda r: httpx.Response(429, headers={"Retry-After": "42"}))
        with pytest.raises(RateLimited) as exc:
            asyncio.run(llm.complete(MESSAGES))
        assert exc.value.retry_after == 42.0

    def test_server_error(self):
        llm = client(lambda r: httpx.Response(500, text="boom"))
        with pytest.raises(ModelUnavailable):
            asyncio.run(llm.complete(MESSAGES))

    def test_timeout(self):
        def handler(request):
            raise httpx.ReadTimeout("slow", request=request)

        with pytest.raises(ModelUnavailable):
            asyncio.run(client(handler).complete(MESSAGES))

    def test_connection_error(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(ModelUnavailable):
            asyncio.run(client(handler).complete(MESSAGES))

    @pytest.mark.parametrize("body", [{"choices": []}, {"error": "x"}, {"choices": [{"message": {"content": None}}]}])
    def test_bad_envelope(self, body):
        llm = client(lambda r: httpx.Response(200, json=body))
        with pytest.raises(DecodeFailure) as exc:
            asyncio.run(llm.complete(MESSAGES))
        assert exc.value.stage == "envelope"
