"""
Error taxonomy.

Every failure that crosses the service boundary is one of these; the HTTP
layer maps ``status_code`` / ``code`` straight onto the response.
"""

from __future__ import annotations

from typing import Any, Optional


class WeatherEdgeError(Exception):
    """Base class for service errors."""
    status_code = 500
    code = "internal_error"

    def __init__(self, message: str = ""):
        super().__init__(message or self.code)
        self.message = message or self.code

    def to_dict(self) -> dict:
        return {"error": self.code, "message": self.message}


class UpstreamUnavailable(WeatherEdgeError):
    """Market data source failed and no usable cached data exists."""
    status_code = 502
    code = "upstream_unavailable"


class ValidationError(WeatherEdgeError):
    """Request parameters or body could not be interpreted."""
    status_code = 400
    code = "validation_error"

    @classmethod
    def from_pydantic(cls, exc: Any) -> "ValidationError":
        """Collapse a pydantic ValidationError to its first problem."""
        errors = exc.errors() if hasattr(exc, "errors") else []
        if not errors:
            return cls(str(exc))
        first = errors[0]
        where = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
        return cls(f"{where}: {first.get('msg')}" if where else str(first.get("msg")))


class ModelUnavailable(WeatherEdgeError):
    """Analysis model timed out, refused, or could not be reached."""
    status_code = 503
    code = "model_unavailable"

    def __init__(self, message: str = "analysis temporarily unavailable"):
        super().__init__(message)


class DecodeFailure(WeatherEdgeError):
    """Model answered, but no structured assessment could be recovered."""
    status_code = 502
    code = "decode_failure"

    def __init__(self, stage: str, reason: str):
        super().__init__(f"{stage}: {reason}")
        self.stage = stage
        self.reason = reason

    def to_dict(self) -> dict:
        return {**super().to_dict(), "stage": self.stage}


class RateLimited(WeatherEdgeError):
    """Caller (or the model provider) exceeded its request budget."""
    status_code = 429
    code = "rate_limited"

    def __init__(self, message: str = "rate limit exceeded", retry_after: Optional[float] = None):
        super().__init__(message)
        self.retry_after = retry_after

    def to_dict(self) -> dict:
        body = super().to_dict()
        if self.retry_after is not None:
            body["retry_after"] = int(round(self.retry_after))
        return body
