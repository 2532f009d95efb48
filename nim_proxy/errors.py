from typing import Any, Dict, Optional


class ProxyError(Exception):
    """Base class for failures raised intentionally along the chat pipeline.

    Each subclass carries the OpenAI-style `type` it is reported under, so the
    HTTP layer can turn any of them into the caller-facing error envelope
    without inspecting the concrete class.
    """

    error_type = "server_error"
    default_message = "Internal error"

    def __init__(self, message: str = "", **extra: Any):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message
        self.extra = {k: v for k, v in extra.items() if v is not None}

    def to_payload(self) -> Dict[str, Any]:
        error: Dict[str, Any] = {"message": self.message, "type": self.error_type}
        error.update(self.extra)
        return {"error": error}


class InvalidRequestError(ProxyError):
    """Raised when the inbound body is missing or has malformed `messages`."""

    error_type = "invalid_request_error"
    default_message = "Invalid messages"


class ServerMisconfiguredError(ProxyError):
    """Raised when the upstream credential is not configured."""

    error_type = "server_error"
    default_message = "API key not configured"


class UpstreamTimeoutError(ProxyError):
    error_type = "timeout_error"

    def __init__(self, elapsed_seconds: float, model: Optional[str] = None):
        super().__init__(
            f"Timeout after {int(elapsed_seconds)}s. Clear chat history and try again.",
            elapsed_seconds=round(elapsed_seconds, 3),
            model=model,
        )
        self.elapsed_seconds = elapsed_seconds


class RateLimitedError(ProxyError):
    """Raised when the upstream rate limits the request (429).

    Optionally carries a Retry-After value (seconds).
    """

    error_type = "rate_limit_error"
    default_message = "Rate limit exceeded. Wait 2-3 minutes."

    def __init__(self, message: str = "", retry_after_seconds: int | None = None):
        super().__init__(message)
        self.retry_after_seconds = retry_after_seconds


class UnauthorizedError(ProxyError):
    """Raised when the upstream rejects our credential (401)."""

    error_type = "authentication_error"
    default_message = "Invalid API key"


class UpstreamApiError(ProxyError):
    error_type = "api_error"

    def __init__(self, status_code: int, details: str = ""):
        super().__init__(
            f"NVIDIA API error: {status_code}",
            code=status_code,
            details=details[:200] or None,
        )
        self.status_code = status_code


class MalformedUpstreamError(ProxyError):
    """Raised when a 2xx upstream body has no usable `choices`."""

    error_type = "api_error"
    default_message = "Invalid response - no choices"


class EmptyResponseError(ProxyError):
    error_type = "empty_response_error"
    default_message = "Empty response"


class TransportFailureError(ProxyError):
    """Raised when the outbound call fails below the HTTP layer."""

    error_type = "server_error"
    default_message = "Upstream request failed"


def unexpected_error_payload(exc: BaseException) -> Dict[str, Any]:
    return {"error": {"message": str(exc) or "Internal error", "type": "server_error"}}
