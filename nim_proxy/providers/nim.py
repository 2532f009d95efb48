"""
NVIDIA NIM transport
--------------------

`NimTransport` is the only component that talks to the network. It sends an
already-shaped chat-completion payload to `{base_url}/chat/completions` and
returns the decoded JSON body.

Key design points:
1) Authentication
   - The upstream credential comes from `TranslatorConfig.api_key` and is
     always sent as a Bearer token. Inbound Authorization headers are not
     forwarded; callers of the proxy never see or supply the NIM key.

2) Timeouts
   - The httpx client is given `timeout_seconds` so a stalled connection is
     aborted at the transport level as well. The translator additionally
     bounds the whole call with `asyncio.wait_for`, which cancels the request
     task, so a late body is never read after a timeout was reported.

3) Error mapping
   - 429 -> `RateLimitedError`, 401 -> `UnauthorizedError`, any other non-2xx
     -> `UpstreamApiError` with the first 200 characters of the body.
   - httpx timeouts -> `UpstreamTimeoutError`; every other httpx failure ->
     `TransportFailureError`; a 2xx body that is not JSON ->
     `MalformedUpstreamError`.
"""

import logging
import time
from typing import Any, Dict, Optional

import httpx

from nim_proxy.config import TranslatorConfig
from nim_proxy.errors import (
    MalformedUpstreamError,
    RateLimitedError,
    ServerMisconfiguredError,
    TransportFailureError,
    UnauthorizedError,
    UpstreamApiError,
    UpstreamTimeoutError,
)
from nim_proxy.providers.base import UpstreamTransport

logger = logging.getLogger("nim_proxy.upstream")


class NimTransport(UpstreamTransport):
    def __init__(self, config: TranslatorConfig) -> None:
        self.base_url = config.base_url
        self.api_key = config.api_key
        self.timeout_seconds = config.timeout_seconds

    def _headers(self) -> Dict[str, str]:
        if not self.api_key:
            raise ServerMisconfiguredError()
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    async def send(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        headers = self._headers()
        model = payload.get("model")
        start = time.perf_counter()
        try:
            async with httpx.AsyncClient(
                base_url=self.base_url, timeout=self.timeout_seconds
            ) as client:
                response = await client.post(
                    "/chat/completions", headers=headers, json=payload
                )
        except httpx.TimeoutException as exc:
            elapsed = time.perf_counter() - start
            logger.error("upstream.timeout model=%s elapsed=%.2fs: %s", model, elapsed, exc)
            raise UpstreamTimeoutError(elapsed, model=model) from exc
        except httpx.HTTPError as exc:
            logger.error("upstream.transport_error model=%s: %s", model, exc)
            raise TransportFailureError(str(exc)) from exc

        status = response.status_code
        logger.info(
            "upstream.response model=%s status=%s elapsed_ms=%.0f",
            model,
            status,
            (time.perf_counter() - start) * 1000.0,
        )
        if status < 200 or status >= 300:
            body = _safe_text(response)
            logger.error("upstream.error model=%s status=%s body=%s", model, status, body[:200])
            if status == 429:
                raise RateLimitedError(retry_after_seconds=_retry_after(response))
            if status == 401:
                raise UnauthorizedError()
            raise UpstreamApiError(status, details=body)

        try:
            data = response.json()
        except ValueError as exc:
            raise MalformedUpstreamError("Invalid response - body is not JSON") from exc
        if not isinstance(data, dict):
            raise MalformedUpstreamError()
        return data


def _safe_text(response: Any) -> str:
    return getattr(response, "text", "") or ""


def _retry_after(response: Any) -> Optional[int]:
    try:
        return int(response.headers.get("Retry-After"))
    except (TypeError, ValueError, AttributeError):
        return None
