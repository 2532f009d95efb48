from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
import json
import logging
import time
from typing import Any, Dict, Optional, Union

from nim_proxy.config import TranslatorConfig
from nim_proxy.errors import (
    InvalidRequestError,
    ProxyError,
    RateLimitedError,
    ServerMisconfiguredError,
    unexpected_error_payload,
)
from nim_proxy.metrics import upstream_requests_total, upstream_request_duration_seconds
from nim_proxy.providers.base import UpstreamTransport
from nim_proxy.providers.nim import NimTransport
from nim_proxy.schemas.chat import (
    ChatResponse,
    ErrorResponse,
    ModelCard,
    ModelList,
    coerce_model_name,
)
from nim_proxy.translator import Translator

router = APIRouter(tags=["chat"])
logger = logging.getLogger("nim_proxy.chat")

CHAT_PATHS = ("/v1/chat/completions", "/api/chat")


def get_config(request: Request) -> TranslatorConfig:
    return request.app.state.config


def get_transport_override() -> Optional[UpstreamTransport]:
    """Dependency hook for tests to inject a transport instance.

    In production this returns None and a `NimTransport` is built from the
    app config. Tests override it to simulate upstream bodies, failures and
    slow responses without touching the network.
    """
    return None


def _envelope(
    payload: Dict[str, Any], request_id: str, headers: Optional[Dict[str, str]] = None
) -> JSONResponse:
    # Errors are reported with status 200 as well; clients that treat any
    # non-200 as a network failure would otherwise hide the message
    all_headers = {"x-request-id": request_id}
    all_headers.update(headers or {})
    return JSONResponse(status_code=200, content=payload, headers=all_headers)


def _requested_model(body: Any) -> Optional[str]:
    return coerce_model_name(body.get("model")) if isinstance(body, dict) else None


_CHAT_RESPONSES = {
    200: {
        "model": Union[ChatResponse, ErrorResponse],
        "description": "Completion, or an error envelope (errors also use 200)",
    }
}


@router.post(CHAT_PATHS[0], responses=_CHAT_RESPONSES)
@router.post(CHAT_PATHS[1], responses=_CHAT_RESPONSES)
async def chat_completions(
    http_request: Request,
    config: TranslatorConfig = Depends(get_config),
    transport: Optional[UpstreamTransport] = Depends(get_transport_override),
):
    """Translate an OpenAI chat completion into a single NIM call."""
    rid = getattr(http_request.state, "request_id", "-")
    if not config.api_key:
        logger.error("chat.misconfigured rid=%s: NIM_API_KEY is not set", rid)
        return _envelope(ServerMisconfiguredError().to_payload(), rid)

    try:
        body = await http_request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        err = InvalidRequestError("Request body must be valid JSON")
        return _envelope(err.to_payload(), rid)

    translator = Translator(config)
    chosen_transport = transport or NimTransport(config)
    upstream_model = translator.resolve(_requested_model(body)).upstream_model_id
    if logger.isEnabledFor(logging.DEBUG):
        logger.debug(
            "chat.request rid=%s model=%s transport=%s",
            rid,
            _requested_model(body),
            type(chosen_transport).__name__,
        )

    start = time.perf_counter()
    outcome = "success"
    try:
        result = await translator.complete(body, chosen_transport)
        logger.info(
            "chat.success rid=%s model=%s chars=%d duration_ms=%.0f",
            rid,
            result.model,
            len(result.choices[0].message.content),
            (time.perf_counter() - start) * 1000.0,
        )
        return _envelope(result.model_dump(), rid)
    except RateLimitedError as exc:
        outcome = exc.error_type
        headers = {}
        if exc.retry_after_seconds is not None:
            headers["Retry-After"] = str(exc.retry_after_seconds)
        logger.warning("chat.rate_limited rid=%s model=%s", rid, upstream_model)
        return _envelope(exc.to_payload(), rid, headers)
    except ProxyError as exc:
        outcome = exc.error_type
        logger.warning(
            "chat.error rid=%s model=%s type=%s message=%s",
            rid,
            upstream_model,
            exc.error_type,
            exc.message,
        )
        return _envelope(exc.to_payload(), rid)
    except Exception as exc:
        outcome = "server_error"
        logger.exception("chat.unexpected rid=%s model=%s", rid, upstream_model)
        return _envelope(unexpected_error_payload(exc), rid)
    finally:
        duration = time.perf_counter() - start
        upstream_requests_total.labels(model=upstream_model, outcome=outcome).inc()
        upstream_request_duration_seconds.labels(
            model=upstream_model, outcome=outcome
        ).observe(duration)


@router.get(CHAT_PATHS[0], responses={200: {"model": ErrorResponse}})
@router.get(CHAT_PATHS[1], responses={200: {"model": ErrorResponse}})
async def chat_method_not_allowed(http_request: Request):
    rid = getattr(http_request.state, "request_id", "-")
    return _envelope(InvalidRequestError("Method not allowed").to_payload(), rid)


@router.get("/v1/models", response_model=ModelList)
@router.get("/api/models", response_model=ModelList)
async def list_models(config: TranslatorConfig = Depends(get_config)):
    return ModelList(
        data=[
            ModelCard(id=alias, upstream=upstream_id)
            for alias, upstream_id in config.model_map.items()
        ]
    )
