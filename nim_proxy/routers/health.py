from datetime import datetime, timezone
import os
import time

from fastapi import APIRouter, Request

router = APIRouter()

SERVICE_NAME = "OpenAI to NVIDIA NIM Proxy"


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


@router.get("/")
async def index():
    return {
        "status": "online",
        "service": SERVICE_NAME,
        "endpoints": {
            "health": "/health",
            "api_health": "/api/health",
            "metrics": "/metrics",
            "chat": "/api/chat",
            "v1_chat": "/v1/chat/completions",
            "models": "/api/models",
            "v1_models": "/v1/models",
        },
        "timestamp": _timestamp(),
    }


@router.get("/health")
@router.get("/healthz")
@router.get("/api/health")
async def healthz(request: Request):
    start_time = getattr(request.app.state, "start_time", None)
    uptime_seconds = time.time() - start_time if start_time else None
    config = getattr(request.app.state, "config", None)

    # Without an upstream credential every chat call fails, so report it
    api_key_configured = bool(config and config.api_key)
    status = "ok" if api_key_configured else "degraded"

    return {
        "status": status,
        "service": SERVICE_NAME,
        "timestamp": _timestamp(),
        "uptime_seconds": uptime_seconds,
        "version": os.getenv("APP_VERSION") or "1.0",
        "upstream": {
            "base_url": config.base_url if config else None,
            "api_key_configured": api_key_configured,
            "timeout_seconds": config.timeout_seconds if config else None,
            "models": len(config.model_map) if config else 0,
        },
        "logging": {
            "enabled": os.getenv("LOG_REQUESTS", "false").lower()
            in {"1", "true", "yes"},
            "level": os.getenv("LOG_LEVEL", "INFO").upper(),
        },
    }
