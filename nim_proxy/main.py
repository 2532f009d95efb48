from fastapi import FastAPI, Response, Request
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
import logging
import time
import uuid
from nim_proxy.config import load_config
from nim_proxy.errors import ProxyError, unexpected_error_payload
from nim_proxy.routers.health import router as health_router
from nim_proxy.routers.chat import router as chat_router
from nim_proxy.metrics import (
    registry,
    CONTENT_TYPE_LATEST,
    generate_latest,
)
from nim_proxy.middleware.request_id import request_id_and_metrics_middleware
from nim_proxy.middleware.logging import request_logging_middleware
from nim_proxy.middleware.preflight import options_short_circuit_middleware

app = FastAPI(title="nim-proxy")
# Loaded once; routes read it from app.state and never mutate it
app.state.config = load_config()
app.state.start_time = time.time()

if not app.state.config.api_key:
    logging.getLogger("nim_proxy.config").error(
        "NIM_API_KEY is not set; every chat request will fail with server_error"
    )

# Any browser client may call the proxy
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
)


# Register middlewares (order matters; later ones wrap earlier ones)
@app.middleware("http")
async def _options_short_circuit(request, call_next):
    return await options_short_circuit_middleware(request, call_next)


@app.middleware("http")
async def _request_id_and_metrics(request, call_next):
    return await request_id_and_metrics_middleware(request, call_next)


@app.middleware("http")
async def _request_logging(request, call_next):
    return await request_logging_middleware(request, call_next)


# Global exception handler
@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    request_id = getattr(request.state, "request_id", None) or uuid.uuid4().hex
    if isinstance(exc, ProxyError):
        payload = exc.to_payload()
    else:
        logging.getLogger("nim_proxy.errors").exception(
            "unhandled_exception rid=%s path=%s method=%s",
            request_id,
            request.url.path,
            request.method,
        )
        payload = unexpected_error_payload(exc)
    payload["error"]["request_id"] = request_id
    return JSONResponse(
        status_code=200,
        content=payload,
        headers={"x-request-id": request_id},
    )


# Metrics endpoint
@app.get("/metrics")
async def metrics() -> Response:
    return Response(generate_latest(registry), media_type=CONTENT_TYPE_LATEST)


# Routers
app.include_router(health_router)
app.include_router(chat_router)
