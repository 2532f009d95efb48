import os
import time
import logging

LOG_REQUESTS = os.getenv("LOG_REQUESTS", "false").lower() in {"1", "true", "yes"}
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# Parent of every nim_proxy.* logger, so the chat pipeline's lines
# (route, shape, upstream, extract) share the request log's handler.
_root_logger = logging.getLogger("nim_proxy")
_logger = logging.getLogger("nim_proxy.request")


def configure_logging(enabled: bool = LOG_REQUESTS, level: str = LOG_LEVEL) -> None:
    if not enabled:
        return
    _root_logger.setLevel(getattr(logging, level, logging.INFO))
    # Let Uvicorn keep the root config; only attach our own handler once
    if not _root_logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(
            logging.Formatter(
                fmt="%(asctime)s %(levelname)s %(name)s: %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        )
        _root_logger.addHandler(handler)
        _root_logger.propagate = False


configure_logging()


async def request_logging_middleware(request, call_next):
    if not LOG_REQUESTS:
        return await call_next(request)
    start = time.perf_counter()
    rid = getattr(request.state, "request_id", None) or request.headers.get(
        "x-request-id", "-"
    )

    if _logger.isEnabledFor(logging.DEBUG):
        _logger.debug(
            "incoming rid=%s method=%s path=%s content_length=%s origin=%s",
            rid,
            request.method,
            request.url.path,
            request.headers.get("content-length"),
            request.headers.get("origin", ""),
        )

    response = await call_next(request)
    # Chat failures are reported with status 200; the envelope type is the
    # signal, which the chat router logs on its own
    _logger.info(
        "rid=%s method=%s path=%s status=%s duration_ms=%.2f client=%s ua=%s",
        rid,
        request.method,
        request.url.path,
        response.status_code,
        (time.perf_counter() - start) * 1000.0,
        request.client.host if request.client else "",
        request.headers.get("user-agent", ""),
    )
    return response
