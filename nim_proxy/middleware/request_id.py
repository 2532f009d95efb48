import time
import uuid

from nim_proxy.metrics import http_requests_total, http_request_duration_seconds


def _path_label(request) -> str:
    # Prefer the matched route template so label cardinality stays bounded
    route = request.scope.get("route")
    return getattr(route, "path", None) or request.url.path


async def request_id_and_metrics_middleware(request, call_next):
    start = time.perf_counter()
    request_id = request.headers.get("x-request-id") or uuid.uuid4().hex
    request.state.request_id = request_id
    status = "500"
    try:
        response = await call_next(request)
        status = str(response.status_code)
        response.headers["x-request-id"] = request_id
        return response
    finally:
        labels = {"method": request.method, "path": _path_label(request), "status": status}
        http_requests_total.labels(**labels).inc()
        http_request_duration_seconds.labels(**labels).observe(
            time.perf_counter() - start
        )
