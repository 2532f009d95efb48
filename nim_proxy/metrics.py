from prometheus_client import (
    Counter,
    Histogram,
    CollectorRegistry,
    CONTENT_TYPE_LATEST,
    generate_latest,
)

registry = CollectorRegistry()

http_requests_total = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "path", "status"],
    registry=registry,
)

http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency in seconds",
    ["method", "path", "status"],
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1, 2, 5, 30, 60, 180),
    registry=registry,
)

# Upstream (NIM) call metrics; outcome is "success" or the error type
upstream_requests_total = Counter(
    "upstream_requests_total",
    "Total chat completions by upstream model and outcome",
    ["model", "outcome"],
    registry=registry,
)

upstream_request_duration_seconds = Histogram(
    "upstream_request_duration_seconds",
    "Chat completion latency in seconds, including extraction",
    ["model", "outcome"],
    buckets=(0.1, 0.25, 0.5, 1, 2, 5, 10, 20, 30, 60, 120, 180),
    registry=registry,
)

__all__ = [
    "registry",
    "http_requests_total",
    "http_request_duration_seconds",
    "upstream_requests_total",
    "upstream_request_duration_seconds",
    "CONTENT_TYPE_LATEST",
    "generate_latest",
]
