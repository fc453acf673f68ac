"""Prometheus metrics shared by the app and the routers."""

from __future__ import annotations

from prometheus_client import Counter, Histogram

REQUEST_COUNT = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status"],
)
REQUEST_LATENCY = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint"],
)
CATALOG_OPERATIONS = Counter(
    "catalog_operations_total",
    "Successful catalog mutations",
    ["operation"],
)
