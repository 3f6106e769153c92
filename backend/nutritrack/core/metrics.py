"""Prometheus metrics shared by the middleware and the auth services."""

from prometheus_client import Counter, Histogram

REQUEST_COUNT = Counter(
    "nutritrack_http_requests_total",
    "Total HTTP requests",
    ["method", "path", "status"],
)
REQUEST_LATENCY = Histogram(
    "nutritrack_http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "path"],
)
AUTH_EVENTS = Counter(
    "nutritrack_auth_events_total",
    "Authentication events by outcome",
    ["event"],
)
