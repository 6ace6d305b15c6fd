"""Prometheus metric definitions shared across services."""

from prometheus_client import Counter, Gauge, Histogram, generate_latest
from starlette.responses import Response


sync_runs_total = Counter("sync_runs_total", "Total work-unit synchronization passes", ["service"])
sync_operations_total = Counter(
    "sync_operations_total",
    "Obligation writes produced by synchronization",
    ["service", "operation"],
)
sync_latency_seconds = Histogram("sync_latency_seconds", "Synchronization pass latency seconds", ["service"])
portal_links_issued_total = Counter("portal_links_issued_total", "Portal links issued", ["service"])
portal_lookups_total = Counter(
    "portal_lookups_total",
    "Portal token lookups by outcome",
    ["service", "outcome"],
)
confirmations_total = Counter(
    "confirmations_total",
    "Client confirmation submissions by outcome",
    ["service", "outcome"],
)
notifications_queued_total = Counter("notifications_queued_total", "Notification records queued", ["service"])
notifications_sent_total = Counter("notifications_sent_total", "Notification records sent", ["service"])
notifications_failed_total = Counter(
    "notifications_failed_total",
    "Notification records failed",
    ["service", "reason"],
)
dispatch_latency_seconds = Histogram(
    "dispatch_latency_seconds",
    "Duration of one dispatcher pass in seconds",
    ["service"],
)
notification_queue_pending_total = Gauge(
    "notification_queue_pending_total",
    "Current count of queued notification records",
    ["service"],
)
notification_queue_oldest_due_age_seconds = Gauge(
    "notification_queue_oldest_due_age_seconds",
    "Age in seconds of the oldest due queued notification",
    ["service"],
)
rate_limited_total = Counter("rate_limited_total", "Requests rejected by rate limiting", ["service", "bucket"])
http_requests_total = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["service", "route", "method", "status_code"],
)
http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration seconds",
    ["service", "route", "method"],
)


def metrics_response() -> Response:
    """Expose all registered Prometheus metrics in text format."""

    return Response(content=generate_latest(), media_type="text/plain")
