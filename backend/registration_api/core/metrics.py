"""
Metrics instrumentation for observability.
Exposes Prometheus-compatible metrics at /metrics endpoint.
"""

from fastapi import Response
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest

# Request metrics
request_duration = Histogram(
    'http_request_duration_seconds',
    'Request latency',
    ['method', 'route', 'status'],
    buckets=(0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0)
)

# Reservation metrics
hold_requests = Counter(
    'reservation_hold_requests_total',
    'Hold creation attempts',
    ['result']  # created, sold_out
)

holds_released = Counter(
    'reservation_holds_released_total',
    'Holds moved to released',
    ['reason']  # cancelled, expired
)

commit_attempts = Counter(
    'registration_commit_total',
    'Registration commit outcomes',
    ['result']  # committed, duplicate, expired, sold_out
)

commit_retries = Counter(
    'registration_commit_retries_total',
    'Commit retries caused by concurrent modification'
)

# Store metrics
store_conflicts = Counter(
    'store_conditional_write_conflicts_total',
    'Conditional writes rejected by the durable store',
    ['document']  # registrations, holds
)

# Cache metrics
cache_operations = Counter(
    'cache_operations_total',
    'Cache operations',
    ['layer', 'result']  # memory/redis, hit/miss
)

# Integrations
email_failures = Counter(
    'email_send_failures_total',
    'Best-effort email sends that failed'
)


def metrics_endpoint() -> Response:
    """Prometheus metrics endpoint."""
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST
    )


def record_hold(created: bool):
    """Record hold creation outcome."""
    hold_requests.labels(result="created" if created else "sold_out").inc()


def record_release(reason: str, count: int = 1):
    """Record released holds. Reason: cancelled, expired"""
    if count:
        holds_released.labels(reason=reason).inc(count)


def record_commit(result: str):
    """Record commit outcome. Result: committed, duplicate, expired, sold_out"""
    commit_attempts.labels(result=result).inc()


def record_cache_operation(layer: str, hit: bool):
    """Record cache lookup."""
    result = "hit" if hit else "miss"
    cache_operations.labels(layer=layer, result=result).inc()
