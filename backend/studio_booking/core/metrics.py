"""
Metrics instrumentation for observability.
Exposes Prometheus-compatible metrics at /metrics endpoint.
"""

from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from fastapi import Response

# Booking metrics
booking_requests = Counter(
    'booking_requests_total',
    'Booking requests by outcome',
    ['outcome']  # confirmed, waitlisted, rejected
)

booking_latency = Histogram(
    'booking_latency_seconds',
    'Booking request latency',
    buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0]
)

booking_cancellations = Counter(
    'booking_cancellations_total',
    'Confirmed bookings cancelled',
    ['source']  # user, staff, class_cancelled
)

capacity_races_lost = Counter(
    'capacity_races_lost_total',
    'Seat reservations that lost the last-seat race and fell back to the waitlist'
)

# Waitlist metrics
waitlist_operations = Counter(
    'waitlist_operations_total',
    'Waitlist queue operations',
    ['operation']  # enqueue, dequeue, remove
)

waitlist_promotions = Counter(
    'waitlist_promotions_total',
    'Promotion attempts after a freed seat',
    ['result']  # promoted, skipped, exhausted
)

# Credit ledger metrics
credit_operations = Counter(
    'credit_operations_total',
    'Credit ledger operations',
    ['operation', 'result']  # debit/credit/adjust, ok/insufficient
)

# Notification metrics
notifications_dispatched = Counter(
    'notifications_dispatched_total',
    'Notifications handed to the dispatcher',
    ['kind', 'result']  # confirmed/waitlisted/promoted/cancelled, sent/failed
)

# Maintenance metrics
sweep_runs = Counter(
    'sweep_runs_total',
    'Background sweep runs',
    ['result']  # ok, failed
)

# Cache metrics
cache_operations = Counter(
    'cache_operations_total',
    'Cache operations',
    ['operation', 'result']  # get/set, hit/miss
)


def metrics_endpoint() -> Response:
    """
    Prometheus metrics endpoint.

    Usage:
        @app.get("/metrics")
        def metrics():
            return metrics_endpoint()
    """
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST
    )


# Convenience functions for instrumentation
def record_booking_request(outcome: str):
    """Record booking request. Outcome: confirmed, waitlisted, rejected"""
    booking_requests.labels(outcome=outcome).inc()


def record_cancellation(source: str):
    booking_cancellations.labels(source=source).inc()


def record_waitlist_operation(operation: str):
    """Record waitlist mutation. Operation: enqueue, dequeue, remove"""
    waitlist_operations.labels(operation=operation).inc()


def record_promotion(result: str):
    """Record promotion attempt. Result: promoted, skipped, exhausted"""
    waitlist_promotions.labels(result=result).inc()


def record_credit_operation(operation: str, ok: bool):
    result = "ok" if ok else "insufficient"
    credit_operations.labels(operation=operation, result=result).inc()


def record_notification(kind: str, sent: bool):
    result = "sent" if sent else "failed"
    notifications_dispatched.labels(kind=kind, result=result).inc()


def record_sweep(ok: bool):
    sweep_runs.labels(result="ok" if ok else "failed").inc()


def record_cache_operation(operation: str, hit: bool):
    """Record cache operation."""
    result = "hit" if hit else "miss"
    cache_operations.labels(operation=operation, result=result).inc()
