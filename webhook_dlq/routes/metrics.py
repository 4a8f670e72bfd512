"""
Prometheus metrics endpoint.

Exposes webhook delivery and queue metrics for monitoring.
"""
from fastapi import APIRouter, Response
from prometheus_client import Counter, Histogram, Gauge, generate_latest, CONTENT_TYPE_LATEST

router = APIRouter()

# ============================================
# HTTP Request Metrics
# ============================================

http_requests_total = Counter(
    'http_requests_total',
    'Total HTTP requests',
    ['method', 'endpoint', 'status']
)

http_request_duration = Histogram(
    'http_request_duration_seconds',
    'HTTP request duration in seconds',
    ['method', 'endpoint'],
    buckets=[0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0]
)

# ============================================
# Webhook Metrics
# ============================================

webhooks_enqueued = Counter(
    'webhooks_enqueued_total',
    'Total webhooks enqueued for delivery',
    ['event_type']
)

webhook_delivery_attempts = Counter(
    'webhook_delivery_attempts_total',
    'Webhook delivery attempts by resulting transition',
    ['event_type', 'outcome']
)

webhooks_replayed = Counter(
    'webhooks_replayed_total',
    'Dead-lettered webhooks replayed by an operator'
)

webhooks_cleaned_up = Counter(
    'webhooks_cleaned_up_total',
    'Webhook queue rows deleted by cleanup',
    ['reason']
)

# ============================================
# Queue Metrics
# ============================================

webhook_queue_entries = Gauge(
    'webhook_queue_entries',
    'Current webhook queue entries per status',
    ['status']
)


# ============================================
# Metrics Helper Functions
# ============================================

def track_request(method: str, endpoint: str, status: int, duration_seconds: float):
    """
    Record HTTP request metrics.
    
    Call this after each request.
    """
    http_requests_total.labels(
        method=method,
        endpoint=endpoint,
        status=status
    ).inc()
    
    http_request_duration.labels(
        method=method,
        endpoint=endpoint
    ).observe(duration_seconds)


def track_webhook_enqueued(event_type: str):
    """Record a webhook entering the queue."""
    webhooks_enqueued.labels(event_type=event_type).inc()


def track_delivery_attempt(event_type: str, outcome: str):
    """Record one attempt: outcome is delivered, retrying or dead_lettered."""
    webhook_delivery_attempts.labels(event_type=event_type, outcome=outcome).inc()


def track_webhook_replayed():
    """Record an operator replay."""
    webhooks_replayed.inc()


def track_cleanup(reason: str, count: int):
    """Record rows removed by a cleanup sweep."""
    if count:
        webhooks_cleaned_up.labels(reason=reason).inc(count)


def update_queue_depth(pending_retry: int, dead_letter: int, success: int):
    """Update per-status queue gauges."""
    webhook_queue_entries.labels(status="pending_retry").set(pending_retry)
    webhook_queue_entries.labels(status="dead_letter").set(dead_letter)
    webhook_queue_entries.labels(status="success").set(success)


# ============================================
# Prometheus Endpoint
# ============================================

@router.get("/metrics")
async def metrics():
    """
    Prometheus metrics endpoint.
    
    Returns all registered metrics in Prometheus format.
    """
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)
