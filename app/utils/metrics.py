"""
Prometheus-based metrics for production monitoring.
Provides /metrics endpoint for scraping.
"""
from prometheus_client import Counter, Histogram, Gauge, generate_latest, CONTENT_TYPE_LATEST
from fastapi import APIRouter, Response


# Counters
entitlement_tokens_issued_total = Counter(
    "entitlement_tokens_issued_total",
    "Total number of entitlement tokens issued",
)

entitlement_validations_total = Counter(
    "entitlement_validations_total",
    "Total entitlement token validations",
    ["result"],  # ok, not_found, expired, content_mismatch
)

entitlement_tokens_swept_total = Counter(
    "entitlement_tokens_swept_total",
    "Total expired entitlement tokens removed by the background sweep",
)

mpesa_requests_total = Counter(
    "mpesa_requests_total",
    "Total M-Pesa API requests",
    ["operation", "status"],
)

emails_sent_total = Counter(
    "emails_sent_total",
    "Total transactional e-mails",
    ["kind", "status"],
)

payment_callbacks_total = Counter(
    "payment_callbacks_total",
    "Total payment callbacks received",
    ["outcome"],  # granted, rejected, cancelled, error
)

circuit_breaker_state = Gauge(
    "circuit_breaker_state",
    "Circuit breaker state (0=closed, 1=open)",
    ["name"],
)

# Histograms
mpesa_request_duration_seconds = Histogram(
    "mpesa_request_duration_seconds",
    "M-Pesa API request duration",
    ["operation"],
    buckets=[0.1, 0.5, 1, 2, 5, 10, 30],
)

# Gauges
entitlement_tokens_live = Gauge(
    "entitlement_tokens_live",
    "Entitlement tokens currently held by the token store (redis: refreshed on sweep)",
)


# Metrics endpoint router
router = APIRouter()


@router.get("/metrics")
def metrics_endpoint() -> Response:
    """Prometheus metrics endpoint for scraping."""
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST,
    )
