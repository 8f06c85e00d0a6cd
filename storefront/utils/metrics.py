"""
Prometheus-based metrics for production monitoring.
Provides /metrics endpoint for scraping.
"""
from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from fastapi import APIRouter, Response


# Counters
orders_created_total = Counter(
    "orders_created_total",
    "Total number of orders created",
    ["type", "provider"],
)

order_captures_total = Counter(
    "order_captures_total",
    "Capture attempts by outcome",
    ["provider", "outcome"],  # completed, pending, failed, already_completed
)

provider_requests_total = Counter(
    "payment_provider_requests_total",
    "Total payment provider API requests",
    ["provider", "operation", "status"],
)

reconciliation_results_total = Counter(
    "reconciliation_results_total",
    "Per-order results of the pending-order sweep",
    ["status"],
)

# Histograms
provider_request_duration_seconds = Histogram(
    "payment_provider_request_duration_seconds",
    "Payment provider API request duration",
    ["provider", "operation"],
    buckets=[0.1, 0.5, 1, 2, 5, 10, 30],
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


def record_provider_request(provider: str, operation: str, status: str, duration: float) -> None:
    provider_requests_total.labels(provider=provider, operation=operation, status=status).inc()
    provider_request_duration_seconds.labels(provider=provider, operation=operation).observe(duration)
