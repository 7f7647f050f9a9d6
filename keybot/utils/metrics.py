"""
Prometheus-based metrics for production monitoring.
Provides /metrics endpoint for scraping.
"""
from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from fastapi import APIRouter, Response


# Counters
events_total = Counter(
    "bot_events_total",
    "Total inbound events by kind",
    ["kind"],  # text_message, payment_completed, checkout_requested, other
)

actions_total = Counter(
    "bot_actions_total",
    "Total routed actions by outcome",
    ["action", "status"],
)

backend_requests_total = Counter(
    "backend_requests_total",
    "Total credential backend requests",
    ["status"],
)

telegram_requests_total = Counter(
    "telegram_requests_total",
    "Total Telegram API requests",
    ["method", "status"],
)

# Histograms
backend_request_duration_seconds = Histogram(
    "backend_request_duration_seconds",
    "Credential backend request duration",
    buckets=[0.1, 0.5, 1, 2, 5, 10, 30],
)

telegram_request_duration_seconds = Histogram(
    "telegram_request_duration_seconds",
    "Telegram API request duration",
    ["method"],
    buckets=[0.1, 0.5, 1, 2, 5, 10],
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
