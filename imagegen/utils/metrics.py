"""
Prometheus-based metrics for production monitoring.
Provides /metrics endpoint for scraping.
"""
from prometheus_client import Counter, generate_latest, CONTENT_TYPE_LATEST
from fastapi import APIRouter, Response


generation_requests_created_total = Counter(
    "generation_requests_created_total",
    "Total number of generation requests accepted",
    ["model_id"],
)

generation_requests_cancelled_total = Counter(
    "generation_requests_cancelled_total",
    "Total number of generation requests cancelled by users",
)

generation_requests_failed_total = Counter(
    "generation_requests_failed_total",
    "Total number of generation requests failed by the worker",
)

ledger_entries_total = Counter(
    "ledger_entries_total",
    "Total credit ledger entries appended",
    ["transaction_type"],  # purchase, consumption, refund, bonus
)

balance_rejected_total = Counter(
    "balance_rejected_total",
    "Total submissions rejected for insufficient credits",
)

store_conflicts_total = Counter(
    "store_conflicts_total",
    "Total ledger tail conflicts between concurrent writers",
)


router = APIRouter()


@router.get("/metrics")
def metrics_endpoint() -> Response:
    """Prometheus metrics endpoint for scraping."""
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST,
    )
