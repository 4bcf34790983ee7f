"""
Metrics endpoint for Prometheus scraping.
"""
from fastapi import APIRouter
from fastapi.responses import PlainTextResponse

from starter.core.metrics import metrics

router = APIRouter(tags=["metrics"])


@router.get("/metrics", response_class=PlainTextResponse)
async def get_metrics() -> str:
    """Export counters in Prometheus text format."""
    return metrics.to_prometheus()
