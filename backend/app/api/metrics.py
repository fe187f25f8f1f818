"""Operational endpoints: liveness and Prometheus-compatible metrics."""

from fastapi import APIRouter, Response

from app.config import get_settings
from app.monitoring.registry import registry

settings = get_settings()

router = APIRouter(tags=["system"])


@router.get("/health")
def health_check() -> dict[str, str]:
    """Simple health check endpoint."""
    return {"status": "ok", "environment": settings.environment}


@router.get("/metrics", response_class=Response)
def export_metrics() -> Response:
    """Expose collected realtime counters for Prometheus scraping."""

    return Response(content=registry.render(), media_type="text/plain; version=0.0.4")
