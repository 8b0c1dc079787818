"""Prometheus-compatible metrics endpoint."""

from fastapi import APIRouter, Request, Response

from app.monitoring.metrics import realtime_connections, realtime_registered_users
from app.monitoring.registry import registry


router = APIRouter(tags=["metrics"])


@router.get("/metrics", response_class=Response)
async def export_metrics(request: Request) -> Response:
    """Expose realtime counters and gauges for Prometheus scraping."""

    hub = getattr(request.app.state, "hub", None)
    if hub is not None:
        realtime_connections.set(await hub.connections.count())
        realtime_registered_users.set(await hub.registry.count())

    return Response(content=registry.render(), media_type="text/plain; version=0.0.4")
