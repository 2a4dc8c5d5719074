"""Metrics endpoint for Prometheus scraping."""

from fastapi import APIRouter, Response
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.dependencies import DatabaseSession
from ..core.observability import get_prometheus_metrics, metrics_collector
from ..models.package import Package

router = APIRouter()


async def refresh_capacity_gauges(db: AsyncSession) -> None:
    """Set the capacity utilization gauge for every active package."""
    result = await db.execute(
        select(Package.id, Package.current_bookings, Package.max_capacity).where(Package.is_active.is_(True))
    )
    for package_id, current_bookings, max_capacity in result.all():
        metrics_collector.set_capacity_utilization(str(package_id), current_bookings, max_capacity)


@router.get(
    "/metrics",
    summary="Prometheus Metrics",
    description="Endpoint for Prometheus to scrape metrics",
    response_class=Response,
    tags=["Observability"]
)
async def metrics(db: AsyncSession = DatabaseSession):
    """
    Return Prometheus metrics.

    Package capacity gauges are refreshed from the database on each scrape so
    they survive restarts.

    Returns:
        Response: Prometheus metrics in text format
    """
    await refresh_capacity_gauges(db)
    metrics_data = get_prometheus_metrics()
    return Response(
        content=metrics_data,
        media_type="text/plain; version=0.0.4; charset=utf-8"
    )
