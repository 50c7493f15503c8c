"""Dashboard metric routes."""

from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query, status

from pipewatch.api.deps import get_aggregator
from pipewatch.api.schemas.builds import MetricsHistoryResponse
from pipewatch.core.aggregator import ALL_PROJECTS, MetricsAggregator
from pipewatch.models.metric import DashboardMetrics, MetricPeriod

router = APIRouter(prefix="/api/v1/metrics", tags=["metrics"])


@router.get("/dashboard", response_model=DashboardMetrics)
async def dashboard_metrics(
    period: MetricPeriod = MetricPeriod.LAST_DAY,
    project: str = ALL_PROJECTS,
    start: datetime | None = Query(default=None),
    end: datetime | None = Query(default=None),
    aggregator: MetricsAggregator = Depends(get_aggregator),
) -> DashboardMetrics:
    if (start is None) != (end is None):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="start and end must be given together",
        )
    if start is not None and end is not None and start >= end:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="start must be before end")
    return await aggregator.get_dashboard_metrics(period, project, start, end)


@router.get("/{project_name}/history", response_model=MetricsHistoryResponse)
async def metric_history(
    project_name: str,
    period: MetricPeriod | None = None,
    since: datetime | None = Query(default=None),
    aggregator: MetricsAggregator = Depends(get_aggregator),
) -> MetricsHistoryResponse:
    items = await aggregator.get_metric_history(project_name, period, since)
    return MetricsHistoryResponse(items=items)
