"""Aggregate metric models."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from enum import Enum
from uuid import uuid4

from pydantic import BaseModel, Field


class MetricPeriod(str, Enum):
    """Rolling windows metrics are aggregated over."""

    LAST_HOUR = "1h"
    LAST_DAY = "24h"
    LAST_WEEK = "7d"
    LAST_MONTH = "30d"

    @property
    def window(self) -> timedelta:
        return _WINDOWS[self]


_WINDOWS = {
    MetricPeriod.LAST_HOUR: timedelta(hours=1),
    MetricPeriod.LAST_DAY: timedelta(hours=24),
    MetricPeriod.LAST_WEEK: timedelta(days=7),
    MetricPeriod.LAST_MONTH: timedelta(days=30),
}


class BuildAggregate(BaseModel):
    """Counts and duration statistics over a set of builds."""

    total_builds: int = 0
    successful_builds: int = 0
    failed_builds: int = 0
    success_rate: float = 0.0
    average_build_time: float = 0.0
    max_build_time: int = 0
    min_build_time: int = 0


class Metric(BuildAggregate):
    """Persisted rolling-window snapshot for one project.

    At most one snapshot exists per ``(project_name, period, bucket)`` where
    ``bucket`` is the snapshot time truncated to the hour.
    """

    id: str = Field(default_factory=lambda: str(uuid4()))
    project_name: str
    period: MetricPeriod
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
    bucket: datetime
    build_ids: list[str] = Field(default_factory=list)


class SuccessRatePoint(BaseModel):
    timestamp: datetime
    success_rate: float
    total_builds: int
    successful_builds: int
    failed_builds: int


class BuildTimePoint(BaseModel):
    timestamp: datetime
    average_build_time: float
    max_build_time: int
    min_build_time: int
    build_count: int


class DeploymentPoint(BaseModel):
    timestamp: datetime
    deployments: int
    production: int
    staging: int


class ProjectStatus(BuildAggregate):
    """Latest status of a project plus an aggregate over its recent builds."""

    name: str
    display_name: str
    last_build_status: str | None = None
    last_build_time: datetime | None = None


class DashboardMetrics(BuildAggregate):
    """Everything the dashboard renders for one period and project filter."""

    period: MetricPeriod
    project: str
    active_alerts: int = 0
    success_rate_trend: list[SuccessRatePoint] = Field(default_factory=list)
    build_time_trend: list[BuildTimePoint] = Field(default_factory=list)
    deployment_frequency: list[DeploymentPoint] = Field(default_factory=list)
    project_status: list[ProjectStatus] = Field(default_factory=list)
    last_updated: datetime = Field(default_factory=lambda: datetime.now(UTC))
