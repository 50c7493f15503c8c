"""Build persistence and rolling metric aggregation."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime

import structlog

from pipewatch.core.metrics import (
    compute_aggregate,
    hour_bucket,
    is_deployment,
    period_start,
    trend_intervals,
)
from pipewatch.db.store import SQLiteStore
from pipewatch.models.alert import AlertStatus
from pipewatch.models.build import Build
from pipewatch.models.metric import (
    BuildTimePoint,
    DashboardMetrics,
    DeploymentPoint,
    Metric,
    MetricPeriod,
    ProjectStatus,
    SuccessRatePoint,
)
from pipewatch.models.project import Project

logger = structlog.get_logger(__name__)

ALL_PROJECTS = "all"
PROJECT_STATUS_SAMPLE = 10


def utc_now() -> datetime:
    return datetime.now(UTC)


@dataclass(slots=True)
class RecordResult:
    """Outcome of recording one build."""

    build: Build
    project: Project
    metrics: dict[MetricPeriod, Metric]


class MetricsAggregator:
    """Own Build, Project and Metric writes and serve dashboard reads.

    Metrics are always re-derived from the stored builds rather than patched
    incrementally, so concurrent recordings for one project converge.
    """

    def __init__(self, store: SQLiteStore, clock: Callable[[], datetime] = utc_now) -> None:
        self._store = store
        self._clock = clock

    async def record(self, build: Build) -> RecordResult:
        """Upsert the build, refresh its project and recompute every period.

        Store failures propagate; each period's snapshot is idempotent, so a
        retry repairs whatever a failed call left behind.
        """
        stored = await self._store.upsert_build(build)
        project = await self.update_project(stored)

        now = self._clock()
        metrics = {}
        for period in MetricPeriod:
            metrics[period] = await self.recompute_period(stored.project_name, period, now)

        logger.debug(
            "metrics_recomputed",
            project=stored.project_name,
            build_number=stored.build_number,
        )
        return RecordResult(build=stored, project=project, metrics=metrics)

    async def update_project(self, build: Build) -> Project:
        """Point the project's latest-build cache at ``build``.

        Last write wins: an older build delivered late overwrites a newer one.
        """
        project = await self._store.get_project(build.project_name)
        if project is None:
            project = Project(name=build.project_name)
        if build.repository_url:
            project.repository_url = build.repository_url
        project.last_build_id = build.id
        project.last_build_status = build.status
        project.last_build_time = build.end_time
        project.touch()
        await self._store.upsert_project(project)
        return project

    async def recompute_period(
        self,
        project_name: str,
        period: MetricPeriod,
        now: datetime | None = None,
    ) -> Metric:
        now = now or self._clock()
        builds = await self._store.list_builds(
            project_name=project_name,
            since=period_start(period, now),
        )
        aggregate = compute_aggregate(builds)
        metric = Metric(
            project_name=project_name,
            period=period,
            timestamp=now,
            bucket=hour_bucket(now),
            build_ids=[build.id for build in builds],
            **aggregate.model_dump(),
        )
        return await self._store.upsert_metric(metric)

    async def get_dashboard_metrics(
        self,
        period: MetricPeriod = MetricPeriod.LAST_DAY,
        project: str = ALL_PROJECTS,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> DashboardMetrics:
        now = self._clock()
        project_name = None if project == ALL_PROJECTS else project

        if start is not None and end is not None:
            builds = await self._store.list_builds(
                project_name=project_name,
                since=start,
                until=end,
            )
            intervals = trend_intervals(period, now, start=start, end=end)
        else:
            builds = await self._store.list_builds(
                project_name=project_name,
                since=period_start(period, now),
            )
            intervals = trend_intervals(period, now)

        trend_builds = await self._store.list_builds(
            project_name=project_name,
            since=intervals[0].start,
            before=intervals[-1].end,
        )

        success_rate_trend = []
        build_time_trend = []
        deployment_frequency = []
        for interval in intervals:
            sliced = [build for build in trend_builds if interval.contains(build.end_time)]
            aggregate = compute_aggregate(sliced)
            success_rate_trend.append(
                SuccessRatePoint(
                    timestamp=interval.start,
                    success_rate=aggregate.success_rate,
                    total_builds=aggregate.total_builds,
                    successful_builds=aggregate.successful_builds,
                    failed_builds=aggregate.failed_builds,
                )
            )
            build_time_trend.append(
                BuildTimePoint(
                    timestamp=interval.start,
                    average_build_time=aggregate.average_build_time,
                    max_build_time=aggregate.max_build_time,
                    min_build_time=aggregate.min_build_time,
                    build_count=len(sliced),
                )
            )
            deployments = [build for build in sliced if is_deployment(build)]
            deployment_frequency.append(
                DeploymentPoint(
                    timestamp=interval.start,
                    deployments=len(deployments),
                    production=sum(1 for b in deployments if b.environment == "production"),
                    staging=sum(1 for b in deployments if b.environment == "staging"),
                )
            )

        active_alerts = await self._store.count_alerts(
            status=AlertStatus.ACTIVE,
            project_name=project_name,
        )
        return DashboardMetrics(
            period=period,
            project=project,
            active_alerts=active_alerts,
            success_rate_trend=success_rate_trend,
            build_time_trend=build_time_trend,
            deployment_frequency=deployment_frequency,
            project_status=await self.get_project_status(project),
            last_updated=now,
            **compute_aggregate(builds).model_dump(),
        )

    async def get_project_status(self, project: str = ALL_PROJECTS) -> list[ProjectStatus]:
        if project == ALL_PROJECTS:
            projects = await self._store.list_projects()
        else:
            found = await self._store.get_project(project)
            projects = [found] if found is not None else []

        statuses = []
        for item in projects:
            recent = await self._store.list_builds(
                project_name=item.name,
                limit=PROJECT_STATUS_SAMPLE,
            )
            statuses.append(
                ProjectStatus(
                    name=item.name,
                    display_name=item.label,
                    last_build_status=item.last_build_status,
                    last_build_time=item.last_build_time,
                    **compute_aggregate(recent).model_dump(),
                )
            )
        return statuses

    async def get_recent_builds(
        self,
        project: str = ALL_PROJECTS,
        limit: int = 20,
        offset: int = 0,
    ) -> list[Build]:
        return await self._store.list_builds(
            project_name=None if project == ALL_PROJECTS else project,
            limit=limit,
            offset=offset,
        )

    async def get_build(self, project_name: str, build_id: str) -> Build | None:
        return await self._store.get_build(project_name, build_id)

    async def get_metric_history(
        self,
        project_name: str,
        period: MetricPeriod | None = None,
        since: datetime | None = None,
    ) -> list[Metric]:
        return await self._store.list_metrics(
            project_name=project_name,
            period=period,
            since=since,
        )
