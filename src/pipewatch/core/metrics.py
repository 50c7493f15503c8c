"""Pure aggregate computations over build records."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime, timedelta

from pipewatch.models.build import Build
from pipewatch.models.metric import BuildAggregate, MetricPeriod

DEPLOYMENT_ENVIRONMENTS = ("production", "staging")

_TREND_SLICES: dict[MetricPeriod, tuple[timedelta, int]] = {
    MetricPeriod.LAST_HOUR: (timedelta(minutes=5), 12),
    MetricPeriod.LAST_DAY: (timedelta(hours=1), 24),
    MetricPeriod.LAST_WEEK: (timedelta(days=1), 7),
    MetricPeriod.LAST_MONTH: (timedelta(days=1), 30),
}


@dataclass(slots=True, frozen=True)
class Interval:
    """Half-open time slice ``[start, end)``."""

    start: datetime
    end: datetime

    def contains(self, value: datetime) -> bool:
        return self.start <= value < self.end


def compute_aggregate(builds: Sequence[Build]) -> BuildAggregate:
    """Summarize builds; an empty set yields all zeros, never NaN."""
    total = len(builds)
    if total == 0:
        return BuildAggregate()

    successful = sum(1 for build in builds if build.succeeded)
    failed = sum(1 for build in builds if build.failed)
    durations = [build.duration for build in builds]
    return BuildAggregate(
        total_builds=total,
        successful_builds=successful,
        failed_builds=failed,
        success_rate=success_rate(successful, total),
        average_build_time=round(sum(durations) / total, 2),
        max_build_time=max(durations),
        min_build_time=min(durations),
    )


def success_rate(successful: int, total: int) -> float:
    if total == 0:
        return 0.0
    return round(successful / total * 100, 2)


def period_start(period: MetricPeriod, now: datetime) -> datetime:
    return now - period.window


def hour_bucket(value: datetime) -> datetime:
    return value.replace(minute=0, second=0, microsecond=0)


def trend_intervals(
    period: MetricPeriod,
    now: datetime,
    *,
    start: datetime | None = None,
    end: datetime | None = None,
) -> list[Interval]:
    """Slice a range into the fixed number of trend points for ``period``.

    Without an explicit range the slices have the period's fixed width and the
    last one ends at ``now``. With a range, that range is split evenly and the
    first slice starts exactly at ``start``.
    """
    width, count = _TREND_SLICES[period]
    range_end = end or now
    if start is not None:
        width = (range_end - start) / count

    intervals = []
    for index in range(count - 1, -1, -1):
        slice_end = range_end - width * index
        slice_start = slice_end - width
        if start is not None and index == count - 1:
            slice_start = start
        intervals.append(Interval(start=slice_start, end=slice_end))
    return intervals


def is_deployment(build: Build) -> bool:
    return build.environment in DEPLOYMENT_ENVIRONMENTS
