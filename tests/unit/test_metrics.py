from __future__ import annotations

from datetime import UTC, datetime, timedelta

from pipewatch.core.metrics import compute_aggregate, hour_bucket, success_rate, trend_intervals
from pipewatch.models.build import Build
from pipewatch.models.metric import MetricPeriod

NOW = datetime(2026, 1, 15, 12, 30, tzinfo=UTC)


def _build(build_id: str, status: str, duration: int) -> Build:
    return Build(build_id=build_id, project_name="api", status=status, duration=duration)


def test_empty_aggregate_is_all_zero() -> None:
    aggregate = compute_aggregate([])

    assert aggregate.total_builds == 0
    assert aggregate.success_rate == 0.0
    assert aggregate.average_build_time == 0.0
    assert aggregate.max_build_time == 0
    assert aggregate.min_build_time == 0


def test_aggregate_counts_and_durations() -> None:
    aggregate = compute_aggregate(
        [
            _build("1", "success", 60),
            _build("2", "failure", 120),
            _build("3", "success", 100),
            _build("4", "aborted", 10),
        ]
    )

    assert aggregate.total_builds == 4
    assert aggregate.successful_builds == 2
    assert aggregate.failed_builds == 1
    assert aggregate.success_rate == 50.0
    assert aggregate.average_build_time == 72.5
    assert aggregate.max_build_time == 120
    assert aggregate.min_build_time == 10


def test_success_rate_rounds_to_two_places() -> None:
    assert success_rate(2, 3) == 66.67
    assert success_rate(0, 0) == 0.0


def test_trend_intervals_use_fixed_slices_per_period() -> None:
    expected = {
        MetricPeriod.LAST_HOUR: (12, timedelta(minutes=5)),
        MetricPeriod.LAST_DAY: (24, timedelta(hours=1)),
        MetricPeriod.LAST_WEEK: (7, timedelta(days=1)),
        MetricPeriod.LAST_MONTH: (30, timedelta(days=1)),
    }
    for period, (count, width) in expected.items():
        intervals = trend_intervals(period, NOW)
        assert len(intervals) == count
        assert intervals[-1].end == NOW
        assert all(interval.end - interval.start == width for interval in intervals)
        assert all(a.end == b.start for a, b in zip(intervals, intervals[1:]))


def test_trend_intervals_split_explicit_range_evenly() -> None:
    start = NOW - timedelta(hours=6)
    intervals = trend_intervals(MetricPeriod.LAST_HOUR, NOW, start=start, end=NOW)

    assert len(intervals) == 12
    assert intervals[0].start == start
    assert intervals[-1].end == NOW
    assert intervals[0].end - intervals[0].start == timedelta(minutes=30)


def test_trend_intervals_cover_range_that_does_not_divide_evenly() -> None:
    start = NOW - timedelta(hours=1, microseconds=7)
    intervals = trend_intervals(MetricPeriod.LAST_HOUR, NOW, start=start, end=NOW)

    assert intervals[0].start == start
    assert intervals[0].contains(start)
    assert intervals[-1].end == NOW
    assert all(a.end == b.start for a, b in zip(intervals, intervals[1:]))


def test_interval_is_half_open() -> None:
    interval = trend_intervals(MetricPeriod.LAST_HOUR, NOW)[0]
    assert interval.contains(interval.start)
    assert not interval.contains(interval.end)


def test_hour_bucket_truncates() -> None:
    assert hour_bucket(NOW) == datetime(2026, 1, 15, 12, 0, tzinfo=UTC)
