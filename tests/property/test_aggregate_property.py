from hypothesis import given
from hypothesis import strategies as st

from pipewatch.core.metrics import compute_aggregate, success_rate
from pipewatch.models.build import Build

statuses = st.sampled_from(["success", "failure", "aborted", "unstable", "running", "banana"])


@given(st.integers(min_value=0, max_value=10_000), st.integers(min_value=0, max_value=10_000))
def test_success_rate_is_bounded(successful: int, extra: int) -> None:
    rate = success_rate(successful, successful + extra)
    assert 0.0 <= rate <= 100.0


@given(st.lists(st.tuples(statuses, st.integers(min_value=0, max_value=86_400)), max_size=40))
def test_aggregate_is_consistent(rows: list[tuple[str, int]]) -> None:
    builds = [
        Build(build_id=str(index), project_name="api", status=status, duration=duration)
        for index, (status, duration) in enumerate(rows)
    ]

    aggregate = compute_aggregate(builds)

    assert aggregate.total_builds == len(builds)
    assert aggregate.successful_builds + aggregate.failed_builds <= aggregate.total_builds
    assert 0.0 <= aggregate.success_rate <= 100.0
    if builds:
        assert aggregate.min_build_time <= aggregate.average_build_time
        assert aggregate.average_build_time <= aggregate.max_build_time
    else:
        assert aggregate.success_rate == 0.0
        assert aggregate.average_build_time == 0.0
