from __future__ import annotations

from datetime import timedelta
from pathlib import Path

import pytest

from pipewatch.core.evaluator import RuleEvaluator
from pipewatch.core.rule_registry import RuleRegistry
from pipewatch.db.store import SQLiteStore
from pipewatch.models.build import Build, TestResults
from pipewatch.models.rules import (
    AlertRule,
    BuildFailureCondition,
    ConsecutiveFailuresCondition,
    DeploymentFailureCondition,
    DurationThresholdCondition,
    ErrorRateCondition,
    TestFailureRateCondition,
)
from tests.support.pipewatch_helpers import PipewatchTestClock


class StaticRegistry:
    def __init__(self, rules: list[AlertRule]) -> None:
        self.rules = rules

    async def get_enabled(self) -> list[AlertRule]:
        return self.rules


def _setup(tmp_path: Path) -> tuple[RuleEvaluator, RuleRegistry, SQLiteStore, PipewatchTestClock]:
    clock = PipewatchTestClock()
    store = SQLiteStore(tmp_path / "pipewatch.db")
    registry = RuleRegistry(store)
    return RuleEvaluator(registry, store, clock=clock), registry, store, clock


async def _store_builds(
    store: SQLiteStore,
    clock: PipewatchTestClock,
    statuses: list[str],
    *,
    branch: str = "main",
) -> Build:
    build = None
    for number, status in enumerate(statuses, start=1):
        build = await store.upsert_build(
            Build(
                build_id=f"{branch}-{number}",
                project_name="api",
                branch=branch,
                status=status,
                build_number=number,
                end_time=clock() - timedelta(minutes=len(statuses) - number),
            )
        )
    assert build is not None
    return build


@pytest.mark.asyncio
async def test_build_failure_filters(tmp_path: Path) -> None:
    evaluator, _, _, _ = _setup(tmp_path)
    failed = Build(build_id="1", project_name="api", status="failure", environment="production")

    wildcard = AlertRule(name="any", condition=BuildFailureCondition())
    scoped = AlertRule(
        name="scoped",
        condition=BuildFailureCondition(projects=["api"], branches=["main"]),
    )
    other = AlertRule(name="other", condition=BuildFailureCondition(projects=["web"]))
    staging = AlertRule(name="staging", condition=BuildFailureCondition(environments=["staging"]))

    assert await evaluator.matches(wildcard, failed)
    assert await evaluator.matches(scoped, failed)
    assert not await evaluator.matches(other, failed)
    assert not await evaluator.matches(staging, failed)
    assert not await evaluator.matches(wildcard, failed.model_copy(update={"status": "success"}))


@pytest.mark.asyncio
async def test_duration_threshold_is_strictly_greater(tmp_path: Path) -> None:
    evaluator, _, _, _ = _setup(tmp_path)
    rule = AlertRule(name="slow", condition=DurationThresholdCondition(threshold_minutes=10))

    assert not await evaluator.matches(rule, Build(build_id="1", project_name="api", duration=600))
    assert await evaluator.matches(rule, Build(build_id="2", project_name="api", duration=601))


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("statuses", "expected"),
    [
        (["failure", "success", "failure"], True),
        (["success", "failure", "success", "success", "success"], False),
        (["failure", "success"], False),
    ],
)
async def test_error_rate(tmp_path: Path, statuses: list[str], expected: bool) -> None:
    evaluator, _, store, clock = _setup(tmp_path)
    latest = await _store_builds(store, clock, statuses)
    rule = AlertRule(
        name="error rate",
        condition=ErrorRateCondition(window_minutes=60, threshold_percent=50, minimum_builds=3),
    )

    assert await evaluator.matches(rule, latest) is expected


@pytest.mark.asyncio
async def test_error_rate_ignores_builds_outside_window(tmp_path: Path) -> None:
    evaluator, _, store, clock = _setup(tmp_path)
    latest = await _store_builds(store, clock, ["failure", "failure", "failure"])
    clock.advance(minutes=90)
    rule = AlertRule(name="error rate", condition=ErrorRateCondition())

    assert not await evaluator.matches(rule, latest)


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("statuses", "expected"),
    [
        (["failure", "failure", "failure"], True),
        (["success", "failure", "failure", "failure"], True),
        (["failure", "success", "failure"], False),
        (["failure", "failure"], False),
    ],
)
async def test_consecutive_failures(tmp_path: Path, statuses: list[str], expected: bool) -> None:
    evaluator, _, store, clock = _setup(tmp_path)
    latest = await _store_builds(store, clock, statuses)
    rule = AlertRule(name="streak", condition=ConsecutiveFailuresCondition(count=3))

    assert await evaluator.matches(rule, latest) is expected


@pytest.mark.asyncio
async def test_consecutive_failures_is_per_branch(tmp_path: Path) -> None:
    evaluator, _, store, clock = _setup(tmp_path)
    await _store_builds(store, clock, ["failure", "failure", "failure"], branch="feature")
    latest = await _store_builds(store, clock, ["success", "failure"], branch="main")
    rule = AlertRule(name="streak", condition=ConsecutiveFailuresCondition(count=3))

    assert not await evaluator.matches(rule, latest)


@pytest.mark.asyncio
async def test_test_failure_rate(tmp_path: Path) -> None:
    evaluator, _, _, _ = _setup(tmp_path)
    rule = AlertRule(name="tests", condition=TestFailureRateCondition(threshold_percent=10))

    def build(total: int, failed: int) -> Build:
        return Build(
            build_id="1",
            project_name="api",
            test_results=TestResults(total=total, failed=failed),
        )

    assert await evaluator.matches(rule, build(10, 1))
    assert not await evaluator.matches(rule, build(100, 9))
    assert not await evaluator.matches(rule, build(0, 0))


@pytest.mark.asyncio
async def test_deployment_failure_defaults(tmp_path: Path) -> None:
    evaluator, _, _, _ = _setup(tmp_path)
    rule = AlertRule(name="deploy", condition=DeploymentFailureCondition())

    staging = Build(build_id="1", project_name="api", status="failure", environment="staging")
    dev = Build(build_id="2", project_name="api", status="failure", environment="development")
    ok = Build(build_id="3", project_name="api", status="success", environment="production")

    assert await evaluator.matches(rule, staging)
    assert not await evaluator.matches(rule, dev)
    assert not await evaluator.matches(rule, ok)


@pytest.mark.asyncio
async def test_unknown_condition_never_matches(tmp_path: Path) -> None:
    evaluator, _, _, _ = _setup(tmp_path)
    rule = AlertRule(name="future", condition={"type": "flaky_tests"})

    assert not await evaluator.matches(rule, Build(build_id="1", project_name="api"))


@pytest.mark.asyncio
async def test_evaluate_uses_enabled_rules_only(tmp_path: Path) -> None:
    evaluator, registry, _, _ = _setup(tmp_path)
    enabled = await registry.create(AlertRule(name="on", condition=BuildFailureCondition()))
    await registry.create(AlertRule(name="off", condition=BuildFailureCondition(), enabled=False))

    matched = await evaluator.evaluate(Build(build_id="1", project_name="api", status="failure"))

    assert [rule.id for rule in matched] == [enabled.id]


@pytest.mark.asyncio
async def test_evaluate_isolates_failing_rules(tmp_path: Path) -> None:
    clock = PipewatchTestClock()
    store = SQLiteStore(tmp_path / "missing-dir" / "pipewatch.db")
    history_rule = AlertRule(name="history", condition=ErrorRateCondition())
    simple_rule = AlertRule(name="simple", condition=BuildFailureCondition())
    evaluator = RuleEvaluator(StaticRegistry([history_rule, simple_rule]), store, clock=clock)

    matched = await evaluator.evaluate(Build(build_id="1", project_name="api", status="failure"))

    assert matched == [simple_rule]
