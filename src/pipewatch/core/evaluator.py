"""Evaluate alert rules against incoming builds."""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime, timedelta

import structlog

from pipewatch.core.errors import RuleEvaluationError
from pipewatch.core.rule_registry import RuleRegistry
from pipewatch.db.store import SQLiteStore
from pipewatch.models.build import Build
from pipewatch.models.rules import (
    AlertRule,
    BuildFailureCondition,
    ConsecutiveFailuresCondition,
    DeploymentFailureCondition,
    DurationThresholdCondition,
    ErrorRateCondition,
    TestFailureRateCondition,
    UnknownCondition,
)

logger = structlog.get_logger(__name__)


def _utc_now() -> datetime:
    return datetime.now(UTC)


class RuleEvaluator:
    """Decide which enabled rules a build matches.

    Each rule is evaluated in isolation: an exception while evaluating one rule
    is logged and that rule counts as not matching.
    """

    def __init__(
        self,
        registry: RuleRegistry,
        store: SQLiteStore,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self._registry = registry
        self._store = store
        self._clock = clock

    async def evaluate(self, build: Build) -> list[AlertRule]:
        matched = []
        for rule in await self._registry.get_enabled():
            try:
                if await self.matches(rule, build):
                    matched.append(rule)
            except Exception as exc:
                error = RuleEvaluationError(rule.id, rule.name, exc)
                logger.exception(
                    "rule_evaluation_failed",
                    rule=rule.name,
                    project=build.project_name,
                    error=str(error),
                )
        logger.debug(
            "rules_evaluated",
            project=build.project_name,
            build_number=build.build_number,
            matched=[rule.name for rule in matched],
        )
        return matched

    async def matches(self, rule: AlertRule, build: Build) -> bool:
        match rule.condition:
            case BuildFailureCondition() as condition:
                return _build_failure(condition, build)
            case DurationThresholdCondition(threshold_minutes=threshold):
                return build.duration / 60 > threshold
            case ErrorRateCondition() as condition:
                return await self._error_rate(condition, build)
            case ConsecutiveFailuresCondition(count=count):
                return await self._consecutive_failures(count, build)
            case TestFailureRateCondition(threshold_percent=threshold):
                results = build.test_results
                if results.total == 0:
                    return False
                return results.failed / results.total * 100 >= threshold
            case DeploymentFailureCondition(environments=environments):
                return build.failed and build.environment in environments
            case UnknownCondition(type=tag):
                logger.warning("unknown_rule_condition", rule=rule.name, condition_type=tag)
                return False

    async def _error_rate(self, condition: ErrorRateCondition, build: Build) -> bool:
        since = self._clock() - timedelta(minutes=condition.window_minutes)
        recent = await self._store.list_builds(project_name=build.project_name, since=since)
        if len(recent) < condition.minimum_builds:
            return False
        failed = sum(1 for item in recent if item.failed)
        return failed / len(recent) * 100 >= condition.threshold_percent

    async def _consecutive_failures(self, count: int, build: Build) -> bool:
        recent = await self._store.list_builds(
            project_name=build.project_name,
            branch=build.branch,
            order_by="build_number",
            limit=count,
        )
        return len(recent) == count and all(item.failed for item in recent)


def _build_failure(condition: BuildFailureCondition, build: Build) -> bool:
    if not build.failed:
        return False
    if condition.projects and build.project_name not in condition.projects:
        return False
    if condition.branches and build.branch not in condition.branches:
        return False
    if condition.environments and build.environment not in condition.environments:
        return False
    return True
