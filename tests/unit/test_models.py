from __future__ import annotations

import pytest
from pydantic import ValidationError

from pipewatch.models.alert import Alert, AlertStatus
from pipewatch.models.build import Build
from pipewatch.models.metric import MetricPeriod
from pipewatch.models.rules import (
    AlertRule,
    AlertSeverity,
    ConsecutiveFailuresCondition,
    DeploymentFailureCondition,
    ErrorRateCondition,
    UnknownCondition,
)


def test_rule_condition_is_discriminated_by_type() -> None:
    rule = AlertRule.model_validate(
        {"name": "streak", "condition": {"type": "consecutive_failures", "count": 5}}
    )

    assert isinstance(rule.condition, ConsecutiveFailuresCondition)
    assert rule.condition.count == 5
    assert rule.severity is AlertSeverity.WARNING
    assert rule.cooldown_minutes == 15


def test_condition_defaults() -> None:
    error_rate = ErrorRateCondition()
    assert (error_rate.window_minutes, error_rate.threshold_percent) == (60, 50)
    assert error_rate.minimum_builds == 3
    assert DeploymentFailureCondition().environments == ["production", "staging"]


def test_unknown_condition_type_is_preserved() -> None:
    rule = AlertRule.model_validate(
        {"name": "future", "condition": {"type": "flaky_tests", "threshold": 2}}
    )

    assert isinstance(rule.condition, UnknownCondition)
    assert rule.condition.model_dump()["threshold"] == 2


def test_known_condition_with_bad_parameters_is_rejected() -> None:
    with pytest.raises(ValidationError):
        AlertRule.model_validate(
            {"name": "streak", "condition": {"type": "consecutive_failures", "count": 0}}
        )


def test_alert_transitions_only_move_forward() -> None:
    alert = Alert(
        rule_id="r",
        rule_name="Build failed",
        severity=AlertSeverity.INFO,
        message="failed",
        project_name="api",
        build_id="b",
        build_number=1,
    )

    assert alert.can_transition(AlertStatus.ACKNOWLEDGED)
    assert alert.can_transition(AlertStatus.RESOLVED)
    alert.status = AlertStatus.RESOLVED
    assert not alert.can_transition(AlertStatus.ACTIVE)
    assert not alert.can_transition(AlertStatus.ACKNOWLEDGED)


def test_build_status_helpers() -> None:
    assert Build(build_id="1", project_name="api", status="failure").failed
    assert Build(build_id="1", project_name="api", status="success").succeeded
    assert not Build(build_id="1", project_name="api", status="unstable").failed


def test_metric_period_windows() -> None:
    assert MetricPeriod("24h").window.total_seconds() == 86400
    assert MetricPeriod.LAST_MONTH.window.days == 30
