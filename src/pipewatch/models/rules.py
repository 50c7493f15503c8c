"""Alert rule models.

A rule's condition is a closed set of variants discriminated by ``type``.
Documents carrying a ``type`` this version does not know are loaded as
:class:`UnknownCondition` so that they never break rule loading.
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum
from typing import Annotated, Any, Literal, Union
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Discriminator, Field, Tag


class AlertSeverity(str, Enum):
    CRITICAL = "critical"
    WARNING = "warning"
    INFO = "info"


class ChannelType(str, Enum):
    SLACK = "slack"
    EMAIL = "email"
    WEBHOOK = "webhook"


class BuildFailureCondition(BaseModel):
    """Any failed build, optionally narrowed by project, branch and environment."""

    type: Literal["build_failure"] = "build_failure"
    projects: list[str] = Field(default_factory=list)
    branches: list[str] = Field(default_factory=list)
    environments: list[str] = Field(default_factory=list)


class DurationThresholdCondition(BaseModel):
    type: Literal["duration_threshold"] = "duration_threshold"
    threshold_minutes: float = Field(default=30, ge=0)


class ErrorRateCondition(BaseModel):
    """Failure percentage of a project's builds within a trailing window."""

    type: Literal["error_rate"] = "error_rate"
    window_minutes: int = Field(default=60, gt=0)
    threshold_percent: float = Field(default=50, ge=0, le=100)
    minimum_builds: int = Field(default=3, ge=1)


class ConsecutiveFailuresCondition(BaseModel):
    type: Literal["consecutive_failures"] = "consecutive_failures"
    count: int = Field(default=3, ge=1)


class TestFailureRateCondition(BaseModel):
    __test__ = False

    type: Literal["test_failure_rate"] = "test_failure_rate"
    threshold_percent: float = Field(default=10, ge=0, le=100)


class DeploymentFailureCondition(BaseModel):
    type: Literal["deployment_failure"] = "deployment_failure"
    environments: list[str] = Field(default_factory=lambda: ["production", "staging"])


class UnknownCondition(BaseModel):
    """Condition with a type tag this version cannot evaluate."""

    model_config = ConfigDict(extra="allow")

    type: str


KnownCondition = Annotated[
    Union[
        BuildFailureCondition,
        DurationThresholdCondition,
        ErrorRateCondition,
        ConsecutiveFailuresCondition,
        TestFailureRateCondition,
        DeploymentFailureCondition,
    ],
    Field(discriminator="type"),
]

KNOWN_CONDITION_TYPES = frozenset(
    {
        "build_failure",
        "duration_threshold",
        "error_rate",
        "consecutive_failures",
        "test_failure_rate",
        "deployment_failure",
    }
)


def _condition_tag(value: Any) -> str:
    tag = value.get("type") if isinstance(value, dict) else getattr(value, "type", None)
    return tag if tag in KNOWN_CONDITION_TYPES else "unknown"


RuleCondition = Annotated[
    Union[
        Annotated[BuildFailureCondition, Tag("build_failure")],
        Annotated[DurationThresholdCondition, Tag("duration_threshold")],
        Annotated[ErrorRateCondition, Tag("error_rate")],
        Annotated[ConsecutiveFailuresCondition, Tag("consecutive_failures")],
        Annotated[TestFailureRateCondition, Tag("test_failure_rate")],
        Annotated[DeploymentFailureCondition, Tag("deployment_failure")],
        Annotated[UnknownCondition, Tag("unknown")],
    ],
    Discriminator(_condition_tag),
]


class NotificationChannel(BaseModel):
    """One notification transport attached to a rule.

    ``configuration`` is channel specific, e.g. ``webhookUrl``/``channel`` for
    Slack, ``recipients`` for email, ``url``/``headers``/``auth`` for webhooks.
    """

    type: ChannelType
    configuration: dict[str, Any] = Field(default_factory=dict)


class AlertRule(BaseModel):
    """Persisted matching rule evaluated against every incoming build."""

    id: str = Field(default_factory=lambda: str(uuid4()))
    name: str
    description: str = ""
    condition: RuleCondition
    channels: list[NotificationChannel] = Field(default_factory=list)
    severity: AlertSeverity = AlertSeverity.WARNING
    message_template: str | None = None
    cooldown_minutes: int = Field(default=15, ge=0)
    enabled: bool = True
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    def touch(self) -> None:
        self.updated_at = datetime.now(UTC)
