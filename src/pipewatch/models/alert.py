"""Alert domain models."""

from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, Field

from pipewatch.models.rules import AlertSeverity


class AlertStatus(str, Enum):
    """Alert lifecycle: active -> acknowledged -> resolved, never backwards."""

    ACTIVE = "active"
    ACKNOWLEDGED = "acknowledged"
    RESOLVED = "resolved"


ALLOWED_TRANSITIONS: dict[AlertStatus, frozenset[AlertStatus]] = {
    AlertStatus.ACTIVE: frozenset({AlertStatus.ACKNOWLEDGED, AlertStatus.RESOLVED}),
    AlertStatus.ACKNOWLEDGED: frozenset({AlertStatus.RESOLVED}),
    AlertStatus.RESOLVED: frozenset(),
}


class Alert(BaseModel):
    """One firing of a rule against a build."""

    id: str = Field(default_factory=lambda: str(uuid4()))
    rule_id: str
    rule_name: str
    severity: AlertSeverity
    message: str
    project_name: str
    build_id: str
    build_number: int
    status: AlertStatus = AlertStatus.ACTIVE
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
    acknowledged_by: str | None = None
    acknowledged_at: datetime | None = None
    resolved_by: str | None = None
    resolved_at: datetime | None = None
    resolution: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)

    def can_transition(self, target: AlertStatus) -> bool:
        return target in ALLOWED_TRANSITIONS[self.status]


class AlertStatistics(BaseModel):
    """Alert counts by severity and status over a period."""

    total_alerts: int = 0
    critical_alerts: int = 0
    warning_alerts: int = 0
    info_alerts: int = 0
    active_alerts: int = 0
    acknowledged_alerts: int = 0
    resolved_alerts: int = 0
