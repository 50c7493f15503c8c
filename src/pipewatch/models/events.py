"""Real-time event models."""

from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, Field


class EventType(str, Enum):
    """Events published to dashboard subscribers."""

    BUILD_COMPLETED = "build.completed"
    PROJECT_BUILD_UPDATE = "project.build.update"
    ALERT_TRIGGERED = "alert.triggered"
    ALERT_ACKNOWLEDGED = "alert.acknowledged"
    ALERT_RESOLVED = "alert.resolved"


class MonitorEvent(BaseModel):
    """Append-only event emitted by the pipeline.

    ``scoped`` events are delivered only to subscribers of ``project_name``.
    """

    id: str = Field(default_factory=lambda: str(uuid4()))
    event_type: EventType
    project_name: str | None = None
    scoped: bool = False
    payload: dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
