"""Alert rule API schemas."""

from __future__ import annotations

from pydantic import BaseModel, Field

from pipewatch.models.rules import AlertRule, AlertSeverity, KnownCondition, NotificationChannel


class CreateRuleRequest(BaseModel):
    """Payload for creating an alert rule."""

    name: str
    description: str = ""
    condition: KnownCondition
    channels: list[NotificationChannel] = Field(default_factory=list)
    severity: AlertSeverity = AlertSeverity.WARNING
    message_template: str | None = None
    cooldown_minutes: int | None = Field(default=None, ge=0)
    enabled: bool = True


class UpdateRuleRequest(BaseModel):
    """Partial update; omitted fields keep their current value."""

    name: str | None = None
    description: str | None = None
    condition: KnownCondition | None = None
    channels: list[NotificationChannel] | None = None
    severity: AlertSeverity | None = None
    message_template: str | None = None
    cooldown_minutes: int | None = Field(default=None, ge=0)
    enabled: bool | None = None


class SetRuleEnabledRequest(BaseModel):
    enabled: bool


class RulesResponse(BaseModel):
    """Collection of alert rules."""

    items: list[AlertRule]
