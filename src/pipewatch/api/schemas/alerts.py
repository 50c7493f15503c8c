"""Alert API schemas."""

from __future__ import annotations

from pydantic import BaseModel

from pipewatch.models.alert import Alert


class AcknowledgeAlertRequest(BaseModel):
    acknowledged_by: str


class ResolveAlertRequest(BaseModel):
    resolved_by: str
    resolution: str | None = None


class AlertsResponse(BaseModel):
    """Collection of alerts, newest first."""

    items: list[Alert]
