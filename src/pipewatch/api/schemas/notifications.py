"""Notification API schemas."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from pipewatch.models.rules import ChannelType


class TestNotificationRequest(BaseModel):
    """Channel to send a synthetic alert through."""

    __test__ = False

    type: ChannelType
    configuration: dict[str, Any] = Field(default_factory=dict)
