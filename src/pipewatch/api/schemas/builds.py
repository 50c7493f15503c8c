"""Build API schemas."""

from __future__ import annotations

from pydantic import BaseModel

from pipewatch.models.build import Build
from pipewatch.models.metric import Metric


class BuildsResponse(BaseModel):
    """Collection of builds, newest first."""

    items: list[Build]


class MetricsHistoryResponse(BaseModel):
    """Stored metric snapshots for one project."""

    items: list[Metric]
