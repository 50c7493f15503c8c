"""Webhook ingestion API schemas."""

from __future__ import annotations

from pydantic import BaseModel


class IngestResponse(BaseModel):
    """Result of ingesting one build payload."""

    id: str
    build_id: str
    project_name: str
    status: str
    alert_ids: list[str]
