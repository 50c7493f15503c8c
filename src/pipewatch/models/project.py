"""Project domain models."""

from __future__ import annotations

from datetime import UTC, datetime

from pydantic import BaseModel, Field


class Project(BaseModel):
    """Monitored pipeline and its latest build status."""

    name: str
    display_name: str | None = None
    repository_url: str | None = None
    last_build_id: str | None = None
    last_build_status: str | None = None
    last_build_time: datetime | None = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @property
    def label(self) -> str:
        return self.display_name or self.name

    def touch(self) -> None:
        """Update mutation timestamp."""
        self.updated_at = datetime.now(UTC)
