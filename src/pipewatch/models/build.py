"""Build domain models."""

from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, Field


class BuildStatus(str, Enum):
    """Canonical build status vocabulary.

    Builds may also carry a status outside this set: unrecognized source
    statuses are kept verbatim (lower-cased) rather than coerced.
    """

    SUCCESS = "success"
    FAILURE = "failure"
    ABORTED = "aborted"
    UNSTABLE = "unstable"
    RUNNING = "running"
    PENDING = "pending"
    UNKNOWN = "unknown"


class TestResults(BaseModel):
    """Test summary attached to a build."""

    __test__ = False

    total: int = 0
    passed: int = 0
    failed: int = 0
    skipped: int = 0


class Stage(BaseModel):
    """One pipeline stage within a build."""

    name: str
    status: str = BuildStatus.UNKNOWN.value
    duration: int = 0
    start_time: datetime | None = None
    end_time: datetime | None = None
    logs: str | None = None


class BuildSource(BaseModel):
    """Where a build record came from."""

    source: str
    original_data: dict[str, Any] = Field(default_factory=dict)
    processed_at: datetime = Field(default_factory=lambda: datetime.now(UTC))


class Build(BaseModel):
    """One recorded execution of a pipeline.

    ``id`` is the internal record id; ``build_id`` is the identifier assigned by
    the CI system. ``(project_name, build_id)`` is unique across the store.
    """

    id: str = Field(default_factory=lambda: str(uuid4()))
    build_id: str
    project_name: str
    repository_url: str | None = None
    branch: str = "main"
    commit: str | None = None
    status: str = BuildStatus.UNKNOWN.value
    duration: int = 0
    start_time: datetime = Field(default_factory=lambda: datetime.now(UTC))
    end_time: datetime = Field(default_factory=lambda: datetime.now(UTC))
    build_number: int = 1
    triggered_by: str = "system"
    environment: str = "development"
    test_results: TestResults = Field(default_factory=TestResults)
    stages: list[Stage] = Field(default_factory=list)
    logs: str | None = None
    artifacts: list[Any] = Field(default_factory=list)
    metadata: BuildSource = Field(default_factory=lambda: BuildSource(source="unknown"))
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @property
    def failed(self) -> bool:
        return self.status == BuildStatus.FAILURE.value

    @property
    def succeeded(self) -> bool:
        return self.status == BuildStatus.SUCCESS.value
