"""Map heterogeneous CI payloads onto the canonical Build model."""

from __future__ import annotations

from collections.abc import Mapping
from datetime import UTC, datetime, timedelta
from typing import Any

from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from pipewatch.core.errors import PayloadValidationError
from pipewatch.models.build import Build, BuildSource, BuildStatus, Stage, TestResults

STATUS_MAP: dict[str, BuildStatus] = {
    "SUCCESS": BuildStatus.SUCCESS,
    "PASSED": BuildStatus.SUCCESS,
    "COMPLETED": BuildStatus.SUCCESS,
    "FAILURE": BuildStatus.FAILURE,
    "FAILED": BuildStatus.FAILURE,
    "ERROR": BuildStatus.FAILURE,
    "ABORTED": BuildStatus.ABORTED,
    "CANCELLED": BuildStatus.ABORTED,
    "UNSTABLE": BuildStatus.UNSTABLE,
    "RUNNING": BuildStatus.RUNNING,
    "IN_PROGRESS": BuildStatus.RUNNING,
    "PENDING": BuildStatus.PENDING,
    "QUEUED": BuildStatus.PENDING,
}

_DATETIME = TypeAdapter(datetime)


def normalize_status(raw: object) -> str:
    """Map a source status onto the canonical vocabulary.

    Unrecognized values pass through lower-cased; only a missing status
    becomes ``unknown``.
    """
    if raw is None or raw == "":
        return BuildStatus.UNKNOWN.value
    text = str(raw)
    mapped = STATUS_MAP.get(text.upper())
    return mapped.value if mapped is not None else text.lower()


def normalize(payload: Mapping[str, Any], source: str = "jenkins") -> Build:
    """Build a canonical record from a webhook payload.

    Raises:
        PayloadValidationError: if the project name or build id is missing, or
            a timestamp cannot be parsed.
    """
    build_id = _first(payload, "buildId", "id")
    project_name = _first(payload, "projectName", "job_name")
    if build_id is None:
        raise PayloadValidationError("build id is required (buildId or id)")
    if project_name is None:
        raise PayloadValidationError("project name is required (projectName or job_name)")

    duration = _as_int(payload.get("duration"))
    start_time = _as_datetime(payload.get("startTime"), "startTime") or datetime.now(UTC)
    end_time = _as_datetime(payload.get("endTime"), "endTime")
    if end_time is None:
        end_time = start_time + timedelta(seconds=duration)

    return Build(
        build_id=str(build_id),
        project_name=str(project_name),
        repository_url=_as_str(_first(payload, "repositoryUrl", "repository_url")),
        branch=str(_first(payload, "branch", "git_branch") or "main"),
        commit=_as_str(_first(payload, "commit", "git_commit")),
        status=normalize_status(payload.get("status")),
        duration=duration,
        start_time=start_time,
        end_time=end_time,
        build_number=_as_int(_first(payload, "buildNumber", "build_number")) or 1,
        triggered_by=str(_first(payload, "triggeredBy", "triggered_by") or "system"),
        environment=str(payload.get("environment") or "development"),
        test_results=normalize_test_results(payload.get("testResults")),
        stages=normalize_stages(payload.get("stages")),
        logs=_as_str(_first(payload, "logs", "build_log")),
        artifacts=_as_list(payload.get("artifacts")),
        metadata=BuildSource(source=source, original_data=dict(payload)),
    )


def normalize_test_results(raw: object) -> TestResults:
    if not isinstance(raw, Mapping):
        return TestResults()
    return TestResults(
        total=_as_int(raw.get("total")),
        passed=_as_int(raw.get("passed")) or _as_int(raw.get("success")),
        failed=_as_int(raw.get("failed")) or _as_int(raw.get("failure")),
        skipped=_as_int(raw.get("skipped")) or _as_int(raw.get("skip")),
    )


def normalize_stages(raw: object) -> list[Stage]:
    if not isinstance(raw, list):
        return []
    stages = []
    for item in raw:
        if not isinstance(item, Mapping):
            continue
        stages.append(
            Stage(
                name=str(item.get("name") or ""),
                status=normalize_status(item.get("status")),
                duration=_as_int(item.get("duration")),
                start_time=_as_datetime(item.get("startTime"), "stages.startTime"),
                end_time=_as_datetime(item.get("endTime"), "stages.endTime"),
                logs=_as_str(item.get("logs")),
            )
        )
    return stages


def _first(payload: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        value = payload.get(key)
        if value is not None and value != "":
            return value
    return None


def _as_str(value: object) -> str | None:
    return None if value is None else str(value)


def _as_list(value: object) -> list[Any]:
    return list(value) if isinstance(value, list) else []


def _as_int(value: object) -> int:
    """Lenient integer coercion; anything unusable becomes 0."""
    if value is None or isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return value
    try:
        return int(float(str(value).strip()))
    except (ValueError, OverflowError):
        return 0


def _as_datetime(value: object, field: str) -> datetime | None:
    if value is None or value == "":
        return None
    try:
        parsed = _DATETIME.validate_python(value)
    except PydanticValidationError as exc:
        msg = f"invalid timestamp for {field}: {value!r}"
        raise PayloadValidationError(msg) from exc
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed
