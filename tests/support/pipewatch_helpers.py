from __future__ import annotations

from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Any

from pipewatch.api.deps import Services, build_services
from pipewatch.config import Settings
from pipewatch.models.alert import Alert
from pipewatch.models.rules import ChannelType


class PipewatchTestClock:
    def __init__(self, start: datetime | None = None) -> None:
        self.current = start or datetime(2026, 1, 15, 12, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.current

    def advance(self, *, minutes: int = 0, seconds: int = 0) -> None:
        self.current += timedelta(minutes=minutes, seconds=seconds)


class RecordingNotifier:
    """Notification sender that records deliveries instead of sending them."""

    def __init__(self, fail_on: set[ChannelType] | None = None) -> None:
        self.sent: list[tuple[ChannelType, dict[str, Any], Alert]] = []
        self.fail_on = fail_on or set()

    async def send(
        self,
        channel_type: ChannelType,
        configuration: dict[str, Any],
        alert: Alert,
    ) -> None:
        if channel_type in self.fail_on:
            raise RuntimeError(f"{channel_type.value} unavailable")
        self.sent.append((channel_type, configuration, alert))


def build_payload(
    clock: PipewatchTestClock,
    *,
    build_id: str,
    project: str = "api",
    status: str = "SUCCESS",
    build_number: int = 1,
    duration: int = 120,
    ago_minutes: int = 0,
    **extra: Any,
) -> dict[str, Any]:
    end = clock() - timedelta(minutes=ago_minutes)
    payload: dict[str, Any] = {
        "buildId": build_id,
        "projectName": project,
        "status": status,
        "buildNumber": build_number,
        "duration": duration,
        "startTime": (end - timedelta(seconds=duration)).isoformat(),
        "endTime": end.isoformat(),
    }
    payload.update(extra)
    return payload


def make_services(
    tmp_path: Path,
    clock: PipewatchTestClock,
    notifier: RecordingNotifier | None = None,
    **settings: Any,
) -> Services:
    return build_services(
        Settings(database_path=tmp_path / "pipewatch.db", **settings),
        notifier=notifier or RecordingNotifier(),
        clock=clock,
    )
