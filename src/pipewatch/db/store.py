"""Async SQLite document store for pipewatch models.

Each entity is persisted as a JSON document next to the key columns used for
lookups, uniqueness and range queries.
"""

from __future__ import annotations

import json
import sqlite3
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Literal

import aiosqlite

from pipewatch.core.errors import StoreUnavailableError
from pipewatch.db.migrations import apply_migrations
from pipewatch.models.alert import Alert, AlertStatus
from pipewatch.models.build import Build
from pipewatch.models.events import EventType, MonitorEvent
from pipewatch.models.metric import Metric, MetricPeriod
from pipewatch.models.project import Project
from pipewatch.models.rules import AlertRule, AlertSeverity

BuildOrder = Literal["end_time", "build_number"]


def _ts(value: datetime) -> str:
    """Serialize a timestamp so that string order matches time order."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC).isoformat(timespec="microseconds")


class SQLiteStore:
    """Data access layer for builds, projects, metrics, rules, alerts and events."""

    def __init__(self, db_path: Path) -> None:
        self._db_path = db_path

    @property
    def db_path(self) -> Path:
        return self._db_path

    @asynccontextmanager
    async def connection(self) -> AsyncIterator[aiosqlite.Connection]:
        try:
            conn = await aiosqlite.connect(self._db_path)
        except sqlite3.OperationalError as exc:
            msg = f"cannot open store at {self._db_path}: {exc}"
            raise StoreUnavailableError(msg) from exc
        conn.row_factory = aiosqlite.Row
        try:
            await apply_migrations(conn)
            yield conn
        except sqlite3.OperationalError as exc:
            msg = f"store operation failed: {exc}"
            raise StoreUnavailableError(msg) from exc
        finally:
            await conn.close()

    # Builds

    async def upsert_build(self, build: Build) -> Build:
        """Insert a build or merge it into the record with the same key.

        The stored record keeps its original ``id`` and ``created_at``.
        """
        async with self.connection() as conn:
            await conn.execute(
                """
                INSERT INTO builds(
                    id,
                    project_name,
                    build_id,
                    branch,
                    status,
                    environment,
                    build_number,
                    end_time,
                    created_at,
                    document
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(project_name, build_id) DO UPDATE SET
                    branch=excluded.branch,
                    status=excluded.status,
                    environment=excluded.environment,
                    build_number=excluded.build_number,
                    end_time=excluded.end_time,
                    document=excluded.document
                """,
                (
                    build.id,
                    build.project_name,
                    build.build_id,
                    build.branch,
                    build.status,
                    build.environment,
                    build.build_number,
                    _ts(build.end_time),
                    _ts(build.created_at),
                    build.model_dump_json(exclude={"id", "created_at"}),
                ),
            )
            await conn.commit()
            cursor = await conn.execute(
                "SELECT * FROM builds WHERE project_name = ? AND build_id = ?",
                (build.project_name, build.build_id),
            )
            row = await cursor.fetchone()
        if row is None:
            raise StoreUnavailableError(
                f"build {build.project_name}/{build.build_id} was not readable after upsert"
            )
        return self._build_from_row(row)

    async def get_build(self, project_name: str, build_id: str) -> Build | None:
        async with self.connection() as conn:
            cursor = await conn.execute(
                "SELECT * FROM builds WHERE project_name = ? AND build_id = ?",
                (project_name, build_id),
            )
            row = await cursor.fetchone()
        if row is None:
            return None
        return self._build_from_row(row)

    async def list_builds(
        self,
        *,
        project_name: str | None = None,
        branch: str | None = None,
        since: datetime | None = None,
        until: datetime | None = None,
        before: datetime | None = None,
        order_by: BuildOrder = "end_time",
        limit: int | None = None,
        offset: int = 0,
    ) -> list[Build]:
        """List builds newest first.

        ``since`` and ``until`` bound ``end_time`` inclusively, ``before`` is an
        exclusive upper bound.
        """
        query = "SELECT * FROM builds WHERE 1 = 1"
        params: list[Any] = []

        if project_name:
            query += " AND project_name = ?"
            params.append(project_name)

        if branch:
            query += " AND branch = ?"
            params.append(branch)

        if since:
            query += " AND end_time >= ?"
            params.append(_ts(since))

        if until:
            query += " AND end_time <= ?"
            params.append(_ts(until))

        if before:
            query += " AND end_time < ?"
            params.append(_ts(before))

        if order_by == "build_number":
            query += " ORDER BY build_number DESC, end_time DESC"
        else:
            query += " ORDER BY end_time DESC"

        if limit is not None:
            query += " LIMIT ? OFFSET ?"
            params.extend([limit, offset])

        async with self.connection() as conn:
            cursor = await conn.execute(query, tuple(params))
            rows = await cursor.fetchall()
        return [self._build_from_row(row) for row in rows]

    # Projects

    async def upsert_project(self, project: Project) -> None:
        async with self.connection() as conn:
            await conn.execute(
                """
                INSERT INTO projects(name, created_at, updated_at, document)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(name) DO UPDATE SET
                    updated_at=excluded.updated_at,
                    document=excluded.document
                """,
                (
                    project.name,
                    _ts(project.created_at),
                    _ts(project.updated_at),
                    project.model_dump_json(exclude={"created_at"}),
                ),
            )
            await conn.commit()

    async def get_project(self, name: str) -> Project | None:
        async with self.connection() as conn:
            cursor = await conn.execute("SELECT * FROM projects WHERE name = ?", (name,))
            row = await cursor.fetchone()
        if row is None:
            return None
        return self._project_from_row(row)

    async def list_projects(self) -> list[Project]:
        async with self.connection() as conn:
            cursor = await conn.execute("SELECT * FROM projects ORDER BY name ASC")
            rows = await cursor.fetchall()
        return [self._project_from_row(row) for row in rows]

    # Metrics

    async def upsert_metric(self, metric: Metric) -> Metric:
        """Write a snapshot, replacing any snapshot in the same hour bucket."""
        async with self.connection() as conn:
            await conn.execute(
                """
                INSERT INTO metrics(id, project_name, period, bucket, timestamp, document)
                VALUES (?, ?, ?, ?, ?, ?)
                ON CONFLICT(project_name, period, bucket) DO UPDATE SET
                    timestamp=excluded.timestamp,
                    document=excluded.document
                """,
                (
                    metric.id,
                    metric.project_name,
                    metric.period.value,
                    _ts(metric.bucket),
                    _ts(metric.timestamp),
                    metric.model_dump_json(exclude={"id"}),
                ),
            )
            await conn.commit()
            cursor = await conn.execute(
                "SELECT * FROM metrics WHERE project_name = ? AND period = ? AND bucket = ?",
                (metric.project_name, metric.period.value, _ts(metric.bucket)),
            )
            row = await cursor.fetchone()
        if row is None:
            raise StoreUnavailableError(
                f"metric {metric.project_name}/{metric.period.value} was not readable after upsert"
            )
        return self._metric_from_row(row)

    async def list_metrics(
        self,
        *,
        project_name: str,
        period: MetricPeriod | None = None,
        since: datetime | None = None,
    ) -> list[Metric]:
        query = "SELECT * FROM metrics WHERE project_name = ?"
        params: list[str] = [project_name]

        if period:
            query += " AND period = ?"
            params.append(period.value)

        if since:
            query += " AND bucket >= ?"
            params.append(_ts(since))

        query += " ORDER BY bucket ASC, period ASC"

        async with self.connection() as conn:
            cursor = await conn.execute(query, tuple(params))
            rows = await cursor.fetchall()
        return [self._metric_from_row(row) for row in rows]

    # Alert rules

    async def upsert_rule(self, rule: AlertRule) -> None:
        async with self.connection() as conn:
            await conn.execute(
                """
                INSERT INTO alert_rules(id, enabled, created_at, document)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    enabled=excluded.enabled,
                    document=excluded.document
                """,
                (
                    rule.id,
                    int(rule.enabled),
                    _ts(rule.created_at),
                    rule.model_dump_json(),
                ),
            )
            await conn.commit()

    async def get_rule(self, rule_id: str) -> AlertRule | None:
        async with self.connection() as conn:
            cursor = await conn.execute("SELECT * FROM alert_rules WHERE id = ?", (rule_id,))
            row = await cursor.fetchone()
        if row is None:
            return None
        return AlertRule.model_validate_json(str(row["document"]))

    async def list_rules(self, *, enabled: bool | None = None) -> list[AlertRule]:
        query = "SELECT * FROM alert_rules"
        params: tuple[int, ...] = ()
        if enabled is not None:
            query += " WHERE enabled = ?"
            params = (int(enabled),)
        query += " ORDER BY created_at ASC"

        async with self.connection() as conn:
            cursor = await conn.execute(query, params)
            rows = await cursor.fetchall()
        return [AlertRule.model_validate_json(str(row["document"])) for row in rows]

    async def delete_rule(self, rule_id: str) -> bool:
        async with self.connection() as conn:
            cursor = await conn.execute("DELETE FROM alert_rules WHERE id = ?", (rule_id,))
            await conn.commit()
            deleted = cursor.rowcount
        return deleted > 0

    # Alerts

    async def upsert_alert(self, alert: Alert) -> None:
        async with self.connection() as conn:
            await conn.execute(
                """
                INSERT INTO alerts(
                    id,
                    rule_id,
                    project_name,
                    severity,
                    status,
                    timestamp,
                    document
                )
                VALUES (?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    status=excluded.status,
                    document=excluded.document
                """,
                (
                    alert.id,
                    alert.rule_id,
                    alert.project_name,
                    alert.severity.value,
                    alert.status.value,
                    _ts(alert.timestamp),
                    alert.model_dump_json(),
                ),
            )
            await conn.commit()

    async def get_alert(self, alert_id: str) -> Alert | None:
        async with self.connection() as conn:
            cursor = await conn.execute("SELECT * FROM alerts WHERE id = ?", (alert_id,))
            row = await cursor.fetchone()
        if row is None:
            return None
        return Alert.model_validate_json(str(row["document"]))

    async def list_alerts(
        self,
        *,
        status: AlertStatus | None = None,
        project_name: str | None = None,
        severity: AlertSeverity | None = None,
        rule_id: str | None = None,
        since: datetime | None = None,
        limit: int | None = None,
    ) -> list[Alert]:
        query = "SELECT * FROM alerts WHERE 1 = 1"
        params: list[Any] = []

        if status:
            query += " AND status = ?"
            params.append(status.value)

        if project_name:
            query += " AND project_name = ?"
            params.append(project_name)

        if severity:
            query += " AND severity = ?"
            params.append(severity.value)

        if rule_id:
            query += " AND rule_id = ?"
            params.append(rule_id)

        if since:
            query += " AND timestamp >= ?"
            params.append(_ts(since))

        query += " ORDER BY timestamp DESC"

        if limit is not None:
            query += " LIMIT ?"
            params.append(limit)

        async with self.connection() as conn:
            cursor = await conn.execute(query, tuple(params))
            rows = await cursor.fetchall()
        return [Alert.model_validate_json(str(row["document"])) for row in rows]

    async def count_alerts(
        self,
        *,
        status: AlertStatus | None = None,
        project_name: str | None = None,
    ) -> int:
        query = "SELECT COUNT(*) AS total FROM alerts WHERE 1 = 1"
        params: list[str] = []

        if status:
            query += " AND status = ?"
            params.append(status.value)

        if project_name:
            query += " AND project_name = ?"
            params.append(project_name)

        async with self.connection() as conn:
            cursor = await conn.execute(query, tuple(params))
            row = await cursor.fetchone()
        return int(row["total"]) if row is not None else 0

    # Events

    async def append_event(self, event: MonitorEvent) -> None:
        async with self.connection() as conn:
            await conn.execute(
                """
                INSERT INTO events(id, event_type, project_name, payload, timestamp)
                VALUES (?, ?, ?, ?, ?)
                """,
                (
                    event.id,
                    event.event_type.value,
                    event.project_name,
                    json.dumps(event.payload, default=str),
                    _ts(event.timestamp),
                ),
            )
            await conn.commit()

    async def list_events(
        self,
        *,
        project_name: str | None = None,
        event_type: EventType | None = None,
        since: datetime | None = None,
        until: datetime | None = None,
    ) -> list[MonitorEvent]:
        query = "SELECT * FROM events WHERE 1 = 1"
        params: list[str] = []

        if project_name:
            query += " AND project_name = ?"
            params.append(project_name)

        if event_type:
            query += " AND event_type = ?"
            params.append(event_type.value)

        if since:
            query += " AND timestamp >= ?"
            params.append(_ts(since))

        if until:
            query += " AND timestamp <= ?"
            params.append(_ts(until))

        query += " ORDER BY timestamp ASC, rowid ASC"

        async with self.connection() as conn:
            cursor = await conn.execute(query, tuple(params))
            rows = await cursor.fetchall()

        return [self._event_from_row(row) for row in rows]

    @staticmethod
    def _build_from_row(row: aiosqlite.Row) -> Build:
        document = json.loads(str(row["document"]))
        document["id"] = str(row["id"])
        document["created_at"] = str(row["created_at"])
        return Build.model_validate(document)

    @staticmethod
    def _project_from_row(row: aiosqlite.Row) -> Project:
        document = json.loads(str(row["document"]))
        document["created_at"] = str(row["created_at"])
        return Project.model_validate(document)

    @staticmethod
    def _metric_from_row(row: aiosqlite.Row) -> Metric:
        document = json.loads(str(row["document"]))
        document["id"] = str(row["id"])
        return Metric.model_validate(document)

    @staticmethod
    def _event_from_row(row: aiosqlite.Row) -> MonitorEvent:
        return MonitorEvent(
            id=str(row["id"]),
            event_type=EventType(str(row["event_type"])),
            project_name=str(row["project_name"]) if row["project_name"] else None,
            payload=json.loads(str(row["payload"])),
            timestamp=datetime.fromisoformat(str(row["timestamp"])),
        )
