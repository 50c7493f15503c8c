"""SQLite migrations for pipewatch storage."""

from __future__ import annotations

import aiosqlite

SCHEMA_VERSION = 1

_STATEMENTS = (
    """
    CREATE TABLE IF NOT EXISTS schema_migrations (
        version INTEGER PRIMARY KEY
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS builds (
        id TEXT PRIMARY KEY,
        project_name TEXT NOT NULL,
        build_id TEXT NOT NULL,
        branch TEXT NOT NULL,
        status TEXT NOT NULL,
        environment TEXT NOT NULL,
        build_number INTEGER NOT NULL,
        end_time TEXT NOT NULL,
        created_at TEXT NOT NULL,
        document TEXT NOT NULL,
        UNIQUE(project_name, build_id)
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_builds_project_end ON builds(project_name, end_time)",
    """
    CREATE INDEX IF NOT EXISTS idx_builds_project_branch_number
    ON builds(project_name, branch, build_number)
    """,
    """
    CREATE TABLE IF NOT EXISTS projects (
        name TEXT PRIMARY KEY,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL,
        document TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS metrics (
        id TEXT PRIMARY KEY,
        project_name TEXT NOT NULL,
        period TEXT NOT NULL,
        bucket TEXT NOT NULL,
        timestamp TEXT NOT NULL,
        document TEXT NOT NULL,
        UNIQUE(project_name, period, bucket)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS alert_rules (
        id TEXT PRIMARY KEY,
        enabled INTEGER NOT NULL,
        created_at TEXT NOT NULL,
        document TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS alerts (
        id TEXT PRIMARY KEY,
        rule_id TEXT NOT NULL,
        project_name TEXT NOT NULL,
        severity TEXT NOT NULL,
        status TEXT NOT NULL,
        timestamp TEXT NOT NULL,
        document TEXT NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_alerts_status ON alerts(status, timestamp)",
    """
    CREATE TABLE IF NOT EXISTS events (
        id TEXT PRIMARY KEY,
        event_type TEXT NOT NULL,
        project_name TEXT,
        payload TEXT NOT NULL,
        timestamp TEXT NOT NULL
    )
    """,
)


async def apply_migrations(conn: aiosqlite.Connection) -> None:
    """Create core schema if missing and set schema version."""
    for statement in _STATEMENTS:
        await conn.execute(statement)

    await conn.execute("DELETE FROM schema_migrations")
    await conn.execute("INSERT INTO schema_migrations(version) VALUES (?)", (SCHEMA_VERSION,))
    await conn.commit()
