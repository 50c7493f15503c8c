from __future__ import annotations

import logging
from pathlib import Path

import pytest
import structlog

from pipewatch.config import Settings, get_settings, reset_settings
from pipewatch.log import bind_context, clear_context, configure_logging


def test_settings_read_prefixed_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("PIPEWATCH_DATABASE_PATH", "/tmp/pw.db")
    monkeypatch.setenv("PIPEWATCH_DEFAULT_COOLDOWN_MINUTES", "30")
    monkeypatch.setenv("PIPEWATCH_LOG_FORMAT", "json")

    settings = Settings()

    assert settings.database_path == Path("/tmp/pw.db")
    assert settings.default_cooldown_minutes == 30
    assert settings.log_format == "json"
    assert settings.notification_timeout_seconds == 10.0


def test_get_settings_is_cached_until_reset(monkeypatch: pytest.MonkeyPatch) -> None:
    reset_settings()
    first = get_settings()
    assert get_settings() is first

    monkeypatch.setenv("PIPEWATCH_PORT", "9001")
    reset_settings()
    assert get_settings().port == 9001
    reset_settings()


def test_configure_logging_renders_bound_context(capsys: pytest.CaptureFixture[str]) -> None:
    root = logging.getLogger()
    saved_handlers, saved_level = root.handlers[:], root.level

    configure_logging(Settings(log_level="DEBUG", log_format="json"))
    bind_context(source="jenkins")
    try:
        structlog.get_logger("pipewatch.test").info("build_processed", project="api")
        level = root.level
    finally:
        clear_context()
        structlog.reset_defaults()
        root.handlers[:] = saved_handlers
        root.setLevel(saved_level)

    output = capsys.readouterr().out
    assert '"event": "build_processed"' in output
    assert '"source": "jenkins"' in output
    assert level == logging.DEBUG
