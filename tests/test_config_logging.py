"""
Mirathi Test Suite - Configuration and Logging
==============================================

Author: Mirathi Team
Version: 1.0.0
"""

import json
import logging

import pytest
import structlog

from mirathi import logging as mirathi_logging
from mirathi.config import Settings


@pytest.fixture
def restore_logging():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    for handler in root.handlers:
        handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)
    structlog.reset_defaults()


class TestSettings:
    """Tests for environment-driven settings."""

    def test_defaults(self):
        settings = Settings(_env_file=None)

        assert settings.concurrency_max_retries == 3
        assert settings.sweep_batch_size == 100
        assert settings.auto_recalculate_days == 7
        assert settings.postgres_async_dsn.startswith("postgresql+asyncpg://")

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("POSTGRES_HOST", "db.internal")
        monkeypatch.setenv("CONCURRENCY_MAX_RETRIES", "5")

        settings = Settings(_env_file=None)

        assert "@db.internal:5432/" in settings.postgres_async_dsn
        assert settings.concurrency_max_retries == 5

    def test_negative_retries_rejected(self, monkeypatch):
        monkeypatch.setenv("CONCURRENCY_MAX_RETRIES", "-1")

        with pytest.raises(ValueError):
            Settings(_env_file=None)


class TestLogging:
    """Tests for structured logging."""

    def test_correlation_id_processor(self):
        cid = mirathi_logging.set_correlation_id("corr-1234")

        event = mirathi_logging._add_correlation_id(None, "info", {"event": "x"})

        assert cid == "corr-1234"
        assert mirathi_logging.get_correlation_id() == "corr-1234"
        assert event["correlation_id"] == "corr-1234"

    def test_generated_correlation_id(self):
        assert len(mirathi_logging.set_correlation_id()) == 12

    def test_actor_processor_skips_system(self):
        mirathi_logging.set_actor("system")
        assert "actor" not in mirathi_logging._add_actor(None, "info", {})

        mirathi_logging.set_actor("advocate-7")
        assert mirathi_logging._add_actor(None, "info", {})["actor"] == "advocate-7"
        mirathi_logging.set_actor("system")

    def test_json_lines_written_to_file(self, tmp_path, restore_logging):
        log_file = tmp_path / "readiness.log"
        mirathi_logging.setup_logging(level="INFO", json_output=True, log_file=str(log_file))

        mirathi_logging.get_logger("mirathi.tests").info("risk_added", estate_id="estate-9")

        lines = [json.loads(line) for line in log_file.read_text().splitlines()]
        assert lines[-1]["event"] == "risk_added"
        assert lines[-1]["estate_id"] == "estate-9"
        assert lines[-1]["level"] == "info"
        assert lines[-1]["service"] == "mirathi-readiness"
