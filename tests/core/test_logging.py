"""Tests for structured logging."""

import json
import logging
from collections.abc import Generator
from pathlib import Path

import pytest
import structlog

from codesearch.config.models import LoggingConfig, LogOutputConfig
from codesearch.core.logging import configure_logging, get_logger


@pytest.fixture(autouse=True)
def reset_logging() -> Generator[None, None, None]:
    yield
    configure_logging()


def _flush() -> None:
    for handler in logging.getLogger().handlers:
        handler.flush()


class TestConfigureLogging:
    """configure_logging() output wiring."""

    def test_given_json_file_output_when_log_then_writes_json_line(self, tmp_path: Path) -> None:
        # Given
        log_file = tmp_path / "logs" / "codesearch.log"
        configure_logging(
            config=LoggingConfig(
                level="DEBUG",
                outputs=[LogOutputConfig(format="json", destination=str(log_file))],
            )
        )

        # When
        structlog.get_logger().info("repo_indexer_initialized", duration_sec=0.25)
        _flush()

        # Then
        lines = log_file.read_text().strip().splitlines()
        record = json.loads(lines[-1])
        assert record["event"] == "repo_indexer_initialized"
        assert record["duration_sec"] == 0.25
        assert record["level"] == "info"
        assert "timestamp" in record

    def test_given_warning_level_when_info_logged_then_filtered(self, tmp_path: Path) -> None:
        # Given
        log_file = tmp_path / "warn.log"
        configure_logging(
            config=LoggingConfig(
                level="WARNING",
                outputs=[LogOutputConfig(format="json", destination=str(log_file))],
            )
        )

        # When
        structlog.get_logger().info("queue_started")
        structlog.get_logger().warning("code_indexer_not_ready", skipped=2)
        _flush()

        # Then
        events = [json.loads(line)["event"] for line in log_file.read_text().splitlines()]
        assert events == ["code_indexer_not_ready"]

    def test_sqlalchemy_engine_logging_is_silenced(self) -> None:
        configure_logging(level="DEBUG")
        assert logging.getLogger("sqlalchemy.engine").level == logging.WARNING


class TestGetLogger:
    def test_named_logger_binds_name(self, tmp_path: Path) -> None:
        log_file = tmp_path / "named.log"
        configure_logging(
            config=LoggingConfig(
                outputs=[LogOutputConfig(format="json", destination=str(log_file))]
            )
        )

        get_logger("progress").info("status")
        _flush()

        record = json.loads(log_file.read_text().splitlines()[-1])
        assert record["logger"] == "progress"
