"""Tests for autoevolve structured logging."""

import json
import logging
from pathlib import Path
from typing import Any
from unittest.mock import patch

import pytest
from structlog.contextvars import bound_contextvars

from autoevolve import __version__
from autoevolve.core.logging import (
    MAX_LOG_LENGTH,
    add_version,
    configure_logging,
    configure_logging_from_settings,
    reset_logging,
    sanitize_event,
    sanitize_log_message,
)
from autoevolve.core.settings import EvolutionSettings
from autoevolve.rollout.manager import RolloutManager
from autoevolve.rollout.models import DeploymentConfig
from autoevolve.scheduler.models import EvolutionArea, ExperimentOutcome
from autoevolve.scheduler.scheduler import EvolutionScheduler

PERFORMANCE = EvolutionArea(name="performance", current_version="1.0.0")


@pytest.fixture(autouse=True)
def reset_logging_state():  # type: ignore[misc]
    """Reset logging state before each test."""
    reset_logging()
    yield
    reset_logging()


def _json_lines(path: Path) -> list[dict[str, Any]]:
    return [json.loads(line) for line in path.read_text().splitlines() if line]


class TestProcessors:
    """Tests for the custom processors."""

    def test_add_version(self) -> None:
        """Test that events are stamped with the package version."""
        result = add_version(None, "info", {"event": "test"})
        assert result["autoevolve_version"] == __version__

    def test_add_version_does_not_override(self) -> None:
        """Test that an explicit version is kept."""
        result = add_version(None, "info", {"autoevolve_version": "custom"})
        assert result["autoevolve_version"] == "custom"

    def test_sanitize_event_escapes_line_breaks(self) -> None:
        """Test that a multi-line hypothesis stays on one log line."""
        result = sanitize_event(None, "info", {"event": "fewer\r\ncrashes"})

        assert result["event"] == "fewer\\r\\ncrashes"

    def test_sanitize_strips_ansi(self) -> None:
        """Test that ANSI escape sequences are removed."""
        assert sanitize_log_message("\x1b[91mred\x1b[0m") == "red"

    def test_sanitize_truncates_long_messages(self) -> None:
        """Test truncation of oversized messages."""
        result = sanitize_log_message("x" * (MAX_LOG_LENGTH + 100))

        assert len(result) <= MAX_LOG_LENGTH
        assert result.endswith("[TRUNCATED]")

    def test_sanitize_ignores_non_string_events(self) -> None:
        """Test that non-string events pass through."""
        assert sanitize_event(None, "info", {"event": 42})["event"] == 42


class TestConfigureLogging:
    """Tests for logging configuration."""

    def test_default_level(self) -> None:
        """Test default configuration installs one handler."""
        configure_logging()

        root_logger = logging.getLogger()
        assert root_logger.level == logging.INFO
        assert len(root_logger.handlers) == 1

    def test_string_level(self) -> None:
        """Test configuration with a level name."""
        configure_logging(level="WARNING")
        assert logging.getLogger().level == logging.WARNING

    def test_json_file_output(self, tmp_path: Path) -> None:
        """Test that standard records are rendered as JSON with bound fields."""
        log_file = tmp_path / "autoevolve.log"
        configure_logging(json_output=True, log_file=str(log_file))

        with bound_contextvars(area="performance"):
            logging.getLogger("autoevolve.test").warning(
                "Deployment %s rolled back", "d-1"
            )

        assert len(logging.getLogger().handlers) == 2
        (line,) = _json_lines(log_file)
        assert line["event"] == "Deployment d-1 rolled back"
        assert line["area"] == "performance"
        assert line["level"] == "warning"
        assert line["logger"] == "autoevolve.test"
        assert line["autoevolve_version"] == __version__
        assert "timestamp" in line

    def test_reset_removes_handlers_and_context(self, tmp_path: Path) -> None:
        """Test that reset leaves no handlers or bound fields behind."""
        configure_logging(json_output=True, log_file=str(tmp_path / "a.log"))

        reset_logging()

        assert logging.getLogger().handlers == []
        assert logging.getLogger().level == logging.WARNING


class TestEngineContext:
    """Tests that engine transitions carry their area or deployment."""

    def test_scheduler_binds_area(self, tmp_path: Path, clock: Any) -> None:
        """Test experiment transitions are logged with the area field."""
        log_file = tmp_path / "scheduler.log"
        configure_logging(json_output=True, log_file=str(log_file))
        scheduler = EvolutionScheduler(clock=clock)

        scheduler.register_area(PERFORMANCE)
        scheduler.start_experiment("performance", "cache warmup")
        scheduler.complete_experiment(
            "performance", ExperimentOutcome(success=True, new_version="1.1.0")
        )

        lines = [
            line
            for line in _json_lines(log_file)
            if line["logger"] == "autoevolve.scheduler.scheduler"
        ]
        assert len(lines) == 4
        assert all(line["area"] == "performance" for line in lines)

    def test_rollout_binds_deployment_id(self, tmp_path: Path) -> None:
        """Test deployment transitions are logged with the deployment id."""
        log_file = tmp_path / "rollout.log"
        configure_logging(json_output=True, log_file=str(log_file))
        rollout = RolloutManager()

        deployment = rollout.deploy(
            DeploymentConfig(variant_id="treatment", variant={"v": 2})
        )
        rollout.increase_canary(deployment.deployment_id, 50)
        rollout.rollback(deployment.deployment_id)

        lines = [
            line
            for line in _json_lines(log_file)
            if line["logger"] == "autoevolve.rollout.manager"
        ]
        assert len(lines) == 3
        assert {line["deployment_id"] for line in lines} == {
            deployment.deployment_id
        }

    def test_context_does_not_leak(self, tmp_path: Path, clock: Any) -> None:
        """Test that bound fields end with the transition."""
        log_file = tmp_path / "leak.log"
        configure_logging(json_output=True, log_file=str(log_file))
        scheduler = EvolutionScheduler(clock=clock)
        scheduler.register_area(PERFORMANCE)

        logging.getLogger("autoevolve.test").info("after")

        assert "area" not in _json_lines(log_file)[-1]


class TestConfigureFromSettings:
    """Tests for configure_logging_from_settings."""

    def test_uses_logging_group(self) -> None:
        """Test that the logging settings group is applied."""
        settings = EvolutionSettings(
            _skip_file_loading=True,
            logging={"level": "error", "json_output": True},
        )

        with patch(
            "autoevolve.core.settings.get_cached_settings", return_value=settings
        ):
            configure_logging_from_settings()

        assert logging.getLogger().level == logging.ERROR
