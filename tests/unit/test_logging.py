"""Unit tests for the logging configuration module."""

import logging
from unittest.mock import MagicMock, patch

import pytest
import structlog

from ytposts.logging import get_logger, log_context, setup_logging


@pytest.fixture(autouse=True)
def _reset_logging():
    """Reset root logger and structlog state around each test."""
    original_handlers = logging.root.handlers[:]
    original_level = logging.root.level
    yield
    logging.root.handlers.clear()
    logging.root.handlers.extend(original_handlers)
    logging.root.setLevel(original_level)
    structlog.reset_defaults()


def _settings(level: str = "INFO", development: bool = False) -> MagicMock:
    mock_settings = MagicMock()
    mock_settings.log_level = level
    mock_settings.is_development = development
    return mock_settings


class TestSetupLogging:
    """Tests for setup_logging function."""

    def test_basic_config_uses_settings_level(self):
        """basicConfig receives the configured level."""
        with patch("ytposts.logging.get_settings", return_value=_settings("DEBUG")):
            with patch("ytposts.logging.logging.basicConfig") as mock_basic:
                setup_logging()

        mock_basic.assert_called_once()
        assert mock_basic.call_args.kwargs["level"] == logging.DEBUG

    def test_invalid_level_defaults_to_info(self):
        """An unknown level name falls back to INFO."""
        with patch("ytposts.logging.get_settings", return_value=_settings("NONEXISTENT")):
            with patch("ytposts.logging.logging.basicConfig") as mock_basic:
                setup_logging()

        assert mock_basic.call_args.kwargs["level"] == logging.INFO

    def test_third_party_loggers_are_quieted(self):
        """discord, httpx and asyncpg loggers are raised to WARNING."""
        with patch("ytposts.logging.get_settings", return_value=_settings("DEBUG")):
            setup_logging()

        for name in ("discord", "httpx", "httpcore", "asyncpg"):
            assert logging.getLogger(name).level == logging.WARNING

    @pytest.mark.parametrize(
        ("development", "renderer"),
        [
            (True, structlog.dev.ConsoleRenderer),
            (False, structlog.processors.JSONRenderer),
        ],
    )
    def test_renderer_depends_on_environment(self, development, renderer):
        """Development uses the console renderer, everything else JSON."""
        with patch("ytposts.logging.get_settings", return_value=_settings(development=development)):
            setup_logging()

        processors = structlog.get_config()["processors"]
        assert isinstance(processors[-1], renderer)

    def test_explicit_settings_skip_the_cached_settings(self):
        with patch("ytposts.logging.get_settings") as mock_get:
            with patch("ytposts.logging.logging.basicConfig") as mock_basic:
                setup_logging(_settings("WARNING"))

        mock_get.assert_not_called()
        assert mock_basic.call_args.kwargs["level"] == logging.WARNING


class TestGetLogger:
    """Tests for get_logger."""

    def test_returns_usable_logger(self):
        log = get_logger("ytposts.test")
        assert hasattr(log, "info")
        assert hasattr(log, "warning")


class TestLogContext:
    """Tests for log_context."""

    def test_binds_values_inside_block(self):
        with log_context(channel_id="UC1", handle="@one"):
            bound = structlog.contextvars.get_contextvars()

        assert bound["channel_id"] == "UC1"
        assert bound["handle"] == "@one"

    def test_none_values_are_not_bound(self):
        with log_context(channel_id="UC1", handle=None):
            bound = structlog.contextvars.get_contextvars()

        assert "handle" not in bound

    def test_bindings_removed_on_exit(self):
        with log_context(channel_id="UC1"):
            pass

        assert "channel_id" not in structlog.contextvars.get_contextvars()

    def test_outer_bindings_restored(self):
        with log_context(sweep_started_at="t0"):
            with log_context(channel_id="UC1"):
                pass
            bound = structlog.contextvars.get_contextvars()

        assert bound == {"sweep_started_at": "t0"}
