"""Unit tests for the utils module.

Tests the timed_operation async context manager and truncate_text.
"""

import asyncio
from unittest.mock import MagicMock

import pytest

from ytposts.utils import timed_operation, truncate_text


class TestTimedOperation:
    """Tests for the timed_operation async context manager."""

    async def test_yields_dict_with_elapsed_ms(self) -> None:
        """timed_operation should yield a dict that gets populated with elapsed_ms."""
        async with timed_operation("test_op") as timing:
            await asyncio.sleep(0.01)

        assert isinstance(timing["elapsed_ms"], float)
        assert timing["elapsed_ms"] > 0

    async def test_dict_is_empty_inside_context(self) -> None:
        """The yielded dict should be empty while inside the context block."""
        async with timed_operation("test_op") as timing:
            assert "elapsed_ms" not in timing

    async def test_log_info_called_with_extra(self) -> None:
        """When a log is provided, log.info receives the duration and extras."""
        mock_log = MagicMock()

        async with timed_operation("sweep_finished", log=mock_log, channels=3) as timing:
            await asyncio.sleep(0.01)

        mock_log.info.assert_called_once_with(
            "sweep_finished", duration_ms=timing["elapsed_ms"], succeeded=True, channels=3
        )
        assert timing["succeeded"] is True

    async def test_failed_block_logged_as_warning(self) -> None:
        """A raising block is logged with succeeded=False and the exception propagates."""
        mock_log = MagicMock()

        with pytest.raises(RuntimeError):
            async with timed_operation("sweep_finished", log=mock_log) as timing:
                raise RuntimeError("boom")

        mock_log.info.assert_not_called()
        mock_log.warning.assert_called_once_with(
            "sweep_finished", duration_ms=timing["elapsed_ms"], succeeded=False
        )


class TestTruncateText:
    """Tests for truncate_text."""

    def test_short_text_unchanged(self) -> None:
        assert truncate_text("hello", 10) == "hello"

    def test_text_at_limit_unchanged(self) -> None:
        assert truncate_text("x" * 10, 10) == "x" * 10

    def test_long_text_cut_with_marker(self) -> None:
        """The result, marker included, is exactly max_length long."""
        result = truncate_text("x" * 2000, 1950)

        assert len(result) == 1950
        assert result.endswith("...")
        assert result[:-3] == "x" * 1947

    def test_custom_marker(self) -> None:
        assert truncate_text("abcdefghij", 6, marker="~") == "abcde~"

    def test_limit_not_longer_than_marker_raises(self) -> None:
        with pytest.raises(ValueError):
            truncate_text("abcdef", 3)
