"""Shared utilities for ytposts."""

import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

import structlog


@asynccontextmanager
async def timed_operation(
    name: str,
    log: structlog.stdlib.BoundLogger | None = None,
    **extra: Any,
) -> AsyncIterator[dict[str, Any]]:
    """Time a sweep or fetch and log it as event *name*.

    Usage::

        async with timed_operation("sweep_finished", log=log) as timing:
            await self._sweep(report)
        timing["elapsed_ms"], timing["succeeded"]

    A block that raises is logged at warning level with ``succeeded=False``
    and the exception propagates.

    Yields:
        A dict that holds ``elapsed_ms`` and ``succeeded`` after the block exits.
    """
    start = time.perf_counter()
    timing: dict[str, Any] = {}
    succeeded = False
    try:
        yield timing
        succeeded = True
    finally:
        timing["elapsed_ms"] = round((time.perf_counter() - start) * 1000, 2)
        timing["succeeded"] = succeeded
        if log:
            emit = log.info if succeeded else log.warning
            emit(name, duration_ms=timing["elapsed_ms"], succeeded=succeeded, **extra)


def truncate_text(content: str, max_length: int, marker: str = "...") -> str:
    """Cut *content* so the result, marker included, fits in ``max_length``."""
    if max_length <= len(marker):
        raise ValueError("max_length must be longer than the marker")
    if len(content) <= max_length:
        return content
    return content[: max_length - len(marker)] + marker
