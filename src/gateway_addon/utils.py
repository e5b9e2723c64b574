"""Small helpers shared by the router and the domain base classes."""

from __future__ import annotations

import asyncio
import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Coroutine

logger = logging.getLogger(__name__)


def timestamp() -> str:
    """Current UTC time as ISO-8601 with seconds precision, e.g. ``2024-05-01T12:00:00+00:00``."""
    return datetime.now(UTC).replace(microsecond=0).isoformat()


def spawn_background(
    coro: Coroutine[Any, Any, Any],
    tasks: set[asyncio.Task[Any]],
    *,
    name: str,
) -> asyncio.Task[Any]:
    """Schedule *coro* on the running loop, keep a reference in *tasks*, log failures."""
    task = asyncio.get_running_loop().create_task(coro, name=name)
    tasks.add(task)
    task.add_done_callback(lambda t: _finish_background(t, tasks))
    return task


def _finish_background(task: asyncio.Task[Any], tasks: set[asyncio.Task[Any]]) -> None:
    tasks.discard(task)
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.error("Background task %s failed", task.get_name(), exc_info=exc)


def drop_none(values: dict[str, Any]) -> dict[str, Any]:
    """Copy of *values* without ``None`` entries."""
    return {key: value for key, value in values.items() if value is not None}


__all__ = ["drop_none", "spawn_background", "timestamp"]
