"""
Soft per-request deadline.

The wrapped work runs as a shielded task. When the deadline passes the
caller gets DeadlineExceeded and answers with a fallback, while the task
keeps running to completion so downloads still prime the cache. Only the
caller ever writes the response, so a request gets exactly one.
"""
import asyncio
import logging
from typing import Awaitable, TypeVar

from app.core.errors import DeadlineExceeded

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Strong references to detached tasks until they finish
_detached: set[asyncio.Task] = set()


def _finish_detached(task: asyncio.Task) -> None:
    _detached.discard(task)
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.warning("detached resolution failed: %s", type(exc).__name__)
    else:
        logger.info("detached resolution finished after the deadline")


async def run_with_deadline(work: Awaitable[T], seconds: float, label: str) -> T:
    task = asyncio.ensure_future(work)
    try:
        return await asyncio.wait_for(asyncio.shield(task), timeout=seconds)
    except asyncio.TimeoutError:
        logger.warning("%s exceeded soft deadline of %.1fs; continuing in background", label, seconds)
        _detached.add(task)
        task.add_done_callback(_finish_detached)
        raise DeadlineExceeded(f"{label} exceeded {seconds:.1f}s") from None
