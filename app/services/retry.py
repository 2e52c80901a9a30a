"""
Bounded exponential-backoff retries for image and upstream calls.

Delay before retry n is base_delay * 2 ** (n - 1). Classification:

- 404 aborts at once with NotFoundError; a missing resource stays missing.
- 429 is retried; it is the only retryable 4xx.
- Any other 4xx aborts at once.
- 5xx, timeouts and transport errors are retried.

Every call starts a fresh budget; there is no state shared across calls.
When the budget runs out the last error is re-raised.
"""
import asyncio
import logging
from typing import Awaitable, Callable, Optional, TypeVar

import httpx

from app.core.errors import NotFoundError, UpstreamError

logger = logging.getLogger(__name__)

T = TypeVar("T")


def status_of(exc: BaseException) -> Optional[int]:
    """HTTP status carried by an error, if any."""
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code
    if isinstance(exc, UpstreamError):
        return exc.status_code
    return None


def is_retryable(exc: BaseException) -> bool:
    status = status_of(exc)
    if status is not None:
        return status == 429 or status >= 500
    if isinstance(exc, UpstreamError):
        return True
    return isinstance(exc, httpx.TransportError)


def backoff_delay(attempt: int, base_delay: float) -> float:
    return base_delay * 2 ** (attempt - 1)


def describe(exc: BaseException) -> str:
    """Short error text that never includes the request URL."""
    status = status_of(exc)
    if status is not None:
        return f"HTTP {status}"
    return type(exc).__name__


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    *,
    attempts: int,
    base_delay: float,
    label: str,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """Run operation, retrying per the classification above."""
    attempts = max(1, attempts)
    for attempt in range(1, attempts + 1):
        try:
            return await operation()
        except NotFoundError:
            raise
        except Exception as exc:
            if status_of(exc) == 404:
                raise NotFoundError(f"{label}: not found") from exc
            if not is_retryable(exc) or attempt == attempts:
                raise
            wait = backoff_delay(attempt, base_delay)
            logger.warning(
                "%s: %s, retrying in %.1fs (attempt %d/%d)",
                label, describe(exc), wait, attempt, attempts,
            )
            await sleep(wait)

    raise UpstreamError(f"{label}: retries exhausted")
