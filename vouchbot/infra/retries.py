"""Simple exponential backoff helper for platform calls."""
from __future__ import annotations

import asyncio
import random
from typing import Awaitable, Callable, TypeVar

T = TypeVar("T")

RETRY_STATUSES = {408, 409}


def _status_of(exc: BaseException) -> int | None:
    # discord.HTTPException carries ``status``; requests-style errors carry
    # ``response.status_code``.
    status = getattr(exc, "status", None)
    if isinstance(status, int):
        return status
    return getattr(getattr(exc, "response", None), "status_code", None)


def is_transient(exc: BaseException) -> bool:
    """Return True for HTTP failures worth retrying (408, 409, 5xx)."""
    status = _status_of(exc)
    return status in RETRY_STATUSES or bool(status and 500 <= status < 600)


async def async_call_with_backoff(
    fn: Callable[[], Awaitable[T]],
    retries: int = 3,
    base: float = 0.5,
    max_delay: float = 8.0,
) -> T:
    """Await *fn()* with exponential backoff on transient HTTP errors.

    429s are not retried here; discord.py already honours Retry-After.
    """
    for attempt in range(retries + 1):
        try:
            return await fn()
        except Exception as exc:
            if not is_transient(exc):
                raise
            if attempt == retries:
                raise
            delay = min(max_delay, base * (2 ** attempt))
            if delay:
                delay += random.uniform(0, 0.1)
            await asyncio.sleep(delay)
    # Should be unreachable because either fn() succeeds or an exception is raised.
    raise RuntimeError("async_call_with_backoff reached an unreachable state")
