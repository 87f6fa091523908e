"""In-process pacing for outbound platform calls."""
from __future__ import annotations

import asyncio
import time
from typing import Dict


def _now() -> float:
    return time.monotonic()


class Pacer:
    """Keep at least *interval* seconds between calls on the same route.

    Routes are free-form names ("role", "page"). The first call on a route
    never waits.

    Example::

        pacer = Pacer({"role": 0.5, "page": 1.0})
        await pacer.wait("role")
        await member.add_roles(role)
    """

    def __init__(self, intervals: Dict[str, float]):
        self.intervals = dict(intervals)
        self.last_call: Dict[str, float] = {}
        self._locks: Dict[str, asyncio.Lock] = {}

    def _lock(self, route: str) -> asyncio.Lock:
        lock = self._locks.get(route)
        if lock is None:
            lock = self._locks[route] = asyncio.Lock()
        return lock

    def delay_for(self, route: str) -> float:
        """Return how long a call on *route* would have to wait right now."""
        interval = self.intervals.get(route, 0.0)
        last = self.last_call.get(route)
        if not interval or last is None:
            return 0.0
        return max(0.0, last + interval - _now())

    async def wait(self, route: str) -> None:
        """Sleep until *route* may be called again, then claim the slot."""
        async with self._lock(route):
            delay = self.delay_for(route)
            if delay > 0:
                await asyncio.sleep(delay)
            self.last_call[route] = _now()
