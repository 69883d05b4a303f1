"""Injectable time source for the interpreter and scheduler.

Production code uses SystemClock. Tests pass a fake clock whose sleep()
advances now() so delay actions and scheduler ticks run instantly.
"""

from __future__ import annotations

import asyncio
from datetime import datetime
from typing import Protocol

from storeflow.shared.utils.datetime import utc_now


class IClock(Protocol):
    """Monotonic-enough wall clock plus a sleep primitive."""

    def now(self) -> datetime:
        """Return the current time as timezone-aware UTC."""

    async def sleep(self, seconds: float) -> None:
        """Suspend the caller for the given number of seconds."""


class SystemClock:
    """IClock backed by the system clock and asyncio.sleep."""

    def now(self) -> datetime:
        return utc_now()

    async def sleep(self, seconds: float) -> None:
        await asyncio.sleep(max(seconds, 0))
