"""Minimum-interval pacing for outbound requests."""

from __future__ import annotations

import asyncio
import time
from logging import getLogger
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable
    from types import TracebackType

log = getLogger(__name__)


class RequestPacer:
    """Keep at least ``min_interval`` seconds between the start of two requests.

    One pacer is shared by every physical call a client makes. The clock and
    the sleep function are injectable so tests can run without waiting.

    Usage::

        async with pacer:
            await client.get(...)
    """

    def __init__(
        self,
        min_interval: float,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        if min_interval < 0:
            raise ValueError("min_interval must be non-negative")
        self.min_interval = min_interval
        self._clock = clock
        self._sleep = sleep
        self._last_call: float | None = None

    @property
    def last_call(self) -> float | None:
        return self._last_call

    async def wait(self) -> float:
        """Suspend until the interval has passed and claim the slot.

        Returns the number of seconds slept.
        """

        waited = 0.0
        if self._last_call is not None:
            remaining = self.min_interval - (self._clock() - self._last_call)
            if remaining > 0:
                log.debug("Pacing request for %.3fs", remaining)
                await self._sleep(remaining)
                waited = remaining
        self._last_call = self._clock()
        return waited

    async def __aenter__(self) -> RequestPacer:
        await self.wait()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        return None
