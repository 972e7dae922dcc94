"""Scheduler — the suspension points a job body may use.

The engine never sleeps or polls on its own; it asks a ``Scheduler``. The
default implementation drives suspension through the running ``asyncio``
event loop. A host with its own tick source (a game loop, a GUI loop, a test
clock) supplies its own implementation of the protocol.

Both primitives report their result as an :class:`~jobspine.core.outcome.Outcome`
instead of raising:

=================  ===========  ===========  ============
Primitive          SUCCESS      TIMEOUT      CANCELLED
=================  ===========  ===========  ============
``sleep``          elapsed      —            token fired
``wait_until``     predicate    bound hit    token fired
=================  ===========  ===========  ============
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from typing import Protocol, runtime_checkable

from jobspine.core.cancellation import CancellationToken
from jobspine.core.outcome import Outcome


@runtime_checkable
class Scheduler(Protocol):
    """Main-loop capability consumed by the engine."""

    async def sleep(self, seconds: float, token: CancellationToken) -> Outcome:
        ...

    async def wait_until(
        self,
        predicate: Callable[[], bool],
        timeout: float | None,
        token: CancellationToken,
    ) -> Outcome:
        ...


class AsyncioScheduler:
    """Scheduler backed by the running ``asyncio`` loop.

    Args:
        poll_interval: Seconds between predicate checks in ``wait_until``.
            Defaults to ``JobSpineSettings.poll_interval``.
    """

    def __init__(self, poll_interval: float | None = None) -> None:
        if poll_interval is None:
            from jobspine.core.settings import get_settings

            poll_interval = get_settings().poll_interval
        if poll_interval <= 0:
            raise ValueError(f"poll_interval must be positive, got {poll_interval}")
        self.poll_interval = poll_interval

    async def sleep(self, seconds: float, token: CancellationToken) -> Outcome:
        if seconds < 0:
            raise ValueError(f"Delay must be non-negative, got {seconds}")
        # A zero delay is still a suspension point: wait(0) yields once.
        cancelled = await token.wait(seconds)
        return Outcome.CANCELLED if cancelled else Outcome.SUCCESS

    async def wait_until(
        self,
        predicate: Callable[[], bool],
        timeout: float | None,
        token: CancellationToken,
    ) -> Outcome:
        if timeout is not None and timeout < 0:
            raise ValueError(f"Timeout must be non-negative, got {timeout}")

        loop_time = asyncio.get_running_loop().time
        deadline = None if timeout is None else loop_time() + timeout

        while True:
            if token.is_cancelled:
                return Outcome.CANCELLED
            if predicate():
                return Outcome.SUCCESS

            interval = self.poll_interval
            if deadline is not None:
                remaining = deadline - loop_time()
                if remaining <= 0:
                    return Outcome.TIMEOUT
                interval = min(interval, remaining)

            if await token.wait(interval):
                return Outcome.CANCELLED

    def __repr__(self) -> str:
        return f"AsyncioScheduler(poll_interval={self.poll_interval})"


__all__ = ["AsyncioScheduler", "Scheduler"]
