"""RunContext — cancellation token and deadline handed to every suspending call."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any

from src.errors import Cancelled

if TYPE_CHECKING:
    from collections.abc import Awaitable


class RunContext:
    """Cooperative cancellation plus an optional deadline.

    A runner owns one context for its whole life; cancelling it wakes the
    runner's sleep and aborts any call currently wrapped in :meth:`guard`.

    Args:
        timeout: Seconds from now until the deadline (None → no deadline).
    """

    def __init__(self, timeout: float | None = None) -> None:
        self._event = asyncio.Event()
        self._deadline: float | None = None
        if timeout is not None:
            self._deadline = asyncio.get_running_loop().time() + timeout

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        """Fire the token. Idempotent."""
        self._event.set()

    def remaining(self) -> float | None:
        """Seconds left until the deadline, or None when unbounded."""
        if self._deadline is None:
            return None
        return max(0.0, self._deadline - asyncio.get_running_loop().time())

    async def guard(self, awaitable: Awaitable[Any]) -> Any:
        """Await *awaitable*, aborting it if the token fires or the deadline passes.

        Raises:
            Cancelled: the token fired first.
            TimeoutError: the deadline passed first.
        """
        task = asyncio.ensure_future(awaitable)
        if self.cancelled:
            task.cancel()
            raise Cancelled("run cancelled")

        waiter = asyncio.ensure_future(self._event.wait())
        try:
            done, _ = await asyncio.wait(
                {task, waiter},
                timeout=self.remaining(),
                return_when=asyncio.FIRST_COMPLETED,
            )
        except asyncio.CancelledError:
            task.cancel()
            waiter.cancel()
            raise

        waiter.cancel()
        if task in done:
            return task.result()

        task.cancel()
        if self.cancelled:
            raise Cancelled("run cancelled")
        raise TimeoutError("deadline exceeded")

    async def sleep(self, seconds: float) -> bool:
        """Sleep up to *seconds*. Returns False if the token fired first."""
        if self.cancelled:
            return False
        try:
            await asyncio.wait_for(self._event.wait(), timeout=max(0.0, seconds))
        except TimeoutError:
            return True
        return False
