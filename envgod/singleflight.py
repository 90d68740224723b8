# envgod/singleflight.py
"""
Single-Flight Gate

Coalesces concurrent load requests onto one in-flight computation. The gate is
not keyed: while any load is running, every new caller joins it, even one with
a different configuration. This bounds outbound traffic during startup bursts
at the cost of serializing unrelated configurations.
"""
import asyncio
from typing import Awaitable, Callable, TypeVar

T = TypeVar("T")


class SingleFlight:
    """
    Holds at most one pending asyncio task.

    The handle is cleared from inside the task, before its result is
    delivered, so a caller arriving after completion always starts fresh.
    """

    def __init__(self):
        self._pending: asyncio.Task | None = None

    @property
    def pending(self) -> asyncio.Task | None:
        return self._pending

    def run(self, factory: Callable[[], Awaitable[T]]) -> "asyncio.Task[T]":
        """
        Return the in-flight task, or start `factory()` as the new one.

        Args:
            factory: Zero-argument callable producing the awaitable to run.

        Returns:
            asyncio.Task: The shared task. Await it through asyncio.shield so
            a cancelled caller does not cancel the other waiters.
        """
        if self._pending is not None:
            return self._pending

        task = asyncio.ensure_future(self._run(factory))
        # Waiters may all have been cancelled; mark the outcome as retrieved
        task.add_done_callback(_retrieve_outcome)
        self._pending = task
        return task

    async def _run(self, factory: Callable[[], Awaitable[T]]) -> T:
        try:
            return await factory()
        finally:
            if self._pending is asyncio.current_task():
                self._pending = None

    def reset(self) -> None:
        """Forget the pending task without cancelling it."""
        self._pending = None


def _retrieve_outcome(task: asyncio.Task) -> None:
    if not task.cancelled():
        task.exception()
