"""
Single-flight: concurrent callers of do() share one in-progress call instead of starting
their own. The pending marker is cleared in the task's own finally block, so it is reset
on success, failure and cancellation alike.
"""
import asyncio
from collections.abc import Awaitable, Callable
from typing import Generic, TypeVar

T = TypeVar("T")


def _retrieve_outcome(task: asyncio.Future) -> None:
    # Waiters may all be cancelled; a failure still counts as retrieved
    if not task.cancelled():
        task.exception()


class SingleFlight(Generic[T]):
    def __init__(self) -> None:
        self._lock = asyncio.Lock()
        self._pending: asyncio.Task[T] | None = None

    @property
    def in_flight(self) -> bool:
        return self._pending is not None

    async def do(self, fn: Callable[[], Awaitable[T]]) -> T:
        """Run fn unless a call is already pending; either way await the shared outcome."""
        async with self._lock:
            if self._pending is None:
                self._pending = asyncio.ensure_future(self._run(fn))
                self._pending.add_done_callback(_retrieve_outcome)
            pending = self._pending
        # shield: a cancelled waiter must not cancel the call other waiters depend on
        return await asyncio.shield(pending)

    async def _run(self, fn: Callable[[], Awaitable[T]]) -> T:
        try:
            return await fn()
        finally:
            self._pending = None
