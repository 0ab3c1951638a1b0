"""
Cancellation signal — threads a platform's request lifecycle into backend calls.

The platform (or a test) calls cancel(); every pending backend call awaiting
through run_cancellable() stops waiting and raises Cancelled.
"""

import asyncio
from typing import Awaitable, Optional, TypeVar

from buildshelf.errors.exceptions import Cancelled

T = TypeVar("T")


class CancelSignal:
    """One-shot cancellation flag that async code can wait on."""

    def __init__(self):
        self._event = asyncio.Event()
        self.reason: str = ""

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self, reason: str = "Request cancelled") -> None:
        if not self._event.is_set():
            self.reason = reason
            self._event.set()

    async def wait(self) -> None:
        await self._event.wait()

    def raise_if_cancelled(self) -> None:
        if self.cancelled:
            raise Cancelled(self.reason)


async def run_cancellable(aw: Awaitable[T], signal: Optional[CancelSignal]) -> T:
    """
    Await `aw`, aborting early if `signal` fires first.

    Args:
        aw: The operation (typically asyncio.to_thread(...) around an SDK call)
        signal: Cancellation signal, or None to just await the operation

    Raises:
        Cancelled: If the signal fired before or while the operation ran
    """
    if signal is None:
        return await aw

    if signal.cancelled:
        if asyncio.iscoroutine(aw):
            aw.close()
        signal.raise_if_cancelled()

    op = asyncio.ensure_future(aw)
    waiter = asyncio.ensure_future(signal.wait())
    try:
        done, _ = await asyncio.wait({op, waiter}, return_when=asyncio.FIRST_COMPLETED)
    except BaseException:
        op.cancel()
        waiter.cancel()
        raise

    if op in done:
        waiter.cancel()
        return op.result()

    op.cancel()
    raise Cancelled(signal.reason)
