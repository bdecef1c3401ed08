from __future__ import annotations
import asyncio
from typing import Awaitable, TypeVar

from unichat.core.errors import RequestCancelledError

T = TypeVar("T")


class CancellationToken:
    """Request-scoped abort signal.

    `guard` races an awaitable against the signal; whichever finishes first
    wins. A cancelled token makes every pending and future `guard` raise
    RequestCancelledError.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        self._event.set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise RequestCancelledError("Request was cancelled")

    async def guard(self, awaitable: Awaitable[T]) -> T:
        task = asyncio.ensure_future(awaitable)
        if self._event.is_set():
            task.cancel()
            await asyncio.wait({task})
            self.raise_if_cancelled()
        waiter = asyncio.ensure_future(self._event.wait())
        try:
            done, _ = await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            task.cancel()
            waiter.cancel()
            raise
        if task in done:
            waiter.cancel()
            return task.result()
        task.cancel()
        # Let the cancelled read unwind before the caller closes the stream
        await asyncio.wait({task})
        raise RequestCancelledError("Request was cancelled")
