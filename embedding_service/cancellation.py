"""Cooperative cancellation for embedding work.

A ``CancellationToken`` is created by whoever owns an operation (an HTTP
request, a batch job) and handed down to the pipeline, the failover governor
and each backend call. Those suspension points race their work against the
token so a cancel is observed promptly instead of after the backend answers.
"""

import asyncio
from contextlib import suppress
from typing import Awaitable, Optional, TypeVar

from .exceptions import OperationCancelledError

T = TypeVar("T")


class CancellationToken:
    """One-shot cancellation signal."""

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self.reason: Optional[str] = None
        # set when a newer run for the same work replaces this one
        self.superseded = False

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self, reason: str = "Cancelled by caller") -> None:
        if not self._event.is_set():
            self.reason = reason
            self._event.set()

    def supersede(self, reason: str = "Superseded by a newer batch") -> None:
        """Cancel, marking the owner as replaced rather than stopped."""
        self.superseded = True
        self.cancel(reason)

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise OperationCancelledError(self.reason or "Cancelled")

    async def sleep(self, delay: float) -> None:
        """Sleep for ``delay`` seconds unless cancelled first."""
        self.raise_if_cancelled()
        if delay <= 0:
            return
        try:
            await asyncio.wait_for(self._event.wait(), timeout=delay)
        except asyncio.TimeoutError:
            return
        self.raise_if_cancelled()

    async def run(self, awaitable: Awaitable[T]) -> T:
        """Await ``awaitable``, abandoning it if the token fires first."""
        if self._event.is_set():
            if asyncio.iscoroutine(awaitable):
                awaitable.close()
            self.raise_if_cancelled()
        work = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(self._event.wait())
        try:
            done, _ = await asyncio.wait({work, waiter}, return_when=asyncio.FIRST_COMPLETED)
        except BaseException:
            work.cancel()
            waiter.cancel()
            raise

        if work in done:
            waiter.cancel()
            return work.result()

        work.cancel()
        with suppress(asyncio.CancelledError):
            await work
        raise OperationCancelledError(self.reason or "Cancelled")
