"""Cancellation and deadline token passed through a scan."""

from __future__ import annotations

import asyncio
import contextlib
import time
from collections.abc import Awaitable
from typing import TypeVar

from depgraph.exceptions import ScanCancelledError

T = TypeVar("T")


class ScanContext:
    """Caller-owned token carrying cancellation and an optional deadline.

    Every remote call made on behalf of a scan is run through :meth:`run`,
    which abandons the call as soon as the token is cancelled or the
    deadline passes.
    """

    def __init__(self, *, timeout: float | None = None) -> None:
        self._event = asyncio.Event()
        self._deadline = time.monotonic() + timeout if timeout is not None else None

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def expired(self) -> bool:
        return self._deadline is not None and time.monotonic() >= self._deadline

    def remaining(self) -> float | None:
        """Seconds until the deadline, ``None`` when there is none."""
        if self._deadline is None:
            return None
        return max(self._deadline - time.monotonic(), 0.0)

    def check(self) -> None:
        """Raise :class:`ScanCancelledError` if the scan should stop."""
        if self.cancelled:
            raise ScanCancelledError("scan cancelled")
        if self.expired:
            raise ScanCancelledError("scan deadline exceeded")

    async def run(self, aw: Awaitable[T]) -> T:
        """Await *aw* unless cancellation or the deadline wins first."""
        work = asyncio.ensure_future(aw)
        try:
            self.check()
        except ScanCancelledError:
            work.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await work
            raise

        waiter = asyncio.ensure_future(self._event.wait())
        try:
            done, _ = await asyncio.wait(
                {work, waiter},
                timeout=self.remaining(),
                return_when=asyncio.FIRST_COMPLETED,
            )
        finally:
            waiter.cancel()

        if work in done:
            return work.result()

        work.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await work
        self.check()
        raise ScanCancelledError("scan deadline exceeded")


def background() -> ScanContext:
    """A context that is never cancelled and has no deadline."""
    return ScanContext()
