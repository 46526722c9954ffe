"""Cooperative cancellation for agent runs."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, TypeVar

from ..errors import RunCancelled

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CancellationToken:
    """
    Cancellation signal shared between a caller and one run.

    The loop checks it at the top of each iteration and before tool
    dispatch; in-flight provider calls are raced against it with ``guard``.
    """

    def __init__(self):
        self._event = asyncio.Event()
        self.reason: str | None = None

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self, reason: str = "cancelled by caller") -> None:
        if not self._event.is_set():
            logger.info(f"Run cancellation requested: {reason}")
            self.reason = reason
            self._event.set()

    def raise_if_cancelled(self) -> None:
        if self.cancelled:
            raise RunCancelled()

    async def guard(self, awaitable: Awaitable[T]) -> T:
        """
        Await ``awaitable`` unless the token fires first.

        Raises:
            RunCancelled: The token fired; the pending call was cancelled
        """
        task = asyncio.ensure_future(awaitable)
        if self.cancelled:
            task.cancel()
            raise RunCancelled()

        waiter = asyncio.ensure_future(self._event.wait())
        try:
            done, _ = await asyncio.wait(
                {task, waiter}, return_when=asyncio.FIRST_COMPLETED
            )
        finally:
            waiter.cancel()
            if not task.done():
                task.cancel()

        if task in done:
            return task.result()

        # Let the cancelled call unwind before reporting
        await asyncio.gather(task, return_exceptions=True)
        raise RunCancelled()
