"""
Cooperative cancellation handles passed explicitly from the scheduler down to each probe.
"""
import asyncio
import logging
from contextlib import contextmanager
from typing import Awaitable, Iterator, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEADLINE_EXCEEDED = "deadline exceeded"


class OperationCancelled(Exception):
    """Raised by CancellationToken.guard when the token fires before the operation completes."""

    def __init__(self, reason: Optional[str]):
        super().__init__(reason or "cancelled")
        self.reason = reason


class CancellationToken:
    """
    A one-shot signal that can be fired once and observed by any number of waiters.

    Child tokens derived with ``with_timeout`` fire when their parent fires or when
    their own deadline passes, whichever happens first.
    """

    def __init__(self):
        self._event = asyncio.Event()
        self._children: set["CancellationToken"] = set()
        self._reason: Optional[str] = None

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> Optional[str]:
        return self._reason

    def cancel(self, reason: str = "cancelled"):
        if self._event.is_set():
            return
        self._reason = reason
        self._event.set()
        logger.debug(f"Cancellation token fired: {reason}")
        for child in list(self._children):
            child.cancel(reason)

    async def wait(self):
        await self._event.wait()

    @contextmanager
    def with_timeout(self, timeout: float) -> Iterator["CancellationToken"]:
        """
        Derive a child token bounded to ``timeout`` seconds.

        The child is detached from this token and its timer released when the block exits.
        """
        child = CancellationToken()
        if self.cancelled:
            child.cancel(self._reason)
        self._children.add(child)
        handle = asyncio.get_running_loop().call_later(timeout, child.cancel, DEADLINE_EXCEEDED)
        try:
            yield child
        finally:
            handle.cancel()
            self._children.discard(child)

    async def guard(self, awaitable: Awaitable[T]) -> T:
        """
        Await ``awaitable`` unless this token fires first.

        Args:
            awaitable: The operation to run.

        Returns:
            The result of the operation.

        Raises:
            OperationCancelled: If the token fired before the operation finished. The
                operation is cancelled and awaited so nothing is left running.
        """
        operation = asyncio.ensure_future(awaitable)
        if self.cancelled:
            operation.cancel()
            await asyncio.gather(operation, return_exceptions=True)
            raise OperationCancelled(self._reason)

        waiter = asyncio.ensure_future(self._event.wait())
        try:
            await asyncio.wait({operation, waiter}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            waiter.cancel()
            if not operation.done():
                operation.cancel()
                await asyncio.gather(operation, return_exceptions=True)

        if operation.cancelled():
            raise OperationCancelled(self._reason)
        return operation.result()
