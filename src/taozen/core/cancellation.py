"""Cooperative cancellation for graph execution.

CancellationToken enables prompt stopping of in-flight graph executions.
Cancellation is cooperative - the engine cannot terminate a step's
function, it can only stop awaiting it and discard its eventual result.

Typical usage:
1. The graph creates a CancellationToken per run (and a fresh one per retry)
2. The token is passed to every step and every suspend point
3. graph.cancel() calls token.cancel()
4. Awaits wrapped with token.race() / token.sleep() raise StepCancelledError
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from taozen.core.errors import StepCancelledError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CancellationToken:
    """Token for cooperative cancellation.

    Example:
        >>> token = CancellationToken()
        >>>
        >>> async def work():
        ...     await token.sleep(5)  # raises StepCancelledError on cancel
        >>>
        >>> task = asyncio.create_task(work())
        >>> token.cancel()
        >>>
        >>> try:
        ...     await task
        ... except StepCancelledError:
        ...     print("Execution was cancelled")
    """

    def __init__(self) -> None:
        self._cancelled = False
        self._event = asyncio.Event()
        self._callbacks: list[Callable[[], Any]] = []

    def cancel(self) -> None:
        """Request cancellation.

        Sets the cancelled flag, signals any waiters and runs registered
        callbacks once. Safe to call multiple times.
        """
        if self._cancelled:
            return
        self._cancelled = True
        self._event.set()

        callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            try:
                callback()
            except Exception:
                logger.exception("cancellation callback failed")

    @property
    def is_cancelled(self) -> bool:
        """Check if cancellation was requested.

        Returns:
            True if cancel() has been called.
        """
        return self._cancelled

    def check(self) -> None:
        """Raise StepCancelledError if cancelled.

        Raises:
            StepCancelledError: If cancellation was requested.
        """
        if self._cancelled:
            raise StepCancelledError()

    def on_cancel(self, callback: Callable[[], Any]) -> Callable[[], None]:
        """Register a callback to run when the token fires.

        If the token already fired, the callback runs immediately.

        Args:
            callback: Zero-argument callable.

        Returns:
            Function that unregisters the callback.
        """
        if self._cancelled:
            callback()
            return lambda: None

        self._callbacks.append(callback)

        def unregister() -> None:
            if callback in self._callbacks:
                self._callbacks.remove(callback)

        return unregister

    async def wait(self) -> None:
        """Wait until cancelled."""
        await self._event.wait()

    async def race(self, awaitable: Awaitable[T]) -> T:
        """Await an awaitable, giving up as soon as the token fires.

        The awaitable runs as its own task; if the token fires first the
        task is cancelled and its eventual result discarded.

        Args:
            awaitable: Coroutine or future to await.

        Returns:
            The awaitable's result.

        Raises:
            StepCancelledError: If the token fired first.
        """
        if self._cancelled:
            if inspect.iscoroutine(awaitable):
                awaitable.close()
            raise StepCancelledError()

        work = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(self._event.wait())
        try:
            done, _ = await asyncio.wait({work, waiter}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            waiter.cancel()
            if not work.done():
                work.cancel()

        if work in done:
            return work.result()
        raise StepCancelledError()

    async def sleep(self, seconds: float) -> None:
        """Sleep for the given duration unless cancelled first.

        Raises:
            StepCancelledError: If the token fires during the sleep.
        """
        await self.race(asyncio.sleep(seconds))

    def reset(self) -> None:
        """Reset the token for reuse.

        Clears the cancelled flag, event and callbacks. Graphs create a
        new token for each retry instead.
        """
        self._cancelled = False
        self._event.clear()
        self._callbacks.clear()
