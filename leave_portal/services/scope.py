"""
Request Scope.

Ties backend calls to the lifetime of the browser request that started
them, and keeps a form from being submitted twice while the first
submission is still in flight.

Usage:
    scope = RequestScope()
    backend = BackendClient(http_client, tokens, scope=scope)
    ...
    scope.close()  # browser went away: in-flight calls are cancelled

    async with guard.hold(f"{user.id}:apply-leave"):
        await workflow.apply(draft)
"""

import asyncio
import logging
from collections.abc import AsyncIterator, Awaitable, Coroutine
from contextlib import asynccontextmanager
from typing import Any, Optional, TypeVar

from leave_portal.core.exceptions import DuplicateSubmissionError, ScopeClosedError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RequestScope:
    """
    Cancellation boundary for the backend calls of one browser request.

    Once closed, calls still running are cancelled and their results are
    discarded; new calls raise ScopeClosedError.
    """

    def __init__(self, name: str = "request") -> None:
        self.name = name
        self._closed = False
        self._tasks: set[asyncio.Task[Any]] = set()

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def in_flight(self) -> int:
        return len(self._tasks)

    async def run(self, awaitable: Awaitable[T]) -> T:
        """
        Await a call inside the scope.

        Raises:
            ScopeClosedError: The scope was closed before or during the call.
        """
        if self._closed:
            if isinstance(awaitable, Coroutine):
                awaitable.close()
            raise ScopeClosedError()

        task = asyncio.ensure_future(awaitable)
        self._tasks.add(task)
        try:
            return await task
        except asyncio.CancelledError:
            current = asyncio.current_task()
            if self._closed and current is not None and not current.cancelling():
                raise ScopeClosedError() from None
            raise
        finally:
            self._tasks.discard(task)

    def close(self) -> None:
        """Close the scope and cancel everything still in flight."""
        if self._closed:
            return
        self._closed = True
        if self._tasks:
            logger.info(f"Scope {self.name} closed; cancelling {len(self._tasks)} backend call(s)")
        for task in list(self._tasks):
            task.cancel()

    async def watch(self, is_disconnected, poll_interval: float = 0.5) -> None:
        """
        Close the scope as soon as ``is_disconnected()`` reports True.

        Meant to run as a background task next to the request handler.
        """
        while not self._closed:
            if await is_disconnected():
                logger.info(f"Client disconnected during {self.name}")
                self.close()
                return
            await asyncio.sleep(poll_interval)


class SubmissionGuard:
    """
    Rejects a submission while an identical one is outstanding.

    Keys identify (session, form) pairs. One guard is shared by the
    whole process; see get_submission_guard().
    """

    def __init__(self) -> None:
        self._in_flight: set[str] = set()

    def is_busy(self, key: str) -> bool:
        return key in self._in_flight

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        """
        Hold ``key`` for the duration of the block.

        Raises:
            DuplicateSubmissionError: The same key is already held.
        """
        if key in self._in_flight:
            logger.info(f"Duplicate submission rejected: {key}")
            raise DuplicateSubmissionError()
        self._in_flight.add(key)
        try:
            yield
        finally:
            self._in_flight.discard(key)


_submission_guard: Optional[SubmissionGuard] = None


def get_submission_guard() -> SubmissionGuard:
    """Get the process-wide SubmissionGuard."""
    global _submission_guard
    if _submission_guard is None:
        _submission_guard = SubmissionGuard()
    return _submission_guard
