"""
Tests for RequestScope and SubmissionGuard.
"""

import asyncio

import pytest

from leave_portal.core.exceptions import DuplicateSubmissionError, ScopeClosedError
from leave_portal.services.scope import RequestScope, SubmissionGuard, get_submission_guard


class TestRequestScope:
    """Tests for cancellation of in-flight calls."""

    @pytest.mark.asyncio
    async def test_run_returns_result(self):
        scope = RequestScope()

        async def work():
            return 42

        assert await scope.run(work()) == 42
        assert scope.in_flight == 0

    @pytest.mark.asyncio
    async def test_closed_scope_rejects_new_work(self):
        scope = RequestScope()
        scope.close()
        started = False

        async def work():
            nonlocal started
            started = True

        with pytest.raises(ScopeClosedError):
            await scope.run(work())

        assert started is False

    @pytest.mark.asyncio
    async def test_close_cancels_in_flight(self):
        scope = RequestScope("dashboard")
        entered = asyncio.Event()
        finished = False

        async def slow():
            nonlocal finished
            entered.set()
            await asyncio.sleep(5)
            finished = True

        task = asyncio.create_task(scope.run(slow()))
        await entered.wait()
        assert scope.in_flight == 1

        scope.close()

        with pytest.raises(ScopeClosedError):
            await task
        assert finished is False
        assert scope.in_flight == 0

    @pytest.mark.asyncio
    async def test_outer_cancellation_propagates(self):
        """Cancelling the caller is not reported as a closed scope."""
        scope = RequestScope()
        entered = asyncio.Event()

        async def slow():
            entered.set()
            await asyncio.sleep(5)

        task = asyncio.create_task(scope.run(slow()))
        await entered.wait()
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task

    @pytest.mark.asyncio
    async def test_watch_closes_on_disconnect(self):
        scope = RequestScope()
        polls = 0

        async def is_disconnected():
            nonlocal polls
            polls += 1
            return polls >= 2

        await scope.watch(is_disconnected, poll_interval=0)

        assert scope.closed
        assert polls == 2

    def test_close_is_idempotent(self):
        scope = RequestScope()
        scope.close()
        scope.close()

        assert scope.closed


class TestSubmissionGuard:
    """Tests for duplicate submission protection."""

    @pytest.mark.asyncio
    async def test_duplicate_rejected_while_held(self):
        guard = SubmissionGuard()

        async with guard.hold("u-1:apply-leave"):
            assert guard.is_busy("u-1:apply-leave")
            with pytest.raises(DuplicateSubmissionError):
                async with guard.hold("u-1:apply-leave"):
                    pass
            async with guard.hold("u-2:apply-leave"):
                pass

        assert not guard.is_busy("u-1:apply-leave")

    @pytest.mark.asyncio
    async def test_released_after_error(self):
        guard = SubmissionGuard()

        with pytest.raises(RuntimeError):
            async with guard.hold("key"):
                raise RuntimeError("backend down")

        assert not guard.is_busy("key")

    def test_process_wide_guard(self):
        assert get_submission_guard() is get_submission_guard()
