"""Tests for JobLifecycleManager component."""

import asyncio

import pytest

from indexrunner.kernel.exceptions import OrchestratorInternalError
from indexrunner.kernel.orchestration.components.lifecycle_manager import (
    DisposeTimeoutError,
    JobLifecycleManager,
)


class ClosableJob:
    """Job exposing only ``close``."""

    job_id = "closable"

    def __init__(self):
        self.closed = 0

    def close(self):
        self.closed += 1


class SlowAsyncJob:
    job_id = "slow"

    async def dispose(self):
        await asyncio.sleep(5)


class BareJob:
    job_id = "bare"


class TestJobLifecycleManager:
    """Test exactly-once disposal."""

    @pytest.mark.asyncio
    async def test_dispose_calls_job_once(self, make_job):
        job = make_job("a")
        lifecycle = JobLifecycleManager()

        error = await lifecycle.dispose(job)

        assert error is None
        assert job.dispose_calls == 1
        assert lifecycle.is_disposed("a")
        assert lifecycle.disposed_count == 1

    @pytest.mark.asyncio
    async def test_second_dispose_is_an_invariant_violation(self, make_job):
        job = make_job("a")
        lifecycle = JobLifecycleManager()
        await lifecycle.dispose(job)

        with pytest.raises(OrchestratorInternalError, match="disposed twice"):
            await lifecycle.dispose(job)

        assert job.dispose_calls == 1

    @pytest.mark.asyncio
    async def test_dispose_error_is_returned_and_recorded(self, make_job):
        job = make_job("a", dispose_error=OSError("locked"))
        lifecycle = JobLifecycleManager()

        error = await lifecycle.dispose(job)

        assert isinstance(error, OSError)
        assert lifecycle.failures == [("a", error)]
        assert lifecycle.is_disposed("a")

    @pytest.mark.asyncio
    async def test_coroutine_dispose_is_awaited(self, make_async_job):
        job = make_async_job("a")
        lifecycle = JobLifecycleManager()

        await lifecycle.dispose(job)

        assert job.dispose_calls == 1

    @pytest.mark.asyncio
    async def test_close_is_used_when_dispose_is_missing(self):
        job = ClosableJob()

        await JobLifecycleManager().dispose(job)

        assert job.closed == 1

    @pytest.mark.asyncio
    async def test_job_without_dispose_method_is_marked_disposed(self):
        lifecycle = JobLifecycleManager()

        assert await lifecycle.dispose(BareJob()) is None
        assert lifecycle.is_disposed("bare")

    @pytest.mark.asyncio
    async def test_slow_dispose_times_out(self):
        lifecycle = JobLifecycleManager(dispose_grace_period=0.05)

        error = await lifecycle.dispose(SlowAsyncJob())

        assert isinstance(error, DisposeTimeoutError)
        assert isinstance(error, TimeoutError)
        assert error.job_id == "slow"
        assert lifecycle.failures[0][0] == "slow"
