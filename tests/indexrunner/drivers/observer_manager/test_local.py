"""Tests for LocalObserverManager."""

import asyncio
import threading

import pytest

from indexrunner.drivers.observer_manager import LocalObserverManager
from indexrunner.kernel.exceptions import ValidationError
from indexrunner.kernel.orchestration.events import (
    JOB_LIFECYCLE_EVENTS,
    JobCompleted,
    JobStarted,
    RunStarted,
)


class RecordingErrorHandler:
    def __init__(self):
        self.errors = []

    def handle_error(self, error, context):
        self.errors.append((error, context))


@pytest.fixture
def error_handler():
    return RecordingErrorHandler()


@pytest.fixture
def manager(error_handler):
    manager = LocalObserverManager(observer_timeout=0.5, error_handler=error_handler)
    yield manager
    asyncio.run(manager.close())


class TestRegistration:
    """Test registering and unregistering observers."""

    def test_register_returns_generated_id(self):
        manager = LocalObserverManager()

        observer_id = manager.register(lambda event: None)

        assert observer_id
        assert len(manager) == 1

    def test_duplicate_id_is_rejected(self):
        manager = LocalObserverManager()
        manager.register(lambda event: None, observer_id="one")

        with pytest.raises(ValueError, match="already registered"):
            manager.register(lambda event: None, observer_id="one")

    def test_invalid_event_types_are_rejected(self):
        manager = LocalObserverManager()

        with pytest.raises(ValidationError):
            manager.register(lambda event: None, event_types=[str])

    def test_non_callable_handler_is_rejected(self):
        with pytest.raises(TypeError):
            LocalObserverManager().register(42)

    def test_unregister(self):
        manager = LocalObserverManager()
        observer_id = manager.register(lambda event: None)

        assert manager.unregister(observer_id) is True
        assert manager.unregister(observer_id) is False
        assert len(manager) == 0

    def test_clear(self):
        manager = LocalObserverManager()
        manager.register(lambda event: None)
        manager.register(lambda event: None)

        manager.clear()

        assert len(manager) == 0


class TestNotify:
    """Test event delivery."""

    @pytest.mark.asyncio
    async def test_sync_and_async_observers_receive_events(self, manager):
        sync_seen, async_seen = [], []

        async def async_observer(event):
            async_seen.append(event)

        manager.register(sync_seen.append)
        manager.register(async_observer)

        await manager.notify(JobStarted(job_id="a"))

        assert [e.job_id for e in sync_seen] == ["a"]
        assert [e.job_id for e in async_seen] == ["a"]

    @pytest.mark.asyncio
    async def test_sync_observers_run_off_the_loop_thread(self, manager):
        threads = []
        manager.register(lambda event: threads.append(threading.current_thread()))

        await manager.notify(JobStarted(job_id="a"))

        assert threads[0] is not threading.main_thread()

    @pytest.mark.asyncio
    async def test_event_type_filtering(self, manager):
        seen = []
        manager.register(seen.append, event_types=JOB_LIFECYCLE_EVENTS)

        await manager.notify(RunStarted(run_id="r", jobs_total=1, max_workers=1))
        await manager.notify(JobCompleted(job_id="a", duration_ms=1))

        assert [type(event) for event in seen] == [JobCompleted]

    @pytest.mark.asyncio
    async def test_failing_observer_is_isolated(self, manager, error_handler):
        seen = []

        def broken(event):
            raise RuntimeError("observer bug")

        manager.register(broken, observer_id="broken")
        manager.register(seen.append)

        await manager.notify(JobStarted(job_id="a"))

        assert len(seen) == 1
        ((error, context),) = error_handler.errors
        assert isinstance(error, RuntimeError)
        assert context["event_type"] == "JobStarted"
        assert context["is_critical"] is False

    @pytest.mark.asyncio
    async def test_slow_observer_times_out(self, manager, error_handler):
        async def slow(event):
            await asyncio.sleep(5)

        manager.register(slow, timeout=0.05)

        await manager.notify(JobStarted(job_id="a"))

        ((error, _),) = error_handler.errors
        assert isinstance(error, TimeoutError)

    @pytest.mark.asyncio
    async def test_per_observer_concurrency_limit(self, manager):
        active = 0
        peak = 0

        async def observer(event):
            nonlocal active, peak
            active += 1
            peak = max(peak, active)
            await asyncio.sleep(0.01)
            active -= 1

        manager.register(observer, max_concurrency=1)

        await asyncio.gather(*(manager.notify(JobStarted(job_id=str(i))) for i in range(5)))

        assert peak == 1

    @pytest.mark.asyncio
    async def test_context_manager_closes(self):
        async with LocalObserverManager() as manager:
            manager.register(lambda event: None)

        assert len(manager) == 0


class TestNormalizeEventTypes:
    def test_validation_error_from_helper(self):
        from indexrunner.drivers.observer_manager.local import normalize_event_types

        assert normalize_event_types(None) is None
        assert normalize_event_types(JobStarted) == {JobStarted}
        with pytest.raises(ValidationError):
            normalize_event_types(42)
