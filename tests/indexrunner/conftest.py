"""Shared fixtures for indexrunner tests.

Provides scriptable build jobs:
- FakeJob: synchronous job (runs on the orchestrator's thread pool)
- AsyncFakeJob: coroutine job (awaited on the event loop)
- ConcurrencyProbe: records the peak number of simultaneously running jobs
"""

from __future__ import annotations

import asyncio
import threading
import time
from collections.abc import Sequence
from contextlib import nullcontext

import pytest

from indexrunner.compiler.config_loader import clear_config_cache
from indexrunner.kernel.exceptions import JobCancelledError
from indexrunner.kernel.orchestration.events import Event


class ConcurrencyProbe:
    """Context manager counting how many jobs are inside ``run`` at once."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.active = 0
        self.peak = 0

    def __enter__(self) -> ConcurrencyProbe:
        with self._lock:
            self.active += 1
            self.peak = max(self.peak, self.active)
        return self

    def __exit__(self, *exc_info: object) -> None:
        with self._lock:
            self.active -= 1


class FakeJob:
    """Synchronous BuildJob whose behaviour is scripted by constructor flags."""

    def __init__(
        self,
        job_id: str,
        files: Sequence[str] = ("a.txt", "b.txt"),
        *,
        fail_with: BaseException | None = None,
        count_error: BaseException | None = None,
        countable: bool = True,
        fractions: Sequence[float] = (),
        gate: threading.Event | None = None,
        ignore_cancel: bool = False,
        dispose_error: BaseException | None = None,
        delay: float = 0.0,
        probe: ConcurrencyProbe | None = None,
    ) -> None:
        self._job_id = job_id
        self.files = list(files)
        self.fail_with = fail_with
        self.count_error = count_error
        self.countable = countable
        self.fractions = list(fractions)
        self.gate = gate
        self.ignore_cancel = ignore_cancel
        self.dispose_error = dispose_error
        self.delay = delay
        self.probe = probe

        self.started = threading.Event()
        self.waiting = threading.Event()
        self.cancel_event = threading.Event()
        self.run_calls = 0
        self.cancel_calls = 0
        self.dispose_calls = 0

    @property
    def job_id(self) -> str:
        return self._job_id

    @property
    def input_files(self) -> list[str] | None:
        if self.count_error is not None:
            raise self.count_error
        return list(self.files) if self.countable else None

    def _check_cancel(self) -> None:
        if self.cancel_event.is_set() and not self.ignore_cancel:
            raise JobCancelledError(f"{self.job_id} stopped")

    def run(self, progress):
        self.run_calls += 1
        self.started.set()
        with self.probe or nullcontext():
            for path in self.files:
                self._check_cancel()
                progress(path)
                if self.delay:
                    time.sleep(self.delay)
            for fraction in self.fractions:
                progress(fraction=fraction)
            if self.gate is not None:
                self.waiting.set()
                while not self.gate.wait(0.01):
                    self._check_cancel()
            if self.fail_with is not None:
                raise self.fail_with

    def cancel(self) -> None:
        self.cancel_calls += 1
        self.cancel_event.set()

    def dispose(self) -> None:
        self.dispose_calls += 1
        if self.dispose_error is not None:
            raise self.dispose_error


class AsyncFakeJob:
    """Coroutine BuildJob."""

    def __init__(self, job_id: str, files: Sequence[str] = ("x.txt",), *, delay: float = 0.0):
        self._job_id = job_id
        self.files = list(files)
        self.delay = delay
        self.cancelled = asyncio.Event()
        self.run_calls = 0
        self.dispose_calls = 0

    @property
    def job_id(self) -> str:
        return self._job_id

    @property
    def input_files(self) -> list[str]:
        return list(self.files)

    async def run(self, progress) -> None:
        self.run_calls += 1
        for path in self.files:
            if self.cancelled.is_set():
                raise JobCancelledError(self.job_id)
            progress(path)
            await asyncio.sleep(self.delay)

    def cancel(self) -> None:
        self.cancelled.set()

    async def dispose(self) -> None:
        self.dispose_calls += 1


class EventLog:
    """Async observer collecting every event in delivery order."""

    def __init__(self) -> None:
        self.events: list[Event] = []

    async def handle(self, event: Event) -> None:
        self.events.append(event)

    def of_type(self, event_type: type[Event]) -> list[Event]:
        return [event for event in self.events if isinstance(event, event_type)]

    def for_job(self, job_id: str) -> list[Event]:
        return [event for event in self.events if getattr(event, "job_id", None) == job_id]


@pytest.fixture
def make_job():
    """Factory fixture for synchronous fake jobs."""
    return FakeJob


@pytest.fixture
def make_async_job():
    """Factory fixture for coroutine fake jobs."""
    return AsyncFakeJob


@pytest.fixture
def probe() -> ConcurrencyProbe:
    return ConcurrencyProbe()


@pytest.fixture
def event_log() -> EventLog:
    return EventLog()


@pytest.fixture
def gate():
    """A threading.Event released at teardown so no worker thread outlives the test."""
    event = threading.Event()
    yield event
    event.set()


@pytest.fixture(autouse=True)
def _isolate_config(monkeypatch):
    """Keep configuration discovery away from the developer's environment."""
    for name in (
        "INDEXRUNNER_CONFIG_PATH",
        "INDEXRUNNER_LOG_LEVEL",
        "INDEXRUNNER_LOG_FORMAT",
        "INDEXRUNNER_LOG_FILE",
        "INDEXRUNNER_LOG_COLOR",
        "INDEXRUNNER_LOG_TIMESTAMP",
        "INDEXRUNNER_LOG_BACKTRACE",
        "INDEXRUNNER_LOG_DIAGNOSE",
    ):
        monkeypatch.delenv(name, raising=False)
    clear_config_cache()
    yield
    clear_config_cache()
