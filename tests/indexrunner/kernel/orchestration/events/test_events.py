"""Tests for event data classes and the logging observer."""

from datetime import datetime

import pytest

from indexrunner.kernel.orchestration.events import (
    ALL_EVENTS,
    JOB_LIFECYCLE_EVENTS,
    JobCancelled,
    JobCompleted,
    JobDisposed,
    JobFailed,
    JobProgressed,
    JobStarted,
    LoggingObserver,
    RunFinished,
    RunStarted,
)
from indexrunner.kernel.orchestration.models import (
    AggregateState,
    OrchestrationResult,
    RunStatus,
)


class TestEvents:
    """Test event creation and log messages."""

    def test_run_started(self):
        event = RunStarted(run_id="r1", jobs_total=3, max_workers=2)

        assert isinstance(event.timestamp, datetime)
        assert event.log_message() == "Run r1 started (3 jobs, 2 workers)"

    def test_run_finished_summarizes_counters(self):
        state = AggregateState(
            status=RunStatus.FINISHED,
            jobs_total=3,
            jobs_completed=3,
            jobs_succeeded=1,
            jobs_failed=1,
            jobs_cancelled=1,
        )
        event = RunFinished(
            run_id="r1", state=state, result=OrchestrationResult(run_id="r1", duration_ms=1500)
        )

        assert event.log_message() == (
            "Run r1 finished in 1.50s: 1 succeeded, 1 failed, 1 cancelled"
        )

    def test_job_started_with_and_without_file_count(self):
        assert JobStarted(job_id="a", files_expected=4).log_message() == "Job 'a' started (4 files)"
        assert JobStarted(job_id="a").log_message() == "Job 'a' started"

    def test_job_completed(self):
        event = JobCompleted(job_id="a", duration_ms=250, files_processed=10)

        assert event.log_message() == "Job 'a' completed in 0.25s (10 files)"

    def test_job_failed(self):
        event = JobFailed(job_id="a", error=ValueError("bad input"))

        assert event.log_message() == "Job 'a' failed: bad input"

    def test_job_cancelled_before_and_while_running(self):
        before = JobCancelled(job_id="a", started=False)
        during = JobCancelled(job_id="a", started=True, reason="abandoned")

        assert before.log_message() == "Job 'a' cancelled before start: cancel requested"
        assert during.log_message() == "Job 'a' cancelled while running: abandoned"

    def test_job_disposed(self):
        assert JobDisposed(job_id="a").log_message() == "Job 'a' disposed"
        assert "with error" in JobDisposed(job_id="a", error=OSError("x")).log_message()

    def test_event_groups(self):
        assert JobProgressed in ALL_EVENTS
        assert RunStarted in ALL_EVENTS
        assert RunFinished not in JOB_LIFECYCLE_EVENTS


class TestLoggingObserver:
    """LoggingObserver accepts every event type."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "event",
        [
            RunStarted(run_id="r1", jobs_total=1, max_workers=1),
            JobStarted(job_id="a"),
            JobProgressed(job_id="a", message="Error: x", files_processed=1, is_error=True),
            JobProgressed(job_id="a", message="x", files_processed=1),
            JobFailed(job_id="a", error=RuntimeError("x")),
            JobCancelled(job_id="a", started=True),
            JobDisposed(job_id="a", error=OSError("x")),
        ],
    )
    async def test_handle(self, event):
        await LoggingObserver(verbose=True).handle(event)
