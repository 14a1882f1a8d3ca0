"""Thread-safe bookkeeping of job states and aggregate progress for one run.

The tracker is the single serialization point for everything that changes
while a run executes: job state transitions, the aggregate counters, the
per-job progress and the collected errors. Worker threads report progress
directly into it, so every mutation happens under one ``threading.Lock``.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from indexrunner.kernel.exceptions import OrchestratorInternalError
from indexrunner.kernel.orchestration.events import JobProgressed
from indexrunner.kernel.orchestration.models import (
    JOB_TRANSITIONS,
    AggregateState,
    JobOutcome,
    JobResult,
    JobState,
    OrchestrationResult,
    RunStatus,
)
from indexrunner.kernel.utils.timer import Timer

if TYPE_CHECKING:
    from collections.abc import Iterable

__all__ = ["ERROR_MESSAGE_PREFIX", "JobRecord", "ProgressTracker"]

# Progress messages starting with this prefix (any case) are non-fatal diagnostics
ERROR_MESSAGE_PREFIX = "error"


@dataclass(slots=True)
class JobRecord:
    """Mutable per-job record. Only ever touched under the tracker lock."""

    job_id: str
    index: int
    state: JobState = JobState.PENDING
    error: BaseException | None = None
    started: bool = False
    cancel_requested: bool = False
    files_expected: int | None = None
    files_processed: int = 0
    reported_fraction: float | None = None
    diagnostics: list[str] = field(default_factory=list)
    index_path: str | None = None
    index_size_bytes: int | None = None
    timer: Timer | None = None
    duration_ms: float = 0.0

    def transition(self, new_state: JobState) -> None:
        """Move to ``new_state``, enforcing the job lifecycle.

        Raises
        ------
        OrchestratorInternalError
            If the transition is not allowed (e.g. leaving a terminal state)
        """
        if new_state not in JOB_TRANSITIONS[self.state]:
            raise OrchestratorInternalError(
                f"Job '{self.job_id}' cannot move from {self.state} to {new_state}",
                [self.job_id],
            )
        self.state = new_state

    @property
    def fraction(self) -> float:
        """Completion fraction of this job; terminal jobs count as done."""
        if self.state.is_terminal:
            return 1.0
        if self.reported_fraction is not None:
            return self.reported_fraction
        if self.files_expected:
            return min(1.0, self.files_processed / self.files_expected)
        # Indeterminate
        return 0.0

    def to_result(self) -> JobResult:
        if not self.state.is_terminal:
            raise OrchestratorInternalError(
                f"Job '{self.job_id}' has no outcome (state: {self.state})", [self.job_id]
            )
        return JobResult(
            job_id=self.job_id,
            outcome=JobOutcome(self.state.value),
            error=self.error,
            started=self.started,
            files_expected=self.files_expected,
            files_processed=self.files_processed,
            diagnostics=tuple(self.diagnostics),
            index_path=self.index_path,
            index_size_bytes=self.index_size_bytes,
            duration_ms=self.duration_ms,
        )


class ProgressTracker:
    """Aggregate state machine of a single orchestration run.

    ``not_started -> running -> finished``. The counters are maintained
    incrementally at each job transition so that ``jobs_completed`` can never
    be observed out of order relative to individual completions.

    Examples
    --------
    Example usage::

        tracker = ProgressTracker("run-1", ["a.xml", "b.xml"])
        tracker.begin()
        tracker.try_start("a.xml")
        tracker.complete("a.xml", JobOutcome.SUCCEEDED)
        tracker.snapshot().jobs_completed
    1
    """

    def __init__(
        self, run_id: str, job_ids: Iterable[str], *, estimate_progress: bool = True
    ) -> None:
        self.run_id = run_id
        self.estimate_progress = estimate_progress
        self._lock = threading.Lock()
        self._records: dict[str, JobRecord] = {}
        for index, job_id in enumerate(job_ids):
            if job_id in self._records:
                raise OrchestratorInternalError(f"Duplicate job id '{job_id}'", [job_id])
            self._records[job_id] = JobRecord(job_id=job_id, index=index)

        self._status = RunStatus.NOT_STARTED
        self._running = 0
        self._peak_running = 0
        self._completed: dict[JobOutcome, int] = dict.fromkeys(JobOutcome, 0)

    # ------------------------------------------------------------------
    # Run lifecycle
    # ------------------------------------------------------------------

    def begin(self) -> None:
        with self._lock:
            if self._status is not RunStatus.NOT_STARTED:
                raise OrchestratorInternalError(f"Run {self.run_id} already started")
            self._status = RunStatus.RUNNING

    def finalize(self, duration_ms: float) -> OrchestrationResult:
        """Move to ``finished`` and build the result in submission order."""
        with self._lock:
            if self._status is RunStatus.FINISHED:
                raise OrchestratorInternalError(f"Run {self.run_id} already finished")
            unfinished = [r.job_id for r in self._records.values() if not r.state.is_terminal]
            if unfinished:
                raise OrchestratorInternalError(
                    f"Run {self.run_id} cannot finish with non-terminal jobs", unfinished
                )
            self._status = RunStatus.FINISHED
            results = tuple(record.to_result() for record in self._records.values())
        return OrchestrationResult(run_id=self.run_id, results=results, duration_ms=duration_ms)

    # ------------------------------------------------------------------
    # Job transitions
    # ------------------------------------------------------------------

    def try_start(self, job_id: str) -> bool:
        """Admit a pending job. Returns False if it is no longer pending."""
        with self._lock:
            record = self._records[job_id]
            if record.state is not JobState.PENDING:
                return False
            record.transition(JobState.RUNNING)
            record.started = True
            record.timer = Timer()
            self._running += 1
            self._peak_running = max(self._peak_running, self._running)
            return True

    def complete(
        self,
        job_id: str,
        outcome: JobOutcome,
        error: BaseException | None = None,
        *,
        index_path: str | None = None,
        index_size_bytes: int | None = None,
    ) -> JobResult:
        """Record the terminal outcome of a running job."""
        with self._lock:
            record = self._records[job_id]
            was_running = record.state is JobState.RUNNING
            record.transition(outcome.state)
            record.error = error
            record.index_path = index_path
            record.index_size_bytes = index_size_bytes
            if record.timer is not None:
                record.duration_ms = record.timer.duration_ms
            if was_running:
                self._running -= 1
            self._completed[outcome] += 1
            return record.to_result()

    def cancel_pending(self) -> list[str]:
        """Move every pending job straight to cancelled, in submission order."""
        cancelled = []
        with self._lock:
            for record in self._records.values():
                if record.state is JobState.PENDING:
                    record.transition(JobState.CANCELLED)
                    self._completed[JobOutcome.CANCELLED] += 1
                    cancelled.append(record.job_id)
        return cancelled

    def request_cancel(self, job_id: str) -> bool:
        """Flag a running job as asked to cancel. Returns True if it is running."""
        with self._lock:
            record = self._records[job_id]
            if record.state is not JobState.RUNNING:
                return False
            record.cancel_requested = True
            return True

    def cancel_requested(self, job_id: str) -> bool:
        with self._lock:
            return self._records[job_id].cancel_requested

    # ------------------------------------------------------------------
    # Progress
    # ------------------------------------------------------------------

    def set_files_expected(self, job_id: str, count: int) -> None:
        with self._lock:
            self._records[job_id].files_expected = count

    def report(
        self, job_id: str, message: str | None = None, fraction: float | None = None
    ) -> JobProgressed | None:
        """Apply a progress report from a job.

        Returns the event to publish, or None when the job is no longer
        running (late reports from an abandoned job are dropped).
        """
        is_error = message is not None and message.lower().startswith(ERROR_MESSAGE_PREFIX)
        with self._lock:
            record = self._records[job_id]
            if record.state is not JobState.RUNNING:
                return None
            if message is not None:
                record.files_processed += 1
                if is_error:
                    record.diagnostics.append(message)
            if fraction is not None:
                clamped = min(1.0, max(0.0, fraction))
                record.reported_fraction = max(record.reported_fraction or 0.0, clamped)
            processed = record.files_processed
        return JobProgressed(
            job_id=job_id,
            message=message,
            files_processed=processed,
            fraction=fraction,
            is_error=is_error,
        )

    @property
    def progress_fraction(self) -> float | None:
        """Aggregate completion in [0, 1], or None when progress is not estimated.

        The mean fraction of the jobs that have started. Pending jobs and jobs
        cancelled before they started are left out.
        """
        with self._lock:
            if self._status is RunStatus.FINISHED or not self._records:
                return 1.0 if self.estimate_progress else None
            if not self.estimate_progress:
                return None
            started = [record.fraction for record in self._records.values() if record.started]
            if not started:
                return 0.0
            return sum(started) / len(started)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def status(self) -> RunStatus:
        with self._lock:
            return self._status

    @property
    def peak_running(self) -> int:
        """Highest number of simultaneously running jobs seen so far."""
        with self._lock:
            return self._peak_running

    @property
    def errors(self) -> list[tuple[str, BaseException]]:
        """(job_id, error) for every failed job, in submission order."""
        with self._lock:
            return self._errors_locked()

    def state_of(self, job_id: str) -> JobState:
        with self._lock:
            return self._records[job_id].state

    def running_job_ids(self) -> list[str]:
        with self._lock:
            return [r.job_id for r in self._records.values() if r.state is JobState.RUNNING]

    def snapshot(self) -> AggregateState:
        with self._lock:
            return AggregateState(
                status=self._status,
                jobs_total=len(self._records),
                jobs_running=self._running,
                jobs_completed=sum(self._completed.values()),
                jobs_succeeded=self._completed[JobOutcome.SUCCEEDED],
                jobs_failed=self._completed[JobOutcome.FAILED],
                jobs_cancelled=self._completed[JobOutcome.CANCELLED],
                run_id=self.run_id,
                errors=tuple(self._errors_locked()),
            )

    def _errors_locked(self) -> list[tuple[str, BaseException]]:
        return [
            (record.job_id, record.error)
            for record in self._records.values()
            if record.state is JobState.FAILED and record.error is not None
        ]
