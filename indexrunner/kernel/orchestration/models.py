"""Models for orchestration options, job state, and run results.

This module contains the immutable option snapshots handed to the
orchestrator, the job lifecycle enumerations, and the result types produced
at the end of a run.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum

from indexrunner.kernel.exceptions import ValidationError


class JobState(StrEnum):
    """Lifecycle state of a single build job."""

    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATES


TERMINAL_STATES = frozenset({JobState.SUCCEEDED, JobState.FAILED, JobState.CANCELLED})

# Allowed transitions; anything else is an invariant violation
JOB_TRANSITIONS: dict[JobState, frozenset[JobState]] = {
    JobState.PENDING: frozenset({JobState.RUNNING, JobState.CANCELLED}),
    JobState.RUNNING: TERMINAL_STATES,
    JobState.SUCCEEDED: frozenset(),
    JobState.FAILED: frozenset(),
    JobState.CANCELLED: frozenset(),
}


class JobOutcome(StrEnum):
    """Terminal outcome of a build job."""

    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def state(self) -> JobState:
        return JobState(self.value)


class RunStatus(StrEnum):
    """Aggregate status of an orchestration run."""

    NOT_STARTED = "not_started"
    RUNNING = "running"
    FINISHED = "finished"


@dataclass(frozen=True, slots=True)
class RunOptions:
    """Immutable snapshot of the options a run was started with.

    Attributes
    ----------
    max_workers : int | None, default=None
        Upper bound on concurrently running jobs. None means unbounded.
    use_concurrency : bool, default=True
        If False, jobs run strictly one after another regardless of max_workers.
    estimate_progress : bool, default=True
        If True, input files are counted up front and an aggregate completion
        fraction is exposed. If False, only running/finished is reported.

    Examples
    --------
    Example usage::

        options = RunOptions(max_workers=2)
        options.effective_max_workers(5)
    2
    """

    max_workers: int | None = None
    use_concurrency: bool = True
    estimate_progress: bool = True

    def __post_init__(self) -> None:
        """Validate option values."""
        if self.max_workers is not None and self.max_workers < 1:
            raise ValidationError("max_workers", "must be >= 1 or None", self.max_workers)

    def effective_max_workers(self, jobs_total: int) -> int:
        """Concurrency bound actually applied to a run of ``jobs_total`` jobs."""
        if jobs_total <= 0:
            return 0
        if not self.use_concurrency:
            return 1
        if self.max_workers is None:
            return jobs_total
        return min(jobs_total, self.max_workers)


@dataclass(frozen=True, slots=True)
class OrchestratorConfig:
    """Configuration for orchestrator behavior.

    Attributes
    ----------
    dispose_grace_period : float | None, default=30.0
        Seconds to wait for a single ``dispose()`` call before logging it as
        stuck and moving on. None waits indefinitely.
    cancel_grace_period : float | None, default=None
        Seconds running jobs get to acknowledge a cancellation. When exceeded
        they are abandoned and the run raises OrchestratorInternalError.
        None blocks until every running job has finished.
    escalate_dispose_failures : bool, default=False
        If True, a dispose call that raised or timed out makes the run raise
        OrchestratorInternalError after all jobs are disposed.
    thread_name_prefix : str, default="indexrunner-job"
        Name prefix of the worker threads running synchronous jobs.
    """

    dispose_grace_period: float | None = 30.0
    cancel_grace_period: float | None = None
    escalate_dispose_failures: bool = False
    thread_name_prefix: str = "indexrunner-job"

    def __post_init__(self) -> None:
        """Validate configuration parameters."""
        if self.dispose_grace_period is not None and self.dispose_grace_period <= 0:
            raise ValidationError(
                "dispose_grace_period", "must be positive or None", self.dispose_grace_period
            )
        if self.cancel_grace_period is not None and self.cancel_grace_period <= 0:
            raise ValidationError(
                "cancel_grace_period", "must be positive or None", self.cancel_grace_period
            )


@dataclass(frozen=True, slots=True)
class JobResult:
    """Final record of one job, as reported in the OrchestrationResult."""

    job_id: str
    outcome: JobOutcome
    error: BaseException | None = None
    started: bool = False
    files_expected: int | None = None
    files_processed: int = 0
    diagnostics: tuple[str, ...] = ()
    index_path: str | None = None
    index_size_bytes: int | None = None
    duration_ms: float = 0.0


@dataclass(frozen=True, slots=True)
class OrchestrationResult:
    """Outcome of a whole run, in submission order.

    Examples
    --------
    Example usage::

        result = await handle.wait()
        for job_id, error in result.errors:
            print(job_id, error)
    """

    run_id: str
    results: tuple[JobResult, ...] = ()
    duration_ms: float = 0.0

    def __len__(self) -> int:
        return len(self.results)

    @property
    def outcomes(self) -> list[tuple[str, JobOutcome]]:
        """(job_id, outcome) pairs in submission order."""
        return [(r.job_id, r.outcome) for r in self.results]

    @property
    def succeeded(self) -> list[JobResult]:
        return [r for r in self.results if r.outcome is JobOutcome.SUCCEEDED]

    @property
    def failed(self) -> list[JobResult]:
        return [r for r in self.results if r.outcome is JobOutcome.FAILED]

    @property
    def cancelled(self) -> list[JobResult]:
        return [r for r in self.results if r.outcome is JobOutcome.CANCELLED]

    @property
    def errors(self) -> list[tuple[str, BaseException]]:
        """(job_id, error) for every failed job, in submission order."""
        return [
            (r.job_id, r.error)
            for r in self.results
            if r.outcome is JobOutcome.FAILED and r.error is not None
        ]

    @property
    def all_succeeded(self) -> bool:
        return all(r.outcome is JobOutcome.SUCCEEDED for r in self.results)


@dataclass(frozen=True, slots=True)
class AggregateState:
    """Point-in-time snapshot of the orchestrator-wide state.

    Attributes
    ----------
    status : RunStatus
        not_started, running or finished
    jobs_total : int
        Number of jobs supplied to start()
    jobs_running : int
        Jobs currently in the running state
    jobs_completed : int
        Jobs that reached any terminal state
    jobs_succeeded, jobs_failed, jobs_cancelled : int
        Terminal jobs broken down by outcome
    """

    status: RunStatus = RunStatus.NOT_STARTED
    jobs_total: int = 0
    jobs_running: int = 0
    jobs_completed: int = 0
    jobs_succeeded: int = 0
    jobs_failed: int = 0
    jobs_cancelled: int = 0
    run_id: str | None = None
    errors: tuple[tuple[str, BaseException], ...] = field(default_factory=tuple)

    @property
    def is_running(self) -> bool:
        return self.status is RunStatus.RUNNING

    @property
    def is_finished(self) -> bool:
        return self.status is RunStatus.FINISHED

    @property
    def jobs_pending(self) -> int:
        return self.jobs_total - self.jobs_running - self.jobs_completed


__all__ = [
    "JOB_TRANSITIONS",
    "TERMINAL_STATES",
    "AggregateState",
    "JobOutcome",
    "JobResult",
    "JobState",
    "OrchestrationResult",
    "OrchestratorConfig",
    "RunOptions",
    "RunStatus",
]
