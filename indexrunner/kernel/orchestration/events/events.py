"""Simple event data classes emitted during an orchestration run."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from indexrunner.kernel.orchestration.models import AggregateState, OrchestrationResult


@dataclass
class Event:
    """Base class for all events - provides timestamp."""

    timestamp: datetime = field(default_factory=datetime.now, init=False)

    def log_message(self) -> str:
        """Get a formatted log message for this event.

        Override in subclasses to provide custom formatting.
        """
        return f"{self.__class__.__name__} at {self.timestamp.isoformat()}"


# Run events
@dataclass(slots=True)
class RunStarted(Event):
    """An orchestration run has started."""

    run_id: str
    jobs_total: int
    max_workers: int

    def log_message(self) -> str:
        return f"Run {self.run_id} started ({self.jobs_total} jobs, {self.max_workers} workers)"


@dataclass(slots=True)
class RunFinished(Event):
    """Every job of the run is terminal and disposed. Fired exactly once per run."""

    run_id: str
    state: AggregateState
    result: OrchestrationResult

    def log_message(self) -> str:
        return (
            f"Run {self.run_id} finished in {self.result.duration_ms / 1000:.2f}s: "
            f"{self.state.jobs_succeeded} succeeded, {self.state.jobs_failed} failed, "
            f"{self.state.jobs_cancelled} cancelled"
        )


# Job events
@dataclass(slots=True)
class JobStarted(Event):
    """A job was admitted to a worker slot."""

    job_id: str
    files_expected: int | None = None

    def log_message(self) -> str:
        files = f" ({self.files_expected} files)" if self.files_expected is not None else ""
        return f"Job '{self.job_id}' started{files}"


@dataclass(slots=True)
class JobProgressed(Event):
    """A running job reported progress."""

    job_id: str
    message: str | None
    files_processed: int
    fraction: float | None = None
    is_error: bool = False

    def log_message(self) -> str:
        return f"Job '{self.job_id}': {self.message or ''}"


@dataclass(slots=True)
class JobCompleted(Event):
    """A job finished without error."""

    job_id: str
    duration_ms: float
    files_processed: int = 0

    def log_message(self) -> str:
        return (
            f"Job '{self.job_id}' completed in {self.duration_ms / 1000:.2f}s "
            f"({self.files_processed} files)"
        )


@dataclass(slots=True)
class JobFailed(Event):
    """A job failed. Sibling jobs are unaffected."""

    job_id: str
    error: BaseException

    def log_message(self) -> str:
        return f"Job '{self.job_id}' failed: {self.error}"


@dataclass(slots=True)
class JobCancelled(Event):
    """A job was cancelled, either before it started or while running."""

    job_id: str
    started: bool
    reason: str | None = None

    def log_message(self) -> str:
        when = "while running" if self.started else "before start"
        return f"Job '{self.job_id}' cancelled {when}: {self.reason or 'cancel requested'}"


@dataclass(slots=True)
class JobDisposed(Event):
    """A job's resources were released."""

    job_id: str
    error: BaseException | None = None

    def log_message(self) -> str:
        if self.error is not None:
            return f"Job '{self.job_id}' disposed with error: {self.error}"
        return f"Job '{self.job_id}' disposed"
