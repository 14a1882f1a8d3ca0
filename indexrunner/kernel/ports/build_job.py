"""Build Job Port - the contract between the orchestrator and a unit of indexing work.

A build job is produced by configuration loading (one per index configuration
file) and consumed by the JobOrchestrator. The orchestrator never looks inside
the job: it only runs, cancels, and disposes it, and listens to its progress.
"""

from __future__ import annotations

from collections.abc import Awaitable, Iterable
from typing import Protocol, runtime_checkable


@runtime_checkable
class ProgressReporter(Protocol):
    """Callback handed to ``BuildJob.run`` for progress notifications.

    Thread-safe: jobs running on worker threads may call it directly.
    """

    def __call__(self, message: str | None = None, *, fraction: float | None = None) -> None:
        """Report progress.

        Args
        ----
            message: Human readable progress message (usually the file just
                processed). Messages starting with "error" are recorded as
                non-fatal diagnostics of the job.
            fraction: Explicit completion fraction in [0, 1]. When omitted the
                orchestrator derives one from the number of messages and the
                expected number of input files, if known.
        """
        ...


@runtime_checkable
class BuildJob(Protocol):
    """Port interface for one index build job.

    Requirements
    ------------
    - ``job_id`` is unique within a run (the configuration file path).
    - ``run`` and ``dispose`` may be plain functions (executed on a worker
      thread) or coroutine functions (awaited on the event loop).
    - ``cancel`` is a cooperative request: it must not block and must be safe
      to call from any thread. A job acknowledges it by returning early or by
      raising ``JobCancelledError``.
    - ``dispose`` releases the builder; the orchestrator calls it exactly once.
    """

    @property
    def job_id(self) -> str:
        """Identity of the job within a run."""
        ...

    @property
    def input_files(self) -> Iterable[str] | None:
        """Enumerable of the files the job will process (may be lazy)."""
        ...

    def run(self, progress: ProgressReporter) -> None | Awaitable[None]:
        """Execute the job to completion."""
        ...

    def cancel(self) -> None:
        """Request cooperative cancellation."""
        ...

    def dispose(self) -> None | Awaitable[None]:
        """Release every resource owned by the job."""
        ...


__all__ = ["BuildJob", "ProgressReporter"]
