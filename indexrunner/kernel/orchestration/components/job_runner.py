"""Execution of a single build job inside a worker slot.

The JobRunner takes one admitted job through its whole life: counting its
input files, running it, classifying the outcome, publishing the job events
and disposing it. A job's failure is recorded on its own record and never
propagates to the worker, so sibling jobs are unaffected.
"""

from __future__ import annotations

import asyncio
import contextvars
import inspect
from typing import TYPE_CHECKING, Any

from indexrunner.kernel.exceptions import JobCancelledError, JobExecutionError
from indexrunner.kernel.logging import get_logger
from indexrunner.kernel.orchestration.events import (
    JobCancelled,
    JobCompleted,
    JobDisposed,
    JobFailed,
    JobStarted,
)
from indexrunner.kernel.orchestration.models import JobOutcome, JobState

if TYPE_CHECKING:
    from concurrent.futures import ThreadPoolExecutor

    from indexrunner.kernel.orchestration.components.event_notifier import EventNotifier
    from indexrunner.kernel.orchestration.components.lifecycle_manager import (
        JobLifecycleManager,
    )
    from indexrunner.kernel.orchestration.components.progress_tracker import ProgressTracker
    from indexrunner.kernel.ports.build_job import BuildJob, ProgressReporter

logger = get_logger(__name__)

__all__ = ["JobRunner", "count_input_files"]


def count_input_files(job: BuildJob) -> int | None:
    """Count the input files of ``job``; None if the job does not expose them."""
    input_files = job.input_files
    if input_files is None:
        return None
    return sum(1 for _ in input_files)


class JobRunner:
    """Runs admitted jobs of one orchestration run.

    Synchronous ``run`` implementations execute on the run's thread pool with
    the caller's context copied, so the run's correlation id is visible in the
    job's log records. Coroutine implementations are awaited on the loop.
    """

    def __init__(
        self,
        tracker: ProgressTracker,
        lifecycle: JobLifecycleManager,
        notifier: EventNotifier,
        executor: ThreadPoolExecutor,
    ) -> None:
        self.tracker = tracker
        self.lifecycle = lifecycle
        self.notifier = notifier
        self.executor = executor

    async def run(self, job: BuildJob) -> None:
        """Run ``job`` to a terminal state and dispose it.

        Returns without doing anything if the job was cancelled before it
        could be admitted.
        """
        job_id = job.job_id
        if not self.tracker.try_start(job_id):
            logger.debug(f"Job '{job_id}' no longer pending, skipping")
            return

        try:
            await self._execute(job)
        except asyncio.CancelledError:
            # Abandoned by the orchestrator; disposal happens in its final sweep
            if self.tracker.state_of(job_id) is not JobState.RUNNING:
                raise
            self.tracker.complete(
                job_id,
                JobOutcome.CANCELLED,
                index_path=getattr(job, "index_path", None),
            )
            logger.warning(f"Job '{job_id}' abandoned while running")
            self.notifier.notify_threadsafe(
                JobCancelled(job_id=job_id, started=True, reason="abandoned")
            )
            raise

        error = await self.lifecycle.dispose(job)
        await self.notifier.notify(JobDisposed(job_id=job_id, error=error))

    async def _execute(self, job: BuildJob) -> None:
        job_id = job.job_id
        files_expected: int | None = None

        if self.tracker.estimate_progress:
            try:
                files_expected = await self._call_sync(count_input_files, job)
            except Exception as e:
                await self._record_failure(job, e)
                return
            if files_expected is not None:
                self.tracker.set_files_expected(job_id, files_expected)

        await self.notifier.notify(JobStarted(job_id=job_id, files_expected=files_expected))

        outcome = JobOutcome.SUCCEEDED
        reason = None
        if self.tracker.cancel_requested(job_id):
            # Cancelled between admission and the first instruction
            outcome, reason = JobOutcome.CANCELLED, "cancel requested"
        else:
            try:
                await self._invoke_run(job, self._make_reporter(job_id))
            except JobCancelledError as e:
                outcome, reason = JobOutcome.CANCELLED, str(e) or "cancel acknowledged"
            except Exception as e:
                await self._record_failure(job, e)
                return
            else:
                if self.tracker.cancel_requested(job_id):
                    outcome, reason = JobOutcome.CANCELLED, "cancel requested"

        # Progress events of this job go out before its terminal event
        await self.notifier.drain()
        result = self.tracker.complete(
            job_id,
            outcome,
            index_path=getattr(job, "index_path", None),
            index_size_bytes=getattr(job, "index_size_bytes", None),
        )
        if outcome is JobOutcome.SUCCEEDED:
            logger.info(f"Job '{job_id}' succeeded in {result.duration_ms / 1000:.2f}s")
            await self.notifier.notify(
                JobCompleted(
                    job_id=job_id,
                    duration_ms=result.duration_ms,
                    files_processed=result.files_processed,
                )
            )
        else:
            logger.info(f"Job '{job_id}' cancelled: {reason}")
            await self.notifier.notify(JobCancelled(job_id=job_id, started=True, reason=reason))

    async def _record_failure(self, job: BuildJob, error: Exception) -> None:
        job_id = job.job_id
        if isinstance(error, JobExecutionError):
            wrapped = error
        else:
            wrapped = JobExecutionError(job_id, error)
            wrapped.__cause__ = error
        logger.opt(exception=error).error(f"Job '{job_id}' failed: {error}")

        await self.notifier.drain()
        self.tracker.complete(
            job_id,
            JobOutcome.FAILED,
            wrapped,
            index_path=getattr(job, "index_path", None),
        )
        await self.notifier.notify(JobFailed(job_id=job_id, error=wrapped))

    async def _invoke_run(self, job: BuildJob, reporter: ProgressReporter) -> None:
        if inspect.iscoroutinefunction(job.run):
            await job.run(reporter)
            return
        result = await self._call_sync(job.run, reporter)
        if inspect.isawaitable(result):
            await result

    async def _call_sync(self, fn: Any, *args: Any) -> Any:
        # Copy context so ContextVars (correlation id) propagate to the thread pool
        ctx = contextvars.copy_context()
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self.executor, ctx.run, fn, *args)

    def _make_reporter(self, job_id: str) -> ProgressReporter:
        tracker = self.tracker
        notifier = self.notifier

        def report(message: str | None = None, *, fraction: float | None = None) -> None:
            event = tracker.report(job_id, message, fraction)
            if event is not None:
                notifier.notify_threadsafe(event)

        return report
