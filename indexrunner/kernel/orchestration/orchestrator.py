"""Job Orchestrator - core execution engine of indexrunner.

The JobOrchestrator runs a set of independent index build jobs under a
concurrency bound. It isolates job failures from each other, exposes an
aggregate progress view, fires a single "finished" notification per run and
guarantees that every supplied job is disposed exactly once before that
notification.
"""

import asyncio
import threading
import uuid
from collections import deque
from collections.abc import Callable, Iterable
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Generator

    from indexrunner.kernel.ports.build_job import BuildJob
    from indexrunner.kernel.ports.observer_manager import ObserverManager
else:
    ObserverManager = Any

from indexrunner.kernel.exceptions import (
    OrchestratorError,
    OrchestratorInternalError,
    ValidationError,
)
from indexrunner.kernel.logging import clear_correlation_id, get_logger, set_correlation_id
from indexrunner.kernel.orchestration.components.event_notifier import EventNotifier
from indexrunner.kernel.orchestration.components.job_runner import JobRunner
from indexrunner.kernel.orchestration.components.lifecycle_manager import JobLifecycleManager
from indexrunner.kernel.orchestration.components.progress_tracker import ProgressTracker
from indexrunner.kernel.orchestration.events import (
    JobCancelled,
    JobDisposed,
    RunFinished,
    RunStarted,
)
from indexrunner.kernel.orchestration.models import (
    AggregateState,
    JobOutcome,
    JobState,
    OrchestrationResult,
    OrchestratorConfig,
    RunOptions,
    RunStatus,
)
from indexrunner.kernel.utils.timer import Timer

logger = get_logger(__name__)

__all__ = ["FinishedCallback", "JobOrchestrator", "RunHandle"]

FinishedCallback = Callable[[OrchestrationResult], None]


@dataclass(slots=True)
class _Run:
    """Everything that belongs to one orchestration run."""

    run_id: str
    jobs: list["BuildJob"]
    options: RunOptions
    max_workers: int
    tracker: ProgressTracker
    lifecycle: JobLifecycleManager
    notifier: EventNotifier
    loop: asyncio.AbstractEventLoop
    timer: Timer = field(default_factory=Timer)
    queue: deque["BuildJob"] = field(default_factory=deque)
    cancel_event: asyncio.Event = field(default_factory=asyncio.Event)
    workers: list[asyncio.Task[None]] = field(default_factory=list)
    active: dict[str, asyncio.Task[None]] = field(default_factory=dict)
    escalations: list[OrchestratorInternalError] = field(default_factory=list)
    result: OrchestrationResult | None = None


class RunHandle:
    """Handle on a started run.

    Awaiting the handle (or ``wait()``) returns the OrchestrationResult once
    every job is terminal and disposed. Per-job failures are part of the
    result; only OrchestratorInternalError is raised.

    Examples
    --------
    Example usage::

        handle = orchestrator.start(jobs, RunOptions(max_workers=2))
        result = await handle
        print(result.errors)
    """

    def __init__(
        self,
        orchestrator: "JobOrchestrator",
        run_id: str,
        task: "asyncio.Task[OrchestrationResult]",
    ) -> None:
        self._orchestrator = orchestrator
        self._task = task
        self.run_id = run_id

    @property
    def done(self) -> bool:
        return self._task.done()

    def cancel(self) -> None:
        """Request cooperative cancellation of the run (see JobOrchestrator.cancel)."""
        self._orchestrator.cancel()

    async def wait(self) -> OrchestrationResult:
        """Wait for the run to finish and return its result.

        Raises
        ------
        OrchestratorInternalError
            If an orchestration invariant was violated during the run. All
            jobs have been disposed by the time it is raised.
        """
        return await self._task

    def __await__(self) -> "Generator[Any, None, OrchestrationResult]":
        return self.wait().__await__()


class JobOrchestrator:
    """Runs independent build jobs with a concurrency bound and failure isolation.

    The orchestrator:

    1. Admits jobs in submission order to at most ``effective_max_workers``
       worker slots
    2. Runs synchronous jobs on a thread pool, coroutine jobs on the loop
    3. Records each job's outcome without letting it affect its siblings
    4. Disposes every job exactly once, then reports the run as finished

    Examples
    --------
    Example usage::

        orchestrator = JobOrchestrator(observer_manager=LocalObserverManager())
        orchestrator.on_finished(lambda result: print(result.outcomes))
        handle = orchestrator.start(jobs, RunOptions(max_workers=4))
        result = await handle
    """

    def __init__(
        self,
        observer_manager: ObserverManager | None = None,
        config: OrchestratorConfig | None = None,
    ) -> None:
        """Initialize orchestrator with configuration.

        Args
        ----
            observer_manager: Optional observer manager receiving run and job events
            config: Grace periods and disposal policy (defaults to OrchestratorConfig())
        """
        self.observer_manager = observer_manager
        self.config = config or OrchestratorConfig()
        self._run: _Run | None = None
        self._callbacks: list[FinishedCallback] = []
        self._callbacks_lock = threading.Lock()

    # ------------------------------------------------------------------
    # Observable state
    # ------------------------------------------------------------------

    @property
    def run_id(self) -> str | None:
        return self._run.run_id if self._run is not None else None

    @property
    def state(self) -> AggregateState:
        """Snapshot of the aggregate state of the current (or last) run."""
        if self._run is None:
            return AggregateState()
        return self._run.tracker.snapshot()

    @property
    def is_running(self) -> bool:
        return self._run is not None and self._run.tracker.status is RunStatus.RUNNING

    @property
    def is_finished(self) -> bool:
        return self._run is not None and self._run.tracker.status is RunStatus.FINISHED

    @property
    def progress_fraction(self) -> float | None:
        """Aggregate completion in [0, 1]; None when indeterminate."""
        if self._run is None:
            return None
        return self._run.tracker.progress_fraction

    @property
    def errors(self) -> list[tuple[str, BaseException]]:
        """(job_id, error) of every failed job so far, in submission order."""
        if self._run is None:
            return []
        return self._run.tracker.errors

    @property
    def result(self) -> OrchestrationResult | None:
        """Result of the last finished run."""
        return self._run.result if self._run is not None else None

    def on_finished(self, callback: FinishedCallback) -> None:
        """Register a callback fired exactly once per run when it finishes.

        If the current run has already finished, the callback is called
        immediately with its result. Callback errors are logged, never raised.
        """
        with self._callbacks_lock:
            self._callbacks.append(callback)
            finished = self._run.result if self._run is not None else None
        if finished is not None:
            self._invoke_callback(callback, finished)

    # ------------------------------------------------------------------
    # Control
    # ------------------------------------------------------------------

    def start(self, jobs: Iterable["BuildJob"], options: RunOptions | None = None) -> RunHandle:
        """Start running ``jobs``. Never blocks.

        Must be called from a running event loop. An empty job set finishes
        immediately: the run is finished and the finished notification has
        fired before this method returns.

        Raises
        ------
        OrchestratorError
            If no event loop is running or a run is already in progress
        ValidationError
            If two jobs share the same job_id
        """
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError as e:
            raise OrchestratorError("start() must be called from a running event loop") from e

        if self.is_running:
            raise OrchestratorError(f"Run {self.run_id} is already in progress")

        options = options or RunOptions()
        job_list = list(jobs)
        seen: set[str] = set()
        for job in job_list:
            if job.job_id in seen:
                raise ValidationError("jobs", "job_id values must be unique", job.job_id)
            seen.add(job.job_id)

        run_id = uuid.uuid4().hex[:12]
        tracker = ProgressTracker(
            run_id, [job.job_id for job in job_list], estimate_progress=options.estimate_progress
        )
        run = _Run(
            run_id=run_id,
            jobs=job_list,
            options=options,
            max_workers=options.effective_max_workers(len(job_list)),
            tracker=tracker,
            lifecycle=JobLifecycleManager(self.config.dispose_grace_period),
            notifier=EventNotifier(self.observer_manager, loop),
            loop=loop,
            queue=deque(job_list),
        )
        self._run = run
        tracker.begin()

        if not job_list:
            logger.info(f"Run {run_id} has no jobs, finished immediately")
            result = self._complete(run)
            task = loop.create_task(self._announce_empty_run(run, result))
        else:
            logger.info(
                f"Starting run {run_id}: {len(job_list)} jobs, {run.max_workers} workers"
            )
            task = loop.create_task(self._execute(run), name=f"indexrunner-run-{run_id}")
        return RunHandle(self, run_id, task)

    def cancel(self) -> None:
        """Request cancellation of the current run. Idempotent, callable from any thread.

        Pending jobs become cancelled without ever running; running jobs are
        asked to stop and awaited. The run reports finished only after every
        running job has reached a terminal state.
        """
        run = self._run
        if run is None or run.result is not None or run.loop.is_closed():
            return
        try:
            current = asyncio.get_running_loop()
        except RuntimeError:
            current = None
        if current is run.loop:
            self._cancel_run(run)
        else:
            run.loop.call_soon_threadsafe(self._cancel_run, run)

    # ------------------------------------------------------------------
    # Run execution
    # ------------------------------------------------------------------

    async def _execute(self, run: _Run) -> OrchestrationResult:
        set_correlation_id(run.run_id)
        interrupted: asyncio.CancelledError | None = None
        executor = ThreadPoolExecutor(
            max_workers=run.max_workers, thread_name_prefix=self.config.thread_name_prefix
        )
        runner = JobRunner(run.tracker, run.lifecycle, run.notifier, executor)
        try:
            started = RunStarted(
                run_id=run.run_id, jobs_total=len(run.jobs), max_workers=run.max_workers
            )
            await run.notifier.notify(started)
            run.workers = [
                asyncio.create_task(self._worker(run, runner), name=f"indexrunner-worker-{i}")
                for i in range(run.max_workers)
            ]
            try:
                await self._await_workers(run)
            except asyncio.CancelledError as e:
                interrupted = e
                logger.warning(f"Run {run.run_id} interrupted, cancelling jobs")
                self._cancel_run(run, reason="run interrupted")
                await self._await_workers(run)
        finally:
            executor.shutdown(wait=False, cancel_futures=True)
            result = await self._finish(run)
            clear_correlation_id()

        if interrupted is not None:
            raise interrupted
        self._raise_escalations(run)
        return result

    async def _worker(self, run: _Run, runner: JobRunner) -> None:
        task = asyncio.current_task()
        while run.queue and not run.cancel_event.is_set():
            job = run.queue.popleft()
            if task is not None:
                run.active[job.job_id] = task
            try:
                await runner.run(job)
            finally:
                run.active.pop(job.job_id, None)

    async def _await_workers(self, run: _Run) -> None:
        """Wait for all workers.

        ``asyncio.wait`` never cancels the workers when this coroutine is
        itself cancelled; the caller decides what happens to them.
        """
        pending = {worker for worker in run.workers if not worker.done()}
        if pending:
            await asyncio.wait(pending)

    async def _finish(self, run: _Run) -> OrchestrationResult:
        """Dispose every remaining job, finalize the state, and notify."""
        self._collect_worker_errors(run)

        for job_id in run.tracker.cancel_pending():
            await run.notifier.notify(
                JobCancelled(job_id=job_id, started=False, reason="cancelled before start")
            )

        for job in run.jobs:
            if run.lifecycle.is_disposed(job.job_id):
                continue
            error = await run.lifecycle.dispose(job)
            await run.notifier.notify(JobDisposed(job_id=job.job_id, error=error))

        if self.config.escalate_dispose_failures and run.lifecycle.failures:
            failed = [job_id for job_id, _ in run.lifecycle.failures]
            run.escalations.append(
                OrchestratorInternalError(f"Disposal failed for {len(failed)} job(s)", failed)
            )

        await run.notifier.drain()
        result = self._complete(run)
        await run.notifier.notify(
            RunFinished(run_id=run.run_id, state=run.tracker.snapshot(), result=result)
        )
        return result

    def _complete(self, run: _Run) -> OrchestrationResult:
        result = run.tracker.finalize(run.timer.duration_ms)
        # A callback registered concurrently lands either in this snapshot or
        # sees run.result set, never both.
        with self._callbacks_lock:
            run.result = result
            callbacks = list(self._callbacks)
        state = run.tracker.snapshot()
        logger.info(
            f"Run {run.run_id} finished: {state.jobs_succeeded} succeeded, "
            f"{state.jobs_failed} failed, {state.jobs_cancelled} cancelled"
        )
        for callback in callbacks:
            self._invoke_callback(callback, result)
        return result

    async def _announce_empty_run(
        self, run: _Run, result: OrchestrationResult
    ) -> OrchestrationResult:
        await run.notifier.notify(RunStarted(run_id=run.run_id, jobs_total=0, max_workers=0))
        await run.notifier.notify(
            RunFinished(run_id=run.run_id, state=run.tracker.snapshot(), result=result)
        )
        return result

    def _cancel_run(self, run: _Run, reason: str = "cancel requested") -> None:
        """Cancel ``run`` on the event loop thread."""
        if run.cancel_event.is_set() or run.result is not None:
            return
        run.cancel_event.set()
        run.queue.clear()

        cancelled = run.tracker.cancel_pending()
        logger.info(f"Cancelling run {run.run_id}: {len(cancelled)} pending job(s) dropped")
        for job_id in cancelled:
            run.notifier.notify_threadsafe(
                JobCancelled(job_id=job_id, started=False, reason=reason)
            )

        for job in run.jobs:
            if not run.tracker.request_cancel(job.job_id):
                continue
            try:
                job.cancel()
            except Exception as e:
                logger.warning(f"Job '{job.job_id}' raised while being cancelled: {e}")

        if self.config.cancel_grace_period is not None:
            run.loop.call_later(self.config.cancel_grace_period, self._abandon_stuck_jobs, run)

    def _abandon_stuck_jobs(self, run: _Run) -> None:
        """Give up on jobs that ignored a cancellation for the whole grace period."""
        if run.result is not None:
            return
        stuck = [
            job.job_id
            for job in run.jobs
            if run.tracker.state_of(job.job_id) is JobState.RUNNING
        ]
        if not stuck:
            return
        logger.error(
            f"Run {run.run_id}: {len(stuck)} job(s) did not stop within "
            f"{self.config.cancel_grace_period}s, abandoning them"
        )
        run.escalations.append(
            OrchestratorInternalError(
                f"{len(stuck)} job(s) did not acknowledge cancellation within "
                f"{self.config.cancel_grace_period}s",
                stuck,
            )
        )
        for job_id in stuck:
            worker = run.active.get(job_id)
            if worker is not None:
                worker.cancel()

    def _collect_worker_errors(self, run: _Run) -> None:
        """Turn crashed or unfinished workers into escalations and terminal jobs."""
        for worker in run.workers:
            if not worker.done() or worker.cancelled():
                continue
            error = worker.exception()
            if error is None:
                continue
            if not isinstance(error, OrchestratorInternalError):
                error = OrchestratorInternalError(f"Worker crashed: {error}")
            run.escalations.append(error)

        for job_id in run.tracker.running_job_ids():
            logger.warning(f"Job '{job_id}' still running at shutdown, recording as cancelled")
            run.tracker.complete(job_id, JobOutcome.CANCELLED)

    def _raise_escalations(self, run: _Run) -> None:
        if not run.escalations:
            return
        if len(run.escalations) == 1:
            raise run.escalations[0]
        job_ids = [job_id for error in run.escalations for job_id in error.job_ids]
        message = "; ".join(str(error) for error in run.escalations)
        raise OrchestratorInternalError(message, job_ids)

    @staticmethod
    def _invoke_callback(callback: FinishedCallback, result: OrchestrationResult) -> None:
        try:
            callback(result)
        except Exception as e:
            name = getattr(callback, "__name__", type(callback).__name__)
            logger.opt(exception=e).warning(f"on_finished callback {name} failed: {e}")
