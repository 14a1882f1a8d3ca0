"""Exactly-once disposal of build jobs.

Every job handed to the orchestrator owns resources (an open index builder,
file handles) that must be released exactly once, whether the job ran,
failed, was cancelled, or never started. The JobLifecycleManager is the only
place that calls ``dispose`` and it refuses to do so twice.
"""

from __future__ import annotations

import asyncio
import inspect
from typing import TYPE_CHECKING, Any

from indexrunner.kernel.exceptions import OrchestratorInternalError
from indexrunner.kernel.logging import get_logger

if TYPE_CHECKING:
    from indexrunner.kernel.ports.build_job import BuildJob

logger = get_logger(__name__)

__all__ = ["DISPOSE_METHODS", "DisposeTimeoutError", "JobLifecycleManager"]

# Tried in order; the first one present on the job is called
DISPOSE_METHODS = ["dispose", "aclose", "close"]


class DisposeTimeoutError(TimeoutError):
    """A job's dispose call did not return within the grace period."""

    def __init__(self, job_id: str, grace_period: float) -> None:
        self.job_id = job_id
        self.grace_period = grace_period
        super().__init__(f"Dispose of job '{job_id}' did not finish within {grace_period}s")


class JobLifecycleManager:
    """Disposes build jobs exactly once.

    Parameters
    ----------
    dispose_grace_period : float | None
        Seconds a single dispose call may take before it is logged as stuck
        and abandoned. None waits indefinitely.

    Examples
    --------
    Example usage::

        lifecycle = JobLifecycleManager(dispose_grace_period=5.0)
        error = await lifecycle.dispose(job)
        lifecycle.is_disposed(job.job_id)
    True
    """

    def __init__(self, dispose_grace_period: float | None = 30.0) -> None:
        self.dispose_grace_period = dispose_grace_period
        self._disposed: dict[str, int] = {}
        self._failures: list[tuple[str, BaseException]] = []

    def is_disposed(self, job_id: str) -> bool:
        return job_id in self._disposed

    @property
    def disposed_count(self) -> int:
        return len(self._disposed)

    @property
    def failures(self) -> list[tuple[str, BaseException]]:
        """(job_id, error) for every dispose call that raised or timed out."""
        return list(self._failures)

    async def dispose(self, job: BuildJob) -> BaseException | None:
        """Dispose ``job`` and return the error it raised, if any.

        Dispose errors are logged and recorded, never raised.

        Raises
        ------
        OrchestratorInternalError
            If the job was already disposed
        """
        job_id = job.job_id
        if job_id in self._disposed:
            raise OrchestratorInternalError(f"Job '{job_id}' disposed twice", [job_id])
        self._disposed[job_id] = len(self._disposed)

        method = self._find_dispose_method(job)
        if method is None:
            logger.debug(f"Job '{job_id}' has nothing to dispose")
            return None

        try:
            await self._call_with_grace(job_id, method)
        except Exception as e:
            logger.warning(f"Dispose of job '{job_id}' failed: {e}")
            self._failures.append((job_id, e))
            return e

        logger.debug(f"Disposed job '{job_id}'")
        return None

    async def _call_with_grace(self, job_id: str, method: Any) -> None:
        async def _invoke() -> None:
            if inspect.iscoroutinefunction(method):
                await method()
                return
            result = await asyncio.to_thread(method)
            if inspect.isawaitable(result):
                await result

        if self.dispose_grace_period is None:
            await _invoke()
            return
        try:
            await asyncio.wait_for(_invoke(), timeout=self.dispose_grace_period)
        except TimeoutError as e:
            raise DisposeTimeoutError(job_id, self.dispose_grace_period) from e

    @staticmethod
    def _find_dispose_method(job: BuildJob) -> Any | None:
        for method_name in DISPOSE_METHODS:
            method = getattr(job, method_name, None)
            if callable(method):
                return method
        return None
