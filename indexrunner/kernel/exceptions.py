"""Core exception hierarchy for indexrunner.

All indexrunner exceptions inherit from IndexRunnerError so callers can catch
everything the framework raises with a single except clause. Per-job failures
(ConfigLoadError, JobExecutionError) are recorded, not propagated; only
OrchestratorInternalError crosses the orchestrator boundary.
"""

from __future__ import annotations

# ============================================================================
# Base Exception
# ============================================================================


class IndexRunnerError(Exception):
    """Base exception for all indexrunner errors.

    Catch this to handle all indexrunner-specific errors.
    """

    pass


# ============================================================================
# Configuration & Validation Errors
# ============================================================================


class ConfigurationError(IndexRunnerError):
    """Raised when application configuration is invalid or missing.

    Examples
    --------
    Example usage::

        raise ConfigurationError("logging", "unknown format 'xml'")
    """

    def __init__(self, component: str, reason: str) -> None:
        """Initialize configuration error.

        Args
        ----
            component: Name of the component with invalid configuration
            reason: Explanation of what's wrong
        """
        super().__init__(f"Configuration error in '{component}': {reason}")
        self.component = component
        self.reason = reason


class ValidationError(IndexRunnerError):
    """Raised when data validation fails.

    Examples
    --------
    Example usage::

        raise ValidationError("max_workers", "must be >= 1", value=0)
    """

    def __init__(self, field: str, constraint: str, value: object = None) -> None:
        """Initialize validation error.

        Args
        ----
            field: Name of the field that failed validation
            constraint: Description of the validation constraint
            value: The invalid value (optional)
        """
        if value is not None:
            msg = f"Validation failed for '{field}': {constraint} (got {value!r})"
        else:
            msg = f"Validation failed for '{field}': {constraint}"
        super().__init__(msg)
        self.field = field
        self.constraint = constraint
        self.value = value


class ConfigLoadError(IndexRunnerError):
    """Raised when an index configuration file cannot be turned into a build job.

    Surfaced per file; a bad configuration never aborts the other files.

    Examples
    --------
    Example usage::

        raise ConfigLoadError("/work/index.xml", "root element must be <Index>")
    """

    def __init__(self, path: str, reason: str) -> None:
        super().__init__(f"Could not load index configuration '{path}': {reason}")
        self.path = path
        self.reason = reason


# ============================================================================
# Job Errors
# ============================================================================


class JobExecutionError(IndexRunnerError):
    """A build job failed while running. Isolated to that job."""

    def __init__(self, job_id: str, original_error: BaseException) -> None:
        self.job_id = job_id
        self.original_error = original_error
        super().__init__(f"Job '{job_id}' failed: {original_error}")


class JobCancelledError(IndexRunnerError):
    """Raised by a build job to acknowledge a cancellation request."""

    pass


# ============================================================================
# Orchestration Errors
# ============================================================================


class OrchestratorError(IndexRunnerError):
    """Raised when the orchestrator is used incorrectly.

    Examples
    --------
    Example usage::

        raise OrchestratorError("A run is already in progress")
    """

    pass


class OrchestratorInternalError(OrchestratorError):
    """An orchestration invariant was violated.

    Fatal to the run. Raised from ``RunHandle.wait()`` only after every
    admitted job has been disposed.
    """

    def __init__(self, message: str, job_ids: list[str] | None = None) -> None:
        super().__init__(message)
        self.job_ids = job_ids or []


__all__ = [
    "ConfigLoadError",
    "ConfigurationError",
    "IndexRunnerError",
    "JobCancelledError",
    "JobExecutionError",
    "OrchestratorError",
    "OrchestratorInternalError",
    "ValidationError",
]
