"""indexrunner - concurrent index-build orchestration.

Runs many independent index builds under a concurrency bound, isolates
their failures, reports aggregate progress and guarantees every build job is
disposed exactly once before the run is reported finished.
"""

# Version is defined in pyproject.toml and read dynamically
try:
    from importlib.metadata import version

    __version__ = version("indexrunner")
except Exception:
    __version__ = "0.0.0.dev0"  # Fallback for development installs

from indexrunner.kernel import (
    AggregateState,
    BuildJob,
    JobOrchestrator,
    JobOutcome,
    JobResult,
    JobState,
    OrchestrationResult,
    OrchestratorConfig,
    RunHandle,
    RunOptions,
)

__all__ = [
    "AggregateState",
    "BuildJob",
    "JobOrchestrator",
    "JobOutcome",
    "JobResult",
    "JobState",
    "OrchestrationResult",
    "OrchestratorConfig",
    "RunHandle",
    "RunOptions",
    "__version__",
]
