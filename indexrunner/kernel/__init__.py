"""indexrunner kernel - the public API.

User-space code (``indexrunner.cli`` and applications embedding the
orchestrator) should import from ``indexrunner.kernel``. Kernel-space code
(``indexrunner.kernel.*``, ``indexrunner.compiler.*``,
``indexrunner.drivers.*``) may import from kernel submodules directly.

The exports are grouped by category:
- Exceptions
- Logging
- Orchestration models
- Port protocols
- Events
- Orchestrator
- Configuration
"""

# ============================================================================
# 1. Exceptions
# ============================================================================
from indexrunner.kernel.exceptions import (
    ConfigLoadError,
    ConfigurationError,
    IndexRunnerError,
    JobCancelledError,
    JobExecutionError,
    OrchestratorError,
    OrchestratorInternalError,
    ValidationError,
)

# ============================================================================
# 2. Logging
# ============================================================================
from indexrunner.kernel.logging import configure_logging, get_logger

# ============================================================================
# 3. Orchestration models
# ============================================================================
from indexrunner.kernel.orchestration.models import (
    AggregateState,
    JobOutcome,
    JobResult,
    JobState,
    OrchestrationResult,
    OrchestratorConfig,
    RunOptions,
    RunStatus,
)

# ============================================================================
# 4. Port protocols
# ============================================================================
from indexrunner.kernel.ports import (
    BuildJob,
    IndexBuilder,
    IndexBuilderFactory,
    Observer,
    ObserverManager,
    ProgressReporter,
)

# ============================================================================
# 5. Events
# ============================================================================
from indexrunner.kernel.orchestration.events import (
    Event,
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

# ============================================================================
# 6. Orchestrator
# ============================================================================
from indexrunner.kernel.orchestration.orchestrator import JobOrchestrator, RunHandle

# ============================================================================
# 7. Configuration
# ============================================================================
from indexrunner.kernel.config import IndexRunnerConfig, LoggingConfig, RunDefaults

__all__ = [
    # Exceptions
    "ConfigLoadError",
    "ConfigurationError",
    "IndexRunnerError",
    "JobCancelledError",
    "JobExecutionError",
    "OrchestratorError",
    "OrchestratorInternalError",
    "ValidationError",
    # Logging
    "configure_logging",
    "get_logger",
    # Models
    "AggregateState",
    "JobOutcome",
    "JobResult",
    "JobState",
    "OrchestrationResult",
    "OrchestratorConfig",
    "RunOptions",
    "RunStatus",
    # Ports
    "BuildJob",
    "IndexBuilder",
    "IndexBuilderFactory",
    "Observer",
    "ObserverManager",
    "ProgressReporter",
    # Events
    "Event",
    "JobCancelled",
    "JobCompleted",
    "JobDisposed",
    "JobFailed",
    "JobProgressed",
    "JobStarted",
    "LoggingObserver",
    "RunFinished",
    "RunStarted",
    # Orchestrator
    "JobOrchestrator",
    "RunHandle",
    # Configuration
    "IndexRunnerConfig",
    "LoggingConfig",
    "RunDefaults",
]
