"""Configuration data models for indexrunner."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal

from indexrunner.kernel.exceptions import ValidationError
from indexrunner.kernel.orchestration.models import OrchestratorConfig, RunOptions


@dataclass(frozen=True, slots=True)
class LoggingConfig:
    """Logging configuration for indexrunner.

    Attributes
    ----------
    level : str, default="INFO"
        Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    format : str, default="structured"
        Output format (console, json, structured, rich)
    output_file : str | None, default=None
        Optional file path to write JSON logs to
    use_color : bool, default=True
        Use ANSI color codes (auto-disabled for non-TTY)
    include_timestamp : bool, default=True
        Include timestamp in log output
    backtrace : bool, default=True
        Enable backtrace for debugging
    diagnose : bool, default=False
        Enable diagnose mode with variable values (leaks paths and values into logs)

    Examples
    --------
    TOML configuration:

    ```toml
    [tool.indexrunner.logging]
    level = "DEBUG"
    format = "rich"
    ```

    Environment variable overrides:

    ```bash
    export INDEXRUNNER_LOG_LEVEL=DEBUG
    export INDEXRUNNER_LOG_FORMAT=json
    export INDEXRUNNER_LOG_FILE=/var/log/indexrunner/build.log
    ```
    """

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    format: Literal["console", "json", "structured", "rich"] = "structured"
    output_file: str | None = None
    use_color: bool = True
    include_timestamp: bool = True
    backtrace: bool = True
    diagnose: bool = False


@dataclass(frozen=True, slots=True)
class RunDefaults:
    """Default run options applied when the command line does not override them.

    Attributes
    ----------
    max_workers : int | None
        Concurrency bound. None means one worker per job.
    use_concurrency : bool
        If False, jobs always run one after another.
    estimate_progress : bool
        Count input files up front to report a completion fraction.
    observer_timeout : float | None
        Seconds a single observer may take to handle an event.
    """

    max_workers: int | None = None
    use_concurrency: bool = True
    estimate_progress: bool = True
    observer_timeout: float | None = 5.0

    def __post_init__(self) -> None:
        if self.max_workers is not None and self.max_workers < 1:
            raise ValidationError("max_workers", "must be >= 1 or unset", self.max_workers)
        if self.observer_timeout is not None and self.observer_timeout <= 0:
            raise ValidationError("observer_timeout", "must be positive", self.observer_timeout)

    def to_run_options(self) -> RunOptions:
        return RunOptions(
            max_workers=self.max_workers,
            use_concurrency=self.use_concurrency,
            estimate_progress=self.estimate_progress,
        )


@dataclass(slots=True)
class IndexRunnerConfig:
    """Complete indexrunner configuration.

    Attributes
    ----------
    logging : LoggingConfig
        Logging configuration
    run : RunDefaults
        Defaults for the ``build`` command
    orchestrator : OrchestratorConfig
        Grace periods and disposal policy of the orchestrator
    auto_close : bool
        Exit without waiting for a key press once a run finished
    silent : bool
        Print plain messages instead of the live progress display

    Examples
    --------
    TOML configuration in pyproject.toml:

    ```toml
    [tool.indexrunner]
    auto_close = true

    [tool.indexrunner.run]
    max_workers = 4

    [tool.indexrunner.orchestrator]
    dispose_grace_period = 10.0
    escalate_dispose_failures = true
    ```
    """

    logging: LoggingConfig = field(default_factory=LoggingConfig)
    run: RunDefaults = field(default_factory=RunDefaults)
    orchestrator: OrchestratorConfig = field(default_factory=OrchestratorConfig)
    auto_close: bool = False
    silent: bool = False
