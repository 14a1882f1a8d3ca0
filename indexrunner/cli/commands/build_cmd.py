"""Build command for indexrunner CLI."""

import asyncio
import dataclasses
from collections.abc import Sequence
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console

from indexrunner.cli.presenter import ConsolePresenter
from indexrunner.cli.switches import BuildOptions, UsageError, resolve_configuration_files
from indexrunner.compiler.config_loader import load_config
from indexrunner.compiler.job_loader import load_jobs
from indexrunner.drivers.observer_manager import LocalObserverManager
from indexrunner.kernel.config.models import IndexRunnerConfig
from indexrunner.kernel.exceptions import (
    ConfigurationError,
    OrchestratorInternalError,
    ValidationError,
)
from indexrunner.kernel.logging import configure_logging, get_logger
from indexrunner.kernel.orchestration.events import LoggingObserver
from indexrunner.kernel.orchestration.models import OrchestrationResult
from indexrunner.kernel.orchestration.orchestrator import JobOrchestrator
from indexrunner.kernel.ports.build_job import BuildJob

console = Console()
logger = get_logger(__name__)

EXIT_FAILED = 1
EXIT_USAGE = 2
EXIT_INTERRUPTED = 130

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
LOG_FORMATS = ("console", "json", "structured", "rich")


def build(
    paths: Annotated[
        list[str] | None,
        typer.Argument(
            help="Index configuration files (.xml, .yaml), list files (.lst) or directories",
            show_default=False,
        ),
    ] = None,
    silent: Annotated[
        bool,
        typer.Option("--silent", "--nogui", help="Print plain messages instead of progress bars"),
    ] = False,
    auto_close: Annotated[
        bool,
        typer.Option("--autoclose", help="Exit as soon as the run has finished"),
    ] = False,
    no_progress: Annotated[
        bool,
        typer.Option("--noprogress", help="Do not count input files to estimate progress"),
    ] = False,
    no_multithreading: Annotated[
        bool,
        typer.Option("--nomultithreading", help="Build one index at a time"),
    ] = False,
    max_workers: Annotated[
        str | None,
        typer.Option(
            "--maxworkers", metavar="N|CPU", help="Maximum number of indexes built concurrently"
        ),
    ] = None,
    config_path: Annotated[
        Path | None,
        typer.Option("--config", "-c", help="Path to an indexrunner configuration file"),
    ] = None,
    log_level: Annotated[
        str | None,
        typer.Option("--log-level", help="Log level: debug|info|warning|error"),
    ] = None,
    log_format: Annotated[
        str | None,
        typer.Option("--log-format", help="Log format: console|json|structured|rich"),
    ] = None,
) -> None:
    """Build the indexes described by the given configuration files.

    Each configuration becomes one build job. Jobs run concurrently up to
    --maxworkers; a failing job never stops the others.

    Examples
    --------
    indexrunner build project.xml
    indexrunner build indexes.lst --maxworkers CPU --silent
    indexrunner build ./configs --nomultithreading --autoclose
    """
    try:
        config = load_config(config_path)
        _configure_logging(config, log_level, log_format)
    except FileNotFoundError as e:
        console.print(f"[red]✗ Configuration file not found:[/red] {e}")
        raise typer.Exit(EXIT_USAGE) from e
    except (ConfigurationError, ValidationError) as e:
        console.print(f"[red]✗ {e}[/red]")
        raise typer.Exit(EXIT_USAGE) from e

    options = BuildOptions.from_config(
        config,
        silent=True if silent else None,
        auto_close=True if auto_close else None,
        no_progress=no_progress,
        no_multithreading=no_multithreading,
        max_workers=max_workers,
    )

    try:
        files = resolve_configuration_files(paths or [])
    except UsageError as e:
        console.print(f"[red]✗ {e}[/red]")
        raise typer.Exit(EXIT_USAGE) from e

    jobs, load_errors = load_jobs(files)
    presenter = ConsolePresenter(console, silent=options.silent)
    presenter.print_load_errors(load_errors)

    try:
        result = asyncio.run(_run_jobs(jobs, options, config, presenter))
    except KeyboardInterrupt as e:
        console.print("\n[yellow]Interrupted, all jobs were stopped and disposed[/yellow]")
        raise typer.Exit(EXIT_INTERRUPTED) from e
    except OrchestratorInternalError as e:
        logger.error(f"Orchestration failed: {e}")
        console.print(f"[red]✗ Orchestration failed:[/red] {e}")
        raise typer.Exit(EXIT_FAILED) from e

    presenter.print_summary(result, load_errors)
    presenter.wait_for_dismissal(options.auto_close)

    if load_errors or result.failed:
        raise typer.Exit(EXIT_FAILED)


def _configure_logging(
    config: IndexRunnerConfig, log_level: str | None, log_format: str | None
) -> None:
    logging_config = config.logging
    overrides: dict[str, str] = {}
    if log_level:
        level = log_level.upper()
        overrides["level"] = "WARNING" if level == "WARN" else level
    if log_format:
        overrides["format"] = log_format.lower()

    if overrides.get("level", logging_config.level) not in LOG_LEVELS:
        raise ValidationError("--log-level", "must be debug|info|warning|error", log_level)
    if overrides.get("format", logging_config.format) not in LOG_FORMATS:
        raise ValidationError("--log-format", "must be console|json|structured|rich", log_format)

    if overrides:
        logging_config = dataclasses.replace(logging_config, **overrides)
    configure_logging(**dataclasses.asdict(logging_config))


async def _run_jobs(
    jobs: Sequence[BuildJob],
    options: BuildOptions,
    config: IndexRunnerConfig,
    presenter: ConsolePresenter,
) -> OrchestrationResult:
    async with LocalObserverManager(observer_timeout=config.run.observer_timeout) as observers:
        observers.register(LoggingObserver(), observer_id="logging")
        orchestrator = JobOrchestrator(observer_manager=observers, config=config.orchestrator)
        presenter.attach(observers, orchestrator)
        handle = orchestrator.start(jobs, options.to_run_options())
        return await handle
