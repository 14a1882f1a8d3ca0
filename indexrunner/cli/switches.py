"""Command line switch handling for ``indexrunner build``.

Resolves the positional arguments (configuration files, list files and
directories) to configuration file paths and folds command line switches
over the configured run defaults.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from indexrunner.compiler.job_loader import CONFIG_SUFFIXES
from indexrunner.kernel.exceptions import IndexRunnerError
from indexrunner.kernel.logging import get_logger
from indexrunner.kernel.orchestration.models import RunOptions

if TYPE_CHECKING:
    from collections.abc import Iterable

    from indexrunner.kernel.config.models import IndexRunnerConfig

logger = get_logger(__name__)

__all__ = [
    "LIST_SUFFIX",
    "BuildOptions",
    "UsageError",
    "parse_max_workers",
    "read_list_file",
    "resolve_configuration_files",
]

LIST_SUFFIX = ".lst"
COMMENT_PREFIXES = ("#", "'")
CPU_KEYWORD = "cpu"


class UsageError(IndexRunnerError):
    """The command line cannot be acted upon (exit code 2)."""

    pass


def read_list_file(path: Path) -> list[Path]:
    """Read a list file: one configuration path per line.

    Blank lines and lines starting with ``#`` or ``'`` are ignored. Relative
    entries resolve against the directory of the list file.

    Raises
    ------
    UsageError
        If the list file does not exist or cannot be read
    """
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError as e:
        raise UsageError(f"List file not found: {path}") from e
    except OSError as e:
        raise UsageError(f"Cannot read list file {path}: {e}") from e

    entries: list[Path] = []
    for line in text.splitlines():
        entry = line.strip()
        if not entry or entry.startswith(COMMENT_PREFIXES):
            continue
        entry_path = Path(os.path.expandvars(entry)).expanduser()
        if not entry_path.is_absolute():
            entry_path = path.parent / entry_path
        entries.append(entry_path)
    return entries


def _configuration_files_in(directory: Path) -> list[Path]:
    return sorted(
        child
        for child in directory.iterdir()
        if child.is_file() and child.suffix.lower() in CONFIG_SUFFIXES
    )


def resolve_configuration_files(arguments: Iterable[str | Path]) -> list[Path]:
    """Expand positional arguments into absolute configuration file paths.

    - ``*.lst`` arguments are read as list files
    - Directories contribute every configuration file directly inside them
    - Anything else is taken as a configuration file path as-is; missing
      configuration files are reported later, per file, by the job loader

    Order is preserved and duplicates are dropped.

    Raises
    ------
    UsageError
        If a list file or directory argument does not exist, or no
        configuration file was named at all
    """
    resolved: list[Path] = []
    seen: set[str] = set()

    def add(candidate: Path) -> None:
        absolute = Path(os.path.abspath(candidate))
        key = os.path.normcase(str(absolute))
        if key not in seen:
            seen.add(key)
            resolved.append(absolute)

    for argument in arguments:
        path = Path(argument)
        if path.suffix.lower() == LIST_SUFFIX:
            for entry in read_list_file(path):
                add(entry)
        elif path.is_dir():
            found = _configuration_files_in(path)
            if not found:
                logger.warning("No configuration files in directory {}", path)
            for entry in found:
                add(entry)
        elif not path.suffix and not path.exists():
            raise UsageError(f"Directory not found: {path}")
        else:
            add(path)

    if not resolved:
        raise UsageError("No index configuration specified")
    return resolved


def parse_max_workers(value: str | None) -> int | None:
    """Parse the ``--maxworkers`` value.

    ``CPU`` (any case) means the number of processors. An unparseable or
    non-positive value leaves the run unbounded and logs a warning.

    Examples
    --------
    >>> parse_max_workers("3")
    3
    >>> parse_max_workers(None) is None
    True
    """
    if value is None:
        return None
    text = value.strip()
    if text.lower() == CPU_KEYWORD:
        return os.cpu_count() or 1
    try:
        workers = int(text)
    except ValueError:
        logger.warning("Ignoring invalid --maxworkers value {!r}, running unbounded", value)
        return None
    if workers < 1:
        logger.warning("Ignoring --maxworkers {}, must be at least 1; running unbounded", workers)
        return None
    return workers


@dataclass(frozen=True, slots=True)
class BuildOptions:
    """Effective options of one ``build`` invocation.

    Command line switches win over the configured defaults; ``None`` means
    the switch was not given.
    """

    silent: bool = False
    auto_close: bool = False
    estimate_progress: bool = True
    use_concurrency: bool = True
    max_workers: int | None = None

    @classmethod
    def from_config(
        cls,
        config: IndexRunnerConfig,
        *,
        silent: bool | None = None,
        auto_close: bool | None = None,
        no_progress: bool = False,
        no_multithreading: bool = False,
        max_workers: str | None = None,
    ) -> BuildOptions:
        defaults = config.run
        workers = defaults.max_workers if max_workers is None else parse_max_workers(max_workers)
        return cls(
            silent=config.silent if silent is None else silent,
            auto_close=config.auto_close if auto_close is None else auto_close,
            estimate_progress=defaults.estimate_progress and not no_progress,
            use_concurrency=defaults.use_concurrency and not no_multithreading,
            max_workers=workers,
        )

    def to_run_options(self) -> RunOptions:
        return RunOptions(
            max_workers=self.max_workers,
            use_concurrency=self.use_concurrency,
            estimate_progress=self.estimate_progress,
        )
