"""IndexBuildJob - adapts an IndexBuilder and its file sources to the BuildJob port."""

from __future__ import annotations

import os
import threading
from collections.abc import Iterable, Iterator
from pathlib import Path
from typing import TYPE_CHECKING

from indexrunner.drivers.index_builder.catalogue import CatalogueIndexBuilder
from indexrunner.kernel.domain.sources import FileSource, iter_source_files
from indexrunner.kernel.exceptions import JobCancelledError
from indexrunner.kernel.logging import get_logger

if TYPE_CHECKING:
    from indexrunner.kernel.ports.build_job import ProgressReporter
    from indexrunner.kernel.ports.index_builder import IndexBuilder, IndexBuilderFactory

logger = get_logger(__name__)

__all__ = ["IndexBuildJob", "directory_size"]


def directory_size(path: str | Path) -> int | None:
    """Total size in bytes of all files under ``path``; None if it cannot be read."""
    root = Path(path)
    if not root.is_dir():
        return None
    total = 0
    try:
        for file_path in root.rglob("*"):
            if file_path.is_file():
                total += file_path.stat().st_size
    except OSError as e:
        logger.debug(f"Could not compute size of {path}: {e}")
        return None
    return total


class IndexBuildJob:
    """Builds one index from a set of file sources.

    Adds the files one at a time, reporting one progress message per file.
    Unreadable files are reported as ``Error: ...`` messages and skipped.
    Cancellation is checked between files and acknowledged by raising
    JobCancelledError. The builder is created lazily and closed on dispose.

    Examples
    --------
    Example usage::

        job = IndexBuildJob(
            job_id="/work/project.xml",
            index_path="/work/indexes/project",
            sources=[DirectorySource("/work/src", include=("*.py",))],
        )
        job.run(print)
        job.dispose()
    """

    def __init__(
        self,
        job_id: str,
        index_path: str,
        sources: Iterable[FileSource],
        builder_factory: IndexBuilderFactory = CatalogueIndexBuilder,
    ) -> None:
        self._job_id = job_id
        self.index_path = os.path.expandvars(index_path)
        self.sources: tuple[FileSource, ...] = tuple(sources)
        self.index_size_bytes: int | None = None
        self._builder_factory = builder_factory
        self._builder: IndexBuilder | None = None
        self._cancelled = threading.Event()
        self._disposed = False

    @property
    def job_id(self) -> str:
        return self._job_id

    @property
    def input_files(self) -> Iterator[str]:
        """Lazily enumerate the files of every source."""
        return iter_source_files(self.sources)

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def run(self, progress: ProgressReporter) -> None:
        if self._disposed:
            raise RuntimeError(f"Job '{self.job_id}' has been disposed")
        builder = self._get_builder()

        for path in self.input_files:
            if self._cancelled.is_set():
                raise JobCancelledError(f"Build of '{self.job_id}' cancelled")
            try:
                builder.add_file(path)
            except OSError as e:
                progress(f"Error: {path}: {e}")
                continue
            progress(path)

        if self._cancelled.is_set():
            raise JobCancelledError(f"Build of '{self.job_id}' cancelled")
        builder.commit()
        self.index_size_bytes = directory_size(self.index_path)
        logger.debug(f"Index {self.index_path} built ({self.index_size_bytes} bytes)")

    def cancel(self) -> None:
        self._cancelled.set()

    def dispose(self) -> None:
        if self._disposed:
            return
        self._disposed = True
        if self._builder is not None:
            self._builder.close()
            self._builder = None

    def _get_builder(self) -> IndexBuilder:
        if self._builder is None:
            self._builder = self._builder_factory(self.index_path)
        return self._builder
