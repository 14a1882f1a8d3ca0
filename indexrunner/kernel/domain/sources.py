"""File sources of an index configuration.

A source yields absolute file paths lazily. Directory sources walk a
directory (optionally recursively) and filter by wildcard include and
exclude patterns; file sources yield a fixed list of files.
"""

from __future__ import annotations

import os
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from fnmatch import fnmatch
from pathlib import Path

from indexrunner.kernel.exceptions import ValidationError
from indexrunner.kernel.logging import get_logger

logger = get_logger(__name__)

__all__ = ["DirectorySource", "FileListSource", "FileSource", "iter_source_files"]


def _matches(name: str, patterns: tuple[str, ...]) -> bool:
    return any(fnmatch(name.lower(), pattern.lower()) for pattern in patterns)


@dataclass(frozen=True, slots=True)
class DirectorySource:
    """All files under ``path`` whose names match ``include`` and not ``exclude``.

    Attributes
    ----------
    path : str
        Absolute directory path
    recursive : bool
        Descend into subdirectories
    include : tuple[str, ...]
        Wildcard patterns matched against the file name; empty means all files
    exclude : tuple[str, ...]
        Wildcard patterns of file names to skip
    """

    path: str
    recursive: bool = True
    include: tuple[str, ...] = ()
    exclude: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if not self.path:
            raise ValidationError("path", "directory source path cannot be empty")

    def iter_files(self) -> Iterator[str]:
        root = Path(self.path)
        if not root.is_dir():
            raise FileNotFoundError(f"Source directory not found: {self.path}")

        candidates = root.rglob("*") if self.recursive else root.glob("*")
        for file_path in candidates:
            # Skip directories
            if not file_path.is_file():
                continue
            name = file_path.name
            if self.include and not _matches(name, self.include):
                continue
            if self.exclude and _matches(name, self.exclude):
                continue
            yield str(file_path.absolute())


@dataclass(frozen=True, slots=True)
class FileListSource:
    """A fixed list of files. Missing files are still yielded; the builder reports them."""

    paths: tuple[str, ...]

    def iter_files(self) -> Iterator[str]:
        for path in self.paths:
            yield os.path.abspath(path)


FileSource = DirectorySource | FileListSource


def iter_source_files(sources: Iterable[FileSource]) -> Iterator[str]:
    """Chain the files of all ``sources``, skipping duplicates."""
    seen: set[str] = set()
    for source in sources:
        for path in source.iter_files():
            key = os.path.normcase(path)
            if key in seen:
                continue
            seen.add(key)
            yield path
