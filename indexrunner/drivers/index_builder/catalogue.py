"""Catalogue index builder - a minimal, dependency-free indexing engine.

Writes one JSON line per file (path, size, modification time) to
``catalogue.jsonl`` under the index path. The catalogue is written to a
temporary file and moved into place on commit, so an interrupted build never
leaves a partial catalogue behind.
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import IO

from indexrunner.kernel.logging import get_logger

logger = get_logger(__name__)

__all__ = ["CATALOGUE_FILE_NAME", "CatalogueIndexBuilder"]

CATALOGUE_FILE_NAME = "catalogue.jsonl"


class CatalogueIndexBuilder:
    """IndexBuilder writing a JSON-lines catalogue of the indexed files.

    Examples
    --------
    Example usage::

        builder = CatalogueIndexBuilder("/tmp/index")
        builder.add_file("/etc/hostname")
        builder.commit()
        builder.close()
    """

    def __init__(self, index_path: str | Path) -> None:
        self._index_path = Path(index_path)
        self._handle: IO[str] | None = None
        self._entries = 0
        self._closed = False

    @property
    def index_path(self) -> str:
        return str(self._index_path)

    @property
    def catalogue_path(self) -> Path:
        return self._index_path / CATALOGUE_FILE_NAME

    @property
    def entries(self) -> int:
        return self._entries

    def add_file(self, path: str) -> None:
        """Append ``path`` to the catalogue.

        Raises
        ------
        OSError
            If the file cannot be read
        """
        stat = os.stat(path)
        if not os.path.isfile(path):
            raise IsADirectoryError(f"Not a regular file: {path}")
        if not os.access(path, os.R_OK):
            raise PermissionError(f"File is not readable: {path}")
        record = {"path": path, "size": stat.st_size, "mtime": stat.st_mtime}
        self._open().write(json.dumps(record) + "\n")
        self._entries += 1

    def commit(self) -> None:
        """Move the catalogue written so far into place."""
        handle = self._open()
        handle.flush()
        os.fsync(handle.fileno())
        handle.close()
        self._handle = None
        os.replace(self._temp_path, self.catalogue_path)
        logger.debug(f"Committed {self._entries} entries to {self.catalogue_path}")

    def close(self) -> None:
        """Discard uncommitted entries and release the file handle."""
        if self._closed:
            return
        self._closed = True
        if self._handle is not None:
            self._handle.close()
            self._handle = None
            self._temp_path.unlink(missing_ok=True)
            logger.debug(f"Discarded uncommitted catalogue of {self.index_path}")

    @property
    def _temp_path(self) -> Path:
        return self._index_path / f"{CATALOGUE_FILE_NAME}.tmp"

    def _open(self) -> IO[str]:
        if self._closed:
            raise ValueError(f"Builder for {self.index_path} is closed")
        if self._handle is None:
            self._index_path.mkdir(parents=True, exist_ok=True)
            self._handle = self._temp_path.open("w", encoding="utf-8")
        return self._handle
