"""Index Builder Port - interface to the external indexing engine.

An index builder receives files one at a time and persists them into an
index at ``index_path``. The build job owns its builder exclusively and
closes it exactly once.
"""

from __future__ import annotations

from abc import abstractmethod
from collections.abc import Callable
from typing import Protocol, runtime_checkable


@runtime_checkable
class IndexBuilder(Protocol):
    """Port interface for building one index.

    Requirements
    ------------
    - ``add_file`` raises ``OSError`` for a file that cannot be read; the
      caller records it as a non-fatal diagnostic and carries on.
    - ``commit`` makes everything added so far durable.
    - ``close`` releases every resource and is safe to call after ``commit``
      or without it (uncommitted work is discarded).
    """

    @property
    @abstractmethod
    def index_path(self) -> str:
        """Directory the index is written to."""
        ...

    @abstractmethod
    def add_file(self, path: str) -> None:
        """Add a single file to the index."""
        ...

    @abstractmethod
    def commit(self) -> None:
        """Persist the files added so far."""
        ...

    @abstractmethod
    def close(self) -> None:
        """Release the builder."""
        ...


IndexBuilderFactory = Callable[[str], IndexBuilder]

__all__ = ["IndexBuilder", "IndexBuilderFactory"]
