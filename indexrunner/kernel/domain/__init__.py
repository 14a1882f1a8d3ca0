"""Domain models of indexrunner."""

from indexrunner.kernel.domain.index_config import (
    DirectorySourceSpec,
    FileSourceSpec,
    IndexConfig,
)
from indexrunner.kernel.domain.sources import (
    DirectorySource,
    FileListSource,
    FileSource,
    iter_source_files,
)

__all__ = [
    "DirectorySource",
    "DirectorySourceSpec",
    "FileListSource",
    "FileSource",
    "FileSourceSpec",
    "IndexConfig",
    "iter_source_files",
]
