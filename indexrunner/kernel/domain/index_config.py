"""Domain models for ``kind: Index`` - the configuration of one index build.

The compiler parses index configuration files (XML or YAML) into an
:class:`IndexConfig`, which is then turned into a build job.

YAML example::

    kind: Index
    spec:
      path: ./indexes/project
      sources:
        - directory: src
          recursive: true
          include: ["*.py", "*.md"]
          exclude: ["*_pb2.py"]
        - file: README.md

XML example (the original indexer format)::

    <Index Path="indexes/project">
      <FileSources>
        <Directory Path="src" Recursive="true" Include="*.py;*.md" Exclude="*_pb2.py"/>
        <File Path="README.md"/>
      </FileSources>
    </Index>
"""

from __future__ import annotations

import os
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from indexrunner.kernel.domain.sources import DirectorySource, FileListSource, FileSource

# Separator of wildcard lists written as a single string ("*.py;*.md")
PATTERN_SEPARATOR = ";"


def _resolve(path: str, base_dir: str) -> str:
    """Expand environment variables and resolve ``path`` against ``base_dir``."""
    expanded = os.path.expanduser(os.path.expandvars(path))
    return os.path.normpath(os.path.join(base_dir, expanded))


def _split_patterns(value: Any) -> Any:
    if value is None:
        return []
    if isinstance(value, str):
        return [part.strip() for part in value.split(PATTERN_SEPARATOR) if part.strip()]
    return value


class DirectorySourceSpec(BaseModel):
    """A directory whose files are added to the index."""

    model_config = ConfigDict(extra="forbid")

    directory: str = Field(min_length=1, description="Directory to enumerate")
    recursive: bool = Field(default=True, description="Descend into subdirectories")
    include: list[str] = Field(default_factory=list, description="File name wildcards to add")
    exclude: list[str] = Field(default_factory=list, description="File name wildcards to skip")

    @field_validator("include", "exclude", mode="before")
    @classmethod
    def _split(cls, value: Any) -> Any:
        return _split_patterns(value)

    def to_domain(self, base_dir: str) -> DirectorySource:
        """Convert to the frozen dataclass used at runtime."""
        return DirectorySource(
            path=_resolve(self.directory, base_dir),
            recursive=self.recursive,
            include=tuple(self.include),
            exclude=tuple(self.exclude),
        )


class FileSourceSpec(BaseModel):
    """One or more individual files added to the index."""

    model_config = ConfigDict(extra="forbid")

    file: list[str] = Field(min_length=1, description="Files to add")

    @field_validator("file", mode="before")
    @classmethod
    def _listify(cls, value: Any) -> Any:
        return [value] if isinstance(value, str) else value

    def to_domain(self, base_dir: str) -> FileListSource:
        return FileListSource(paths=tuple(_resolve(path, base_dir) for path in self.file))


class IndexConfig(BaseModel):
    """Compiled configuration of a ``kind: Index`` file."""

    model_config = ConfigDict(extra="forbid")

    path: str = Field(min_length=1, description="Directory the index is written to")
    sources: list[DirectorySourceSpec | FileSourceSpec] = Field(
        min_length=1, description="File sources of the index"
    )

    def index_path(self, base_dir: str) -> str:
        """Absolute index directory, resolved against the configuration file's directory."""
        return _resolve(self.path, base_dir)

    def domain_sources(self, base_dir: str) -> list[FileSource]:
        """Return sources as frozen dataclass instances."""
        return [source.to_domain(base_dir) for source in self.sources]


__all__ = ["DirectorySourceSpec", "FileSourceSpec", "IndexConfig"]
