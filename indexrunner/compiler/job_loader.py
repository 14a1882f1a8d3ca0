"""Index configuration loader - turns configuration files into build jobs.

Supports the original XML format (``<Index Path=...><FileSources>...``) and a
``kind: Index`` YAML manifest. Both are validated through the same pydantic
model; any problem with a file surfaces as a ConfigLoadError for that file
only.
"""

from __future__ import annotations

import os
import xml.etree.ElementTree as ET  # nosec B405 - local, user-supplied configuration
from collections.abc import Iterable, Iterator
from pathlib import Path
from typing import Any, NamedTuple

import yaml
from pydantic import ValidationError as PydanticValidationError

from indexrunner.drivers.index_builder import CatalogueIndexBuilder, IndexBuildJob
from indexrunner.kernel.domain.index_config import (
    PATTERN_SEPARATOR,
    DirectorySourceSpec,
    IndexConfig,
)
from indexrunner.kernel.exceptions import ConfigLoadError
from indexrunner.kernel.logging import get_logger
from indexrunner.kernel.ports.index_builder import IndexBuilderFactory

logger = get_logger(__name__)

__all__ = [
    "CONFIG_SUFFIXES",
    "LoadedJob",
    "load_index_config",
    "load_job",
    "load_jobs",
    "parse_xml_config",
    "parse_yaml_config",
    "render_xml_config",
]

XML_SUFFIXES = frozenset({".xml"})
YAML_SUFFIXES = frozenset({".yaml", ".yml"})
CONFIG_SUFFIXES = XML_SUFFIXES | YAML_SUFFIXES


class LoadedJob(NamedTuple):
    """A build job together with its (lazy) input files."""

    job: IndexBuildJob
    input_files: Iterator[str]


# ============================================================================
# Parsing
# ============================================================================


def _xml_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in ("true", "1", "yes"):
        return True
    if normalized in ("false", "0", "no"):
        return False
    raise ValueError(f"invalid boolean attribute value {value!r}")


def parse_xml_config(text: str) -> dict[str, Any]:
    """Parse the XML index format into the ``spec`` mapping of a kind: Index manifest.

    Raises
    ------
    ValueError
        If the document is not well formed or not an ``<Index>`` document
    """
    try:
        root = ET.fromstring(text)  # nosec B314
    except ET.ParseError as e:
        raise ValueError(f"malformed XML: {e}") from e

    if root.tag != "Index":
        raise ValueError(f"root element must be <Index>, got <{root.tag}>")

    sources: list[dict[str, Any]] = []
    for container in root.findall("FileSources"):
        for element in container:
            path = element.get("Path")
            if element.tag == "Directory":
                sources.append(
                    {
                        "directory": path,
                        "recursive": _xml_bool(element.get("Recursive"), True),
                        "include": element.get("Include"),
                        "exclude": element.get("Exclude"),
                    }
                )
            elif element.tag == "File":
                sources.append({"file": path})
            else:
                raise ValueError(f"unknown file source <{element.tag}>")

    return {"path": root.get("Path"), "sources": sources}


def parse_yaml_config(text: str) -> dict[str, Any]:
    """Extract the ``spec`` mapping of a kind: Index YAML manifest.

    Raises
    ------
    ValueError
        If the document is not a kind: Index manifest
    """
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise ValueError(f"malformed YAML: {e}") from e

    if not isinstance(data, dict):
        raise ValueError(f"expected a mapping, got {type(data).__name__}")
    kind = data.get("kind")
    if kind != "Index":
        raise ValueError(f"YAML index configuration must use 'kind: Index', got 'kind: {kind}'")
    spec = data.get("spec")
    if not isinstance(spec, dict):
        raise ValueError("'spec' field in kind: Index must be a mapping")
    return spec


def render_xml_config(config: IndexConfig) -> str:
    """Serialize ``config`` in the XML index format read by :func:`parse_xml_config`."""
    root = ET.Element("Index", {"Path": config.path})
    container = ET.SubElement(root, "FileSources")
    for source in config.sources:
        if isinstance(source, DirectorySourceSpec):
            attributes = {
                "Path": source.directory,
                "Recursive": "true" if source.recursive else "false",
            }
            if source.include:
                attributes["Include"] = PATTERN_SEPARATOR.join(source.include)
            if source.exclude:
                attributes["Exclude"] = PATTERN_SEPARATOR.join(source.exclude)
            ET.SubElement(container, "Directory", attributes)
        else:
            for path in source.file:
                ET.SubElement(container, "File", {"Path": path})
    ET.indent(root)
    return ET.tostring(root, encoding="unicode") + "\n"


def _format_validation_error(error: PydanticValidationError) -> str:
    parts = []
    for item in error.errors():
        location = ".".join(str(part) for part in item["loc"])
        parts.append(f"{location}: {item['msg']}" if location else item["msg"])
    return "; ".join(parts)


def load_index_config(path: str | Path) -> IndexConfig:
    """Read and validate an index configuration file.

    Raises
    ------
    ConfigLoadError
        If the file is missing, unreadable, malformed or invalid
    """
    config_path = Path(path)
    suffix = config_path.suffix.lower()
    if suffix not in CONFIG_SUFFIXES:
        raise ConfigLoadError(str(path), f"unsupported file type '{suffix or config_path.name}'")

    try:
        text = config_path.read_text(encoding="utf-8")
    except FileNotFoundError as e:
        raise ConfigLoadError(str(path), "file not found") from e
    except OSError as e:
        raise ConfigLoadError(str(path), str(e)) from e

    try:
        spec = parse_xml_config(text) if suffix in XML_SUFFIXES else parse_yaml_config(text)
        return IndexConfig.model_validate(spec)
    except PydanticValidationError as e:
        raise ConfigLoadError(str(path), _format_validation_error(e)) from e
    except ValueError as e:
        raise ConfigLoadError(str(path), str(e)) from e


# ============================================================================
# Job construction
# ============================================================================


def load_job(
    path: str | Path, builder_factory: IndexBuilderFactory = CatalogueIndexBuilder
) -> LoadedJob:
    """Load one index configuration file into a build job.

    The job id is the absolute path of the configuration file. Relative paths
    inside the file resolve against the file's directory.

    Raises
    ------
    ConfigLoadError
        If the configuration cannot be turned into a job
    """
    config_path = Path(os.path.abspath(path))
    config = load_index_config(config_path)
    base_dir = str(config_path.parent)

    job = IndexBuildJob(
        job_id=str(config_path),
        index_path=config.index_path(base_dir),
        sources=config.domain_sources(base_dir),
        builder_factory=builder_factory,
    )
    logger.debug(
        "Loaded index configuration {path} -> {index} ({count} sources)",
        path=config_path,
        index=job.index_path,
        count=len(job.sources),
    )
    return LoadedJob(job=job, input_files=job.input_files)


def load_jobs(
    paths: Iterable[str | Path], builder_factory: IndexBuilderFactory = CatalogueIndexBuilder
) -> tuple[list[IndexBuildJob], list[ConfigLoadError]]:
    """Load every configuration file; a bad file never stops the others.

    Duplicate paths are loaded once.

    Returns
    -------
    tuple[list[IndexBuildJob], list[ConfigLoadError]]
        Jobs in input order, and one error per file that failed to load
    """
    jobs: list[IndexBuildJob] = []
    errors: list[ConfigLoadError] = []
    seen: set[str] = set()

    for path in paths:
        key = os.path.normcase(os.path.abspath(path))
        if key in seen:
            logger.debug("Skipping duplicate configuration {}", path)
            continue
        seen.add(key)
        try:
            jobs.append(load_job(path, builder_factory).job)
        except ConfigLoadError as e:
            logger.warning(str(e))
            errors.append(e)

    return jobs, errors
