"""Tests for loading index configuration files into build jobs."""

import os

import pytest

from indexrunner.compiler.job_loader import (
    load_index_config,
    load_job,
    load_jobs,
    parse_xml_config,
    parse_yaml_config,
    render_xml_config,
)
from indexrunner.drivers.index_builder import IndexBuildJob
from indexrunner.kernel.domain import DirectorySource, FileListSource, IndexConfig
from indexrunner.kernel.exceptions import ConfigLoadError

XML_CONFIG = """<?xml version="1.0" encoding="utf-8"?>
<Index Path="indexes/project">
  <FileSources>
    <Directory Path="src" Recursive="false" Include="*.py;*.md" Exclude="*_pb2.py"/>
    <File Path="README.md"/>
  </FileSources>
</Index>
"""

YAML_CONFIG = """
kind: Index
spec:
  path: indexes/docs
  sources:
    - directory: docs
      include: ["*.rst"]
    - file: [CHANGES.md, LICENSE]
"""


class TestParseXml:
    """Test the XML index format."""

    def test_parse(self):
        spec = parse_xml_config(XML_CONFIG)

        assert spec["path"] == "indexes/project"
        directory, single_file = spec["sources"]
        assert directory["directory"] == "src"
        assert directory["recursive"] is False
        assert directory["include"] == "*.py;*.md"
        assert single_file == {"file": "README.md"}

    def test_recursive_defaults_to_true(self):
        spec = parse_xml_config(
            '<Index Path="i"><FileSources><Directory Path="d"/></FileSources></Index>'
        )

        assert spec["sources"][0]["recursive"] is True

    @pytest.mark.parametrize(
        ("text", "message"),
        [
            ("<Index Path='i'>", "malformed XML"),
            ("<Catalogue Path='i'/>", "root element must be <Index>"),
            (
                "<Index Path='i'><FileSources><Url Path='x'/></FileSources></Index>",
                "unknown file source <Url>",
            ),
            (
                "<Index Path='i'><FileSources>"
                "<Directory Path='d' Recursive='sometimes'/></FileSources></Index>",
                "invalid boolean",
            ),
        ],
    )
    def test_invalid_documents(self, text, message):
        with pytest.raises(ValueError, match=message):
            parse_xml_config(text)


class TestParseYaml:
    def test_parse(self):
        spec = parse_yaml_config(YAML_CONFIG)

        assert spec["path"] == "indexes/docs"
        assert len(spec["sources"]) == 2

    @pytest.mark.parametrize(
        ("text", "message"),
        [
            ("- a\n- b\n", "expected a mapping"),
            ("kind: Config\nspec: {}\n", "kind: Index"),
            ("kind: Index\nspec: [1]\n", "must be a mapping"),
            ("kind: [Index\n", "malformed YAML"),
        ],
    )
    def test_invalid_documents(self, text, message):
        with pytest.raises(ValueError, match=message):
            parse_yaml_config(text)


class TestRenderXml:
    def test_rendered_config_parses_back(self):
        config = IndexConfig.model_validate(
            {
                "path": "indexes/project",
                "sources": [
                    {"directory": "src", "recursive": False, "include": ["*.py", "*.md"]},
                    {"file": ["README.md"]},
                ],
            }
        )

        text = render_xml_config(config)

        assert text.startswith("<Index")
        assert IndexConfig.model_validate(parse_xml_config(text)) == config


class TestLoadIndexConfig:
    """Every problem with a file surfaces as ConfigLoadError."""

    def test_xml(self, tmp_path):
        path = tmp_path / "project.xml"
        path.write_text(XML_CONFIG)

        config = load_index_config(path)

        assert config.path == "indexes/project"
        assert config.sources[0].include == ["*.py", "*.md"]
        assert config.sources[0].exclude == ["*_pb2.py"]

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigLoadError, match="file not found"):
            load_index_config(tmp_path / "missing.xml")

    def test_unsupported_suffix(self, tmp_path):
        path = tmp_path / "project.json"
        path.write_text("{}")

        with pytest.raises(ConfigLoadError, match="unsupported file type '.json'"):
            load_index_config(path)

    def test_missing_index_path(self, tmp_path):
        path = tmp_path / "project.xml"
        path.write_text("<Index><FileSources><File Path='a'/></FileSources></Index>")

        with pytest.raises(ConfigLoadError, match="path"):
            load_index_config(path)

    def test_no_sources(self, tmp_path):
        path = tmp_path / "project.yaml"
        path.write_text("kind: Index\nspec:\n  path: out\n  sources: []\n")

        with pytest.raises(ConfigLoadError, match="sources"):
            load_index_config(path)

    def test_error_carries_path(self, tmp_path):
        path = tmp_path / "broken.xml"
        path.write_text("<Index")

        with pytest.raises(ConfigLoadError) as exc_info:
            load_index_config(path)

        assert exc_info.value.path == str(path)


class TestLoadJob:
    """Test job construction from a configuration file."""

    def test_paths_resolve_against_config_directory(self, tmp_path):
        path = tmp_path / "project.xml"
        path.write_text(XML_CONFIG)

        loaded = load_job(path)

        job = loaded.job
        assert isinstance(job, IndexBuildJob)
        assert job.job_id == str(path)
        assert job.index_path == str(tmp_path / "indexes" / "project")
        directory, files = job.sources
        assert directory == DirectorySource(
            path=str(tmp_path / "src"),
            recursive=False,
            include=("*.py", "*.md"),
            exclude=("*_pb2.py",),
        )
        assert files == FileListSource(paths=(str(tmp_path / "README.md"),))

    def test_input_files_are_lazy(self, tmp_path):
        path = tmp_path / "docs.yaml"
        path.write_text(YAML_CONFIG)

        # docs/ does not exist yet; nothing is enumerated until iteration
        loaded = load_job(path)
        (tmp_path / "docs").mkdir()
        (tmp_path / "docs" / "index.rst").write_text("x")
        (tmp_path / "docs" / "conf.py").write_text("x")

        assert list(loaded.input_files) == [
            str(tmp_path / "docs" / "index.rst"),
            str(tmp_path / "CHANGES.md"),
            str(tmp_path / "LICENSE"),
        ]

    def test_environment_variables_in_paths(self, tmp_path, monkeypatch):
        monkeypatch.setenv("INDEX_ROOT", str(tmp_path / "out"))
        path = tmp_path / "env.yaml"
        path.write_text("kind: Index\nspec:\n  path: $INDEX_ROOT/env\n  sources:\n    - file: a\n")

        assert load_job(path).job.index_path == os.path.join(str(tmp_path / "out"), "env")


class TestLoadJobs:
    def test_bad_files_do_not_stop_the_others(self, tmp_path):
        good = tmp_path / "good.xml"
        good.write_text(XML_CONFIG)
        bad = tmp_path / "bad.xml"
        bad.write_text("<Nope/>")

        jobs, errors = load_jobs([bad, good, tmp_path / "missing.yaml"])

        assert [job.job_id for job in jobs] == [str(good)]
        assert [error.path for error in errors] == [str(bad), str(tmp_path / "missing.yaml")]

    def test_duplicates_are_loaded_once(self, tmp_path, monkeypatch):
        good = tmp_path / "good.xml"
        good.write_text(XML_CONFIG)
        monkeypatch.chdir(tmp_path)

        jobs, errors = load_jobs([good, "good.xml"])

        assert len(jobs) == 1
        assert errors == []
