"""Tests for indexrunner.cli.commands.new_cmd module."""

import pytest
from typer.testing import CliRunner

from indexrunner.cli.main import app
from indexrunner.compiler.job_loader import load_index_config


@pytest.fixture
def runner():
    """Fixture providing a Typer CLI test runner."""
    return CliRunner()


class TestNew:
    """Test the new command."""

    def test_creates_loadable_configuration(self, runner, tmp_path):
        target = tmp_path / "configs" / "project.xml"

        result = runner.invoke(
            app,
            [
                "new",
                str(target),
                "--index-path",
                "indexes/project",
                "--source",
                "src",
                "--source",
                "docs",
                "--no-recursive",
                "--include",
                "*.py;*.md",
            ],
        )

        assert result.exit_code == 0, result.output
        assert "Created" in result.output
        config = load_index_config(target)
        assert config.path == "indexes/project"
        assert [source.directory for source in config.sources] == ["src", "docs"]
        assert all(source.recursive is False for source in config.sources)
        assert config.sources[0].include == ["*.py", "*.md"]

    def test_rejects_non_xml_target(self, runner, tmp_path):
        result = runner.invoke(
            app, ["new", str(tmp_path / "project.yaml"), "-p", "out", "-s", "src"]
        )

        assert result.exit_code == 2
        assert not (tmp_path / "project.yaml").exists()

    def test_source_is_required(self, runner, tmp_path):
        result = runner.invoke(app, ["new", str(tmp_path / "project.xml"), "-p", "out"])

        assert result.exit_code == 2

    def test_empty_index_path_is_invalid(self, runner, tmp_path):
        result = runner.invoke(app, ["new", str(tmp_path / "project.xml"), "-p", "", "-s", "src"])

        assert result.exit_code == 2
        assert "Invalid index configuration" in result.output

    def test_existing_file_is_kept_when_declined(self, runner, tmp_path, monkeypatch):
        target = tmp_path / "project.xml"
        target.write_text("<Index/>")
        monkeypatch.setattr("rich.prompt.Confirm.ask", lambda *args, **kwargs: False)

        result = runner.invoke(app, ["new", str(target), "-p", "out", "-s", "src"])

        assert result.exit_code == 1
        assert target.read_text() == "<Index/>"

    def test_force_overwrites(self, runner, tmp_path):
        target = tmp_path / "project.xml"
        target.write_text("<Index/>")

        result = runner.invoke(app, ["new", str(target), "-p", "out", "-s", "src", "--force"])

        assert result.exit_code == 0, result.output
        assert load_index_config(target).path == "out"


class TestVersion:
    @pytest.mark.parametrize("args", [["version"], ["--version"]])
    def test_version(self, runner, args):
        result = runner.invoke(app, args)

        assert result.exit_code == 0
        assert "indexrunner" in result.output
