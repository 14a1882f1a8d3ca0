"""Tests for IndexBuildJob."""

import threading

import pytest

from indexrunner.drivers.index_builder import IndexBuildJob, directory_size
from indexrunner.kernel.domain import DirectorySource, FileListSource
from indexrunner.kernel.exceptions import JobCancelledError


class RecordingBuilder:
    """IndexBuilder double recording calls."""

    instances: list["RecordingBuilder"] = []

    def __init__(self, index_path):
        self.index_path = index_path
        self.added = []
        self.committed = False
        self.closed = 0
        RecordingBuilder.instances.append(self)

    def add_file(self, path):
        if path.endswith(".bad"):
            raise PermissionError(f"Permission denied: '{path}'")
        self.added.append(path)

    def commit(self):
        self.committed = True

    def close(self):
        self.closed += 1


@pytest.fixture(autouse=True)
def _reset_builders():
    RecordingBuilder.instances.clear()
    yield
    RecordingBuilder.instances.clear()


@pytest.fixture
def sources(tmp_path):
    data = tmp_path / "data"
    data.mkdir()
    for name in ("a.txt", "b.txt", "c.bad"):
        (data / name).write_text(name)
    return [DirectorySource(str(data), include=("*.txt", "*.bad"))]


class TestRun:
    """Test a full build."""

    def test_reports_one_message_per_file(self, tmp_path, sources):
        job = IndexBuildJob("cfg.xml", str(tmp_path / "index"), sources, RecordingBuilder)
        messages = []

        job.run(messages.append)

        (builder,) = RecordingBuilder.instances
        assert sorted(builder.added) == sorted(
            str(tmp_path / "data" / name) for name in ("a.txt", "b.txt")
        )
        assert builder.committed
        assert len(messages) == 3
        (error,) = [m for m in messages if m.startswith("Error: ")]
        assert "c.bad" in error
        assert "Permission denied" in error

    def test_real_build_records_index_size(self, tmp_path, sources):
        only_a = FileListSource(paths=(str(tmp_path / "data" / "a.txt"),))
        job = IndexBuildJob("cfg.xml", str(tmp_path / "index"), [only_a])

        job.run(lambda message: None)
        job.dispose()

        assert job.index_size_bytes == directory_size(tmp_path / "index")
        assert job.index_size_bytes > 0

    def test_environment_variables_in_index_path_are_expanded(
        self, tmp_path, sources, monkeypatch
    ):
        monkeypatch.setenv("INDEX_ROOT", str(tmp_path))
        only_a = FileListSource(paths=(str(tmp_path / "data" / "a.txt"),))
        job = IndexBuildJob("cfg.xml", "$INDEX_ROOT/index", [only_a])

        job.run(lambda message: None)
        job.dispose()

        assert job.index_path == f"{tmp_path}/index"
        assert job.index_size_bytes is not None
        assert job.index_size_bytes == directory_size(tmp_path / "index")

    def test_missing_source_directory_fails_the_job(self, tmp_path):
        job = IndexBuildJob(
            "cfg.xml", str(tmp_path / "index"), [DirectorySource(str(tmp_path / "nope"))]
        )

        with pytest.raises(FileNotFoundError):
            job.run(lambda message: None)

    def test_run_after_dispose_is_rejected(self, tmp_path, sources):
        job = IndexBuildJob("cfg.xml", str(tmp_path / "index"), sources, RecordingBuilder)
        job.dispose()

        with pytest.raises(RuntimeError, match="disposed"):
            job.run(lambda message: None)


class TestCancel:
    def test_cancel_between_files(self, tmp_path, sources):
        job = IndexBuildJob("cfg.xml", str(tmp_path / "index"), sources, RecordingBuilder)

        def progress(message):
            job.cancel()

        with pytest.raises(JobCancelledError):
            job.run(progress)

        (builder,) = RecordingBuilder.instances
        assert len(builder.added) <= 1
        assert not builder.committed
        assert job.cancelled

    def test_cancel_from_another_thread_before_run(self, tmp_path, sources):
        job = IndexBuildJob("cfg.xml", str(tmp_path / "index"), sources, RecordingBuilder)
        thread = threading.Thread(target=job.cancel)
        thread.start()
        thread.join()

        with pytest.raises(JobCancelledError):
            job.run(lambda message: None)


class TestDispose:
    def test_dispose_closes_builder_once(self, tmp_path, sources):
        job = IndexBuildJob("cfg.xml", str(tmp_path / "index"), sources, RecordingBuilder)
        job.run(lambda message: None)

        job.dispose()
        job.dispose()

        (builder,) = RecordingBuilder.instances
        assert builder.closed == 1

    def test_dispose_discards_uncommitted_catalogue(self, tmp_path):
        data = tmp_path / "data"
        data.mkdir()
        (data / "a.txt").write_text("a")
        (data / "b.txt").write_text("b")
        job = IndexBuildJob("cfg.xml", str(tmp_path / "index"), [DirectorySource(str(data))])

        with pytest.raises(JobCancelledError):
            job.run(lambda message: job.cancel())
        assert list((tmp_path / "index").glob("*.tmp"))

        job.dispose()

        assert list((tmp_path / "index").iterdir()) == []

    def test_dispose_without_run(self, tmp_path, sources):
        job = IndexBuildJob("cfg.xml", str(tmp_path / "index"), sources, RecordingBuilder)

        job.dispose()

        assert RecordingBuilder.instances == []


class TestDirectorySize:
    def test_missing_directory(self, tmp_path):
        assert directory_size(tmp_path / "missing") is None

    def test_sums_nested_files(self, tmp_path):
        (tmp_path / "sub").mkdir()
        (tmp_path / "a").write_bytes(b"123")
        (tmp_path / "sub" / "b").write_bytes(b"45")

        assert directory_size(tmp_path) == 5
