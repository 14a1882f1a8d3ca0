"""Tests for CatalogueIndexBuilder."""

import json

import pytest

from indexrunner.drivers.index_builder import CATALOGUE_FILE_NAME, CatalogueIndexBuilder


@pytest.fixture
def files(tmp_path):
    data = tmp_path / "data"
    data.mkdir()
    (data / "one.txt").write_text("1")
    (data / "two.txt").write_text("22")
    return data


class TestCatalogueIndexBuilder:
    """Test catalogue writing, commit and discard."""

    def test_commit_writes_one_line_per_file(self, tmp_path, files):
        builder = CatalogueIndexBuilder(tmp_path / "index")

        builder.add_file(str(files / "one.txt"))
        builder.add_file(str(files / "two.txt"))
        builder.commit()
        builder.close()

        lines = (tmp_path / "index" / CATALOGUE_FILE_NAME).read_text().splitlines()
        records = [json.loads(line) for line in lines]
        assert [(r["path"], r["size"]) for r in records] == [
            (str(files / "one.txt"), 1),
            (str(files / "two.txt"), 2),
        ]
        assert builder.entries == 2
        assert not (tmp_path / "index" / f"{CATALOGUE_FILE_NAME}.tmp").exists()

    def test_close_without_commit_discards(self, tmp_path, files):
        builder = CatalogueIndexBuilder(tmp_path / "index")
        builder.add_file(str(files / "one.txt"))

        builder.close()

        assert list((tmp_path / "index").iterdir()) == []

    def test_commit_of_empty_build_writes_empty_catalogue(self, tmp_path):
        builder = CatalogueIndexBuilder(tmp_path / "index")

        builder.commit()

        assert builder.catalogue_path.read_text() == ""

    def test_missing_file_raises_os_error(self, tmp_path):
        builder = CatalogueIndexBuilder(tmp_path / "index")

        with pytest.raises(FileNotFoundError):
            builder.add_file(str(tmp_path / "missing.txt"))
        assert builder.entries == 0

    def test_directory_is_not_a_file(self, tmp_path, files):
        builder = CatalogueIndexBuilder(tmp_path / "index")

        with pytest.raises(IsADirectoryError):
            builder.add_file(str(files))

    def test_closed_builder_rejects_files(self, tmp_path, files):
        builder = CatalogueIndexBuilder(tmp_path / "index")
        builder.close()
        builder.close()

        with pytest.raises(ValueError, match="closed"):
            builder.add_file(str(files / "one.txt"))
