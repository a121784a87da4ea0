"""Tests for the sentinel-based presence guard."""

from pathlib import Path

import pytest

from conftest import SOURCE_URL
from dataset_preloader.application.domain import (
    DownloadedArchive,
    RemoteArchiveMetadata,
)
from dataset_preloader.infrastructure.presence import (
    SENTINEL_NAME,
    SentinelPresenceGuard,
)


@pytest.fixture
def guard() -> SentinelPresenceGuard:
    return SentinelPresenceGuard(source_url=SOURCE_URL)


@pytest.fixture
def archive(tmp_path: Path) -> DownloadedArchive:
    metadata = RemoteArchiveMetadata(
        source_url=SOURCE_URL, filename="prim_fwd.tar.gz", content_length=1700
    )
    return DownloadedArchive(
        path=tmp_path / "dl" / "prim_fwd.tar.gz", size_bytes=1700, metadata=metadata
    )


@pytest.fixture
def materialized(tmp_path: Path, guard, archive) -> Path:
    location = tmp_path / "dataset"
    (location / "prim_fwd").mkdir(parents=True)
    (location / "prim_fwd" / "train.txt").write_text("data")
    guard.mark_present(location, archive, ["prim_fwd/train.txt"])
    return location


class TestIsDatasetPresent:
    def test_missing_directory(self, tmp_path: Path, guard):
        assert guard.is_dataset_present(tmp_path / "nowhere") is False

    def test_empty_directory(self, tmp_path: Path, guard):
        assert guard.is_dataset_present(tmp_path) is False

    def test_files_without_sentinel(self, tmp_path: Path, guard):
        (tmp_path / "prim_fwd").mkdir()
        (tmp_path / "prim_fwd" / "train.txt").write_text("data")
        (tmp_path / "prim_fwd.tar.gz").write_bytes(b"archive but no extraction")

        assert guard.is_dataset_present(tmp_path) is False

    def test_fully_materialized(self, guard, materialized: Path):
        assert guard.is_dataset_present(materialized) is True

    def test_missing_entry(self, guard, materialized: Path):
        (materialized / "prim_fwd" / "train.txt").unlink()

        assert guard.is_dataset_present(materialized) is False

    def test_other_source(self, materialized: Path):
        other = SentinelPresenceGuard(source_url="https://example.test/other.tar.gz")

        assert other.is_dataset_present(materialized) is False

    def test_invalid_sentinel(self, tmp_path: Path, guard):
        (tmp_path / SENTINEL_NAME).write_text("{not json")

        assert guard.is_dataset_present(tmp_path) is False

    def test_sentinel_missing_fields(self, tmp_path: Path, guard):
        (tmp_path / SENTINEL_NAME).write_text('{"source_url": "%s"}' % SOURCE_URL)

        assert guard.is_dataset_present(tmp_path) is False


class TestMarkAndClear:
    def test_sentinel_records_archive(self, guard, materialized: Path):
        text = (materialized / SENTINEL_NAME).read_text()

        assert "prim_fwd.tar.gz" in text
        assert "prim_fwd/train.txt" in text
        assert not (materialized / (SENTINEL_NAME + ".tmp")).exists()

    def test_clear(self, guard, materialized: Path):
        guard.clear(materialized)

        assert not (materialized / SENTINEL_NAME).exists()
        assert guard.is_dataset_present(materialized) is False

    def test_clear_without_sentinel(self, tmp_path: Path, guard):
        guard.clear(tmp_path)
