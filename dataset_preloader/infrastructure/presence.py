"""Sentinel-file implementation of the PresenceGuard port."""

import logging
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import List

from pydantic import ValidationError

from ..application.domain import DownloadedArchive, PresenceGuard
from ..application.exceptions import StorageError

from .presence_models import MaterializationRecord

SENTINEL_NAME = ".materialized.json"


class SentinelPresenceGuard(PresenceGuard):
    """
    Judges presence by a completion sentinel inside the dataset directory.

    A dataset counts as present only when the sentinel parses, was written for
    the configured source URL, and every entry it lists still exists.
    """

    def __init__(self, source_url: str, sentinel_name: str = SENTINEL_NAME):
        self.logger = logging.getLogger(self.__class__.__name__)
        self.source_url = source_url
        self.sentinel_name = sentinel_name

    def _sentinel(self, location: Path) -> Path:
        return Path(location) / self.sentinel_name

    def _read_record(self, sentinel: Path):
        try:
            return MaterializationRecord.model_validate_json(
                sentinel.read_text(encoding="utf-8")
            )
        except (OSError, UnicodeDecodeError, ValidationError) as e:
            self.logger.warning(f"Ignoring unreadable sentinel {sentinel}: {e}")
            return None

    def is_dataset_present(self, location: Path) -> bool:
        """
        Inspects the filesystem to decide whether extraction completed.

        Args:
            location: The dataset directory.

        Returns:
            True only for a fully materialized dataset from the configured
            source; False for a missing, empty or partially populated one.
        """

        sentinel = self._sentinel(location)
        if not sentinel.is_file():
            return False

        record = self._read_record(sentinel)
        if record is None:
            return False

        if record.source_url != self.source_url:
            self.logger.info(
                f"Dataset in {location} came from {record.source_url}, "
                f"not {self.source_url}"
            )
            return False

        missing = [e for e in record.entries if not (Path(location) / e).exists()]
        if missing:
            self.logger.warning(
                f"{len(missing)} extracted entries are missing from {location}, "
                f"e.g. {missing[0]}"
            )
            return False

        return True

    def mark_present(
        self, location: Path, archive: DownloadedArchive, entries: List[str]
    ):
        """
        Writes the sentinel atomically once extraction has completed.

        Raises:
            StorageError: If the sentinel cannot be written.
        """

        record = MaterializationRecord(
            source_url=archive.metadata.source_url,
            archive_name=archive.metadata.filename,
            content_length=archive.metadata.content_length,
            entries=entries,
            completed_at=datetime.now(timezone.utc),
        )
        sentinel = self._sentinel(location)
        tmp_path = sentinel.with_name(sentinel.name + ".tmp")
        try:
            tmp_path.write_text(record.model_dump_json(indent=2), encoding="utf-8")
            os.replace(tmp_path, sentinel)
        except OSError as e:
            tmp_path.unlink(missing_ok=True)
            raise StorageError(f"Cannot write sentinel {sentinel}: {e}") from e

    def clear(self, location: Path):
        """Removes the sentinel so an interrupted refresh never looks complete."""
        try:
            self._sentinel(location).unlink(missing_ok=True)
        except OSError as e:
            raise StorageError(f"Cannot remove sentinel in {location}: {e}") from e
