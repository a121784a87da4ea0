"""Filesystem implementation of the ArchiveStore port."""

import contextlib
import logging
import os
from pathlib import Path
from typing import Generator, Iterator, Optional

from tqdm import tqdm

from ..application.domain import ArchiveStore, CancellationToken
from ..application.exceptions import IntegrityError, StorageError


class FileArchiveStore(ArchiveStore):
    """A store that writes byte streams to disk atomically."""

    def __init__(self):
        self.logger = logging.getLogger(self.__class__.__name__)

    @contextlib.contextmanager
    def _atomic_target(self, destination: Path) -> Generator[Path, None, None]:
        """Provides a temporary '.part' path and ensures cleanup."""
        part_path = destination.with_name(destination.name + ".part")
        destination.parent.mkdir(parents=True, exist_ok=True)
        destination.unlink(missing_ok=True)
        try:
            yield part_path
        finally:
            part_path.unlink(missing_ok=True)

    def _write_chunks(
        self,
        stream: Iterator[bytes],
        target_file: Path,
        cancel_token: Optional[CancellationToken],
    ) -> Generator[int, None, None]:
        """Write chunks to a file, yielding the size of each one."""
        with open(target_file, "wb") as f:
            for chunk in stream:
                if cancel_token is not None:
                    cancel_token.raise_if_cancelled()
                f.write(chunk)
                yield len(chunk)
            f.flush()
            os.fsync(f.fileno())

    def _consume_with_progress(
        self,
        progress: Iterator[int],
        total_size: Optional[int],
        desc: str,
        show_progress: bool,
    ) -> int:
        """Consume the write loop, updating a TQDM progress bar."""
        with tqdm(
            total=total_size,
            unit="B",
            unit_scale=True,
            desc=desc,
            disable=not show_progress,
        ) as progress_bar:
            written = 0
            for size in progress:
                written += size
                progress_bar.update(size)
        return written

    def persist(
        self,
        stream: Iterator[bytes],
        destination: Path,
        expected_length: Optional[int] = None,
        cancel_token: Optional[CancellationToken] = None,
        show_progress: bool = False,
    ) -> int:
        """
        Write the entire stream to destination, all or nothing.

        Bytes go to a '.part' sibling that is flushed, synced and checked
        against expected_length before being renamed into place. On any
        failure the '.part' file is removed before the error propagates, and
        a previous file at destination is gone as well.

        Args:
            stream: Iterator of byte chunks.
            destination: The final path of the file.
            expected_length: The announced size, or None when unknown.
            cancel_token: Checked before each chunk is written.
            show_progress: Whether to display a progress bar.

        Returns:
            The number of bytes written.

        Raises:
            IntegrityError: If the byte count differs from expected_length.
            StorageError: If the file cannot be written.
        """

        destination = Path(destination)
        self.logger.info(f"Writing {destination.name}...")

        try:
            with self._atomic_target(destination) as part_path:
                written = self._consume_with_progress(
                    self._write_chunks(stream, part_path, cancel_token),
                    expected_length,
                    destination.name,
                    show_progress,
                )
                if expected_length is not None and written != expected_length:
                    raise IntegrityError(
                        f"Size mismatch for {destination.name}: "
                        f"{written} != {expected_length}"
                    )
                os.replace(part_path, destination)
        except OSError as e:
            raise StorageError(f"Failed to write {destination}: {e}") from e

        self.logger.info(f"Finished writing {destination.name} ({written} bytes)")
        return written
