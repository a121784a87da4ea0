"""
Infrastructure adapter for verifying archive checksums.
"""

import hashlib
import logging
from pathlib import Path
from typing import Optional

from ..application.domain import DownloadedArchive, Hasher
from ..application.exceptions import ChecksumMismatchError, StorageError


class Sha256Hasher(Hasher):
    """An adapter that implements the Hasher port using SHA256."""

    def __init__(self, expected_digest: Optional[str] = None, chunk_size: int = 65536):
        """Initializes the hasher; without an expected digest it is a no-op."""
        self.logger = logging.getLogger(self.__class__.__name__)
        self.expected_digest = expected_digest.lower() if expected_digest else None
        self.chunk_size = chunk_size

    def _calculate_sha256(self, file_path: Path) -> str:
        """Perform the blocking I/O work of hashing a file."""

        self.logger.info(f"Computing checksum for {file_path.name}...")

        hasher = hashlib.sha256()
        try:
            with open(file_path, "rb") as f:
                while chunk := f.read(self.chunk_size):
                    hasher.update(chunk)
        except OSError as e:
            raise StorageError(f"Cannot read {file_path}: {e}") from e
        return hasher.hexdigest()

    def verify(self, archive: DownloadedArchive) -> bool:
        """
        Verify the archive against the configured digest, if any.

        A mismatching archive is deleted so it can never be extracted.

        Args:
            archive: The DownloadedArchive object representing the file.

        Returns:
            True if a checksum was compared, False if none is configured.

        Raises:
            ChecksumMismatchError: If verification fails.
        """

        if self.expected_digest is None:
            return False

        calculated_hash = self._calculate_sha256(archive.path)

        if calculated_hash != self.expected_digest:
            archive.path.unlink(missing_ok=True)
            raise ChecksumMismatchError(
                f"Checksum mismatch for {archive.path.name}. "
                f"Expected {self.expected_digest}, got {calculated_hash}"
            )

        self.logger.info(
            f"Checksum for {archive.path.name} verified successfully."
        )
        return True
