"""
Infrastructure adapter that unpacks compressed tar archives.
"""

import contextlib
import logging
import os
import posixpath
import shutil
import tarfile
from pathlib import Path
from typing import Generator, List, Optional

import zstandard

from ..application.domain import ArchiveExtractor, CancellationToken
from ..application.exceptions import (
    CorruptArchiveError,
    PathTraversalError,
    PipelineError,
    StorageError,
)

# Magic bytes -> tarfile stream compression ("zst" is handled by zstandard)
_MAGIC_NUMBERS = (
    (b"\x1f\x8b", "gz"),
    (b"BZh", "bz2"),
    (b"\xfd7zXZ\x00", "xz"),
    (b"\x28\xb5\x2f\xfd", "zst"),
)


def detect_compression(archive_path: Path) -> str:
    """Returns 'gz', 'bz2', 'xz', 'zst' or '' for an uncompressed tar."""
    with open(archive_path, "rb") as fh:
        head = fh.read(6)
    for magic, compression in _MAGIC_NUMBERS:
        if head.startswith(magic):
            return compression
    return ""


class TarArchiveExtractor(ArchiveExtractor):
    """
    An adapter that implements the ArchiveExtractor port for tarballs.

    Entries are unpacked into a hidden staging directory inside the target
    and only promoted to their final place once the whole archive has been
    read, so a failure never leaves a half-extracted tree behind.
    """

    def __init__(self):
        self.logger = logging.getLogger(self.__class__.__name__)

    @contextlib.contextmanager
    def _open_tar(
        self, archive_path: Path
    ) -> Generator[tarfile.TarFile, None, None]:
        """Opens the archive as a sequential tar stream behind its decompressor."""
        compression = detect_compression(archive_path)
        self.logger.debug(
            f"{archive_path.name} compression: {compression or 'none'}"
        )
        with open(archive_path, "rb") as in_fh:
            if compression == "zst":
                decompressor = zstandard.ZstdDecompressor()
                with decompressor.stream_reader(in_fh) as reader:
                    with tarfile.open(fileobj=reader, mode="r|") as tar:
                        yield tar
            else:
                with tarfile.open(fileobj=in_fh, mode=f"r|{compression}") as tar:
                    yield tar

    def _check_member(self, member: tarfile.TarInfo, root: Path):
        """Rejects entries that would land outside root."""
        name = member.name
        if os.path.isabs(name) or name.startswith(("/", "\\")):
            raise PathTraversalError(f"Absolute path in archive: {name}")

        destination = (root / name).resolve()
        if not destination.is_relative_to(root):
            raise PathTraversalError(f"Entry escapes target directory: {name}")

        if member.issym() or member.islnk():
            link = member.linkname
            if os.path.isabs(link):
                raise PathTraversalError(f"Absolute link in archive: {name} -> {link}")
            base = destination.parent if member.issym() else root
            if not (base / link).resolve().is_relative_to(root):
                raise PathTraversalError(
                    f"Link escapes target directory: {name} -> {link}"
                )

    def _unpack(
        self,
        archive_path: Path,
        staging: Path,
        cancel_token: Optional[CancellationToken],
    ) -> List[str]:
        """Streams every entry of the archive into staging."""
        entries = []
        with self._open_tar(archive_path) as tar:
            for member in tar:
                if cancel_token is not None:
                    cancel_token.raise_if_cancelled()
                self._check_member(member, staging)
                tar.extract(member, staging, filter="data")
                if member.isfile():
                    entries.append(posixpath.normpath(member.name))
        return entries

    def _promote(self, staging: Path, target_dir: Path):
        """Moves the staged top-level entries into target_dir."""
        for child in staging.iterdir():
            destination = target_dir / child.name
            if destination.is_dir() and not destination.is_symlink():
                shutil.rmtree(destination)
            elif destination.exists() or destination.is_symlink():
                destination.unlink()
            os.replace(child, destination)

    def extract(
        self,
        archive_path: Path,
        target_dir: Path,
        cancel_token: Optional[CancellationToken] = None,
    ) -> List[str]:
        """
        Unpack a (possibly compressed) tar archive into target_dir.

        Args:
            archive_path: The stored archive.
            target_dir: The directory receiving the entries.
            cancel_token: Checked before each entry is written.

        Returns:
            The relative paths of the regular files that were extracted.

        Raises:
            CorruptArchiveError: If the compression or tar structure is invalid.
            PathTraversalError: If an entry would escape target_dir.
            StorageError: If entries cannot be written.
        """

        archive_path = Path(archive_path)
        target_dir = Path(target_dir).resolve()
        staging = target_dir / f".{archive_path.name}.extracting"

        self.logger.info(f"Extracting {archive_path.name} into {target_dir}...")
        try:
            if archive_path.stat().st_size == 0:
                raise CorruptArchiveError(f"{archive_path.name} is empty")
            target_dir.mkdir(parents=True, exist_ok=True)
            shutil.rmtree(staging, ignore_errors=True)
            staging.mkdir()
            try:
                entries = self._unpack(archive_path, staging, cancel_token)
                self._promote(staging, target_dir)
            finally:
                shutil.rmtree(staging, ignore_errors=True)
        except PipelineError:
            raise
        except tarfile.FilterError as e:
            raise PathTraversalError(
                f"Unsafe entry in {archive_path.name}: {e}"
            ) from e
        except (tarfile.TarError, EOFError, zstandard.ZstdError) as e:
            raise CorruptArchiveError(
                f"Failed to unpack {archive_path.name}: {e}"
            ) from e
        except OSError as e:
            raise StorageError(
                f"Failed to write entries of {archive_path.name}: {e}"
            ) from e

        self.logger.info(
            f"Finished extracting {len(entries)} files from {archive_path.name}"
        )
        return entries
