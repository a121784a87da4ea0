"""Exclusive-access lock guarding a dataset location across processes."""

import fcntl
import logging
import os
from pathlib import Path
from typing import Optional

from ..application.exceptions import LockError, StorageError


class DatasetLock:
    """
    An advisory flock(2) on a lock file next to the dataset directory.

    While held, the file contains the owner's PID for diagnostics. The file is
    left in place on release; only the kernel lock matters. A process that
    dies while holding the lock releases it implicitly, so a leftover file
    never blocks a later run and no takeover step is needed.
    """

    def __init__(self, path: Path):
        self.logger = logging.getLogger(self.__class__.__name__)
        self.path = Path(path)
        self._fd: Optional[int] = None

    @classmethod
    def for_dataset(cls, dataset_dir: Path) -> "DatasetLock":
        dataset_dir = Path(dataset_dir)
        return cls(dataset_dir.with_name(dataset_dir.name + ".lock"))

    @property
    def held(self) -> bool:
        return self._fd is not None

    def _owner_pid(self) -> Optional[int]:
        try:
            return int(self.path.read_text(encoding="ascii").strip())
        except (OSError, ValueError):
            return None

    def acquire(self):
        """
        Takes the lock or fails immediately.

        Raises:
            LockError: If another holder has the lock.
            StorageError: If the lock file cannot be opened or written.
        """

        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd = os.open(self.path, os.O_CREAT | os.O_RDWR, 0o644)
        except OSError as e:
            raise StorageError(f"Cannot create lock {self.path}: {e}") from e

        try:
            fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
        except BlockingIOError:
            os.close(fd)
            owner = self._owner_pid()
            holder = f"process {owner}" if owner is not None else "another process"
            raise LockError(f"{self.path} is held by {holder}") from None
        except OSError as e:
            os.close(fd)
            raise StorageError(f"Cannot lock {self.path}: {e}") from e

        try:
            os.ftruncate(fd, 0)
            os.write(fd, str(os.getpid()).encode("ascii"))
        except OSError as e:
            os.close(fd)
            raise StorageError(f"Cannot write lock {self.path}: {e}") from e

        self._fd = fd
        self.logger.debug(f"Acquired {self.path}")

    def release(self):
        if self._fd is None:
            return
        fd, self._fd = self._fd, None
        try:
            os.ftruncate(fd, 0)
            fcntl.flock(fd, fcntl.LOCK_UN)
        finally:
            os.close(fd)
        self.logger.debug(f"Released {self.path}")

    def __enter__(self) -> "DatasetLock":
        self.acquire()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.release()
