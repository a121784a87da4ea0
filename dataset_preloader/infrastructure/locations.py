"""Filesystem implementation of the LocationResolver port."""

import logging
import os
import tempfile
from pathlib import Path
from typing import Optional

from ..application.domain import LocationResolver
from ..application.exceptions import StorageError


class FilesystemLocationResolver(LocationResolver):
    """
    Resolves the download and dataset directories.

    By default the raw archive goes to a scratch directory under the system
    temp dir and the extracted dataset under the current working directory.
    Either location can be overridden explicitly.
    """

    def __init__(
        self,
        data_dir_name: str = "deepmath_data",
        download_dir_override: Optional[Path] = None,
        dataset_dir_override: Optional[Path] = None,
    ):
        self.logger = logging.getLogger(self.__class__.__name__)
        self.data_dir_name = data_dir_name
        self.download_dir_override = download_dir_override
        self.dataset_dir_override = dataset_dir_override

    def download_dir(self) -> Path:
        """The absolute download directory, without touching the filesystem."""
        if self.download_dir_override is not None:
            return Path(self.download_dir_override).expanduser().absolute()
        return Path(tempfile.gettempdir()).absolute() / self.data_dir_name

    def dataset_dir(self) -> Path:
        """
        The absolute dataset directory, without touching the filesystem.

        The presence check, the lock and the extraction all key off this
        path, so "~" and relative overrides are expanded here.
        """
        if self.dataset_dir_override is not None:
            return Path(self.dataset_dir_override).expanduser().absolute()
        return Path(os.getcwd()) / self.data_dir_name

    def _ensure_dir(self, folder: Path) -> Path:
        try:
            folder.mkdir(parents=True, exist_ok=True)
        except FileExistsError as e:
            raise StorageError(f"{folder} exists and is not a directory") from e
        except OSError as e:
            raise StorageError(f"Cannot create directory {folder}: {e}") from e
        self.logger.debug(f"Using directory {folder}")
        return folder

    def resolve_download_dir(self) -> Path:
        """
        Returns the directory for the raw archive, creating it if needed.

        Raises:
            StorageError: If the directory cannot be created.
        """
        return self._ensure_dir(self.download_dir())

    def resolve_dataset_dir(self) -> Path:
        """
        Returns the directory for the extracted dataset, creating it if needed.

        Raises:
            StorageError: If the directory cannot be created.
        """
        return self._ensure_dir(self.dataset_dir())
