"""
This module defines the core domain models for the application.

These classes represent the pure, technology-agnostic entities and data
structures that the acquisition pipeline operates on, together with the ports
(interfaces) each infrastructure adapter has to fulfil.
"""

import dataclasses
import enum
import threading
from abc import ABC, abstractmethod
from contextlib import AbstractContextManager
from pathlib import Path
from typing import Any, Iterator, List, Optional

from .exceptions import PipelineCancelled


# --- Domain Models ---

@dataclasses.dataclass(frozen=True)
class RemoteArchiveMetadata:
    """Metadata derived from a single fetch attempt.

    ``content_length`` is None when the source did not announce a size; an
    unknown length is never treated as zero.
    """

    source_url: str
    filename: str
    content_length: Optional[int] = None


@dataclasses.dataclass(frozen=True)
class RemoteArchive:
    """An open remote archive: its metadata and a stream of body chunks."""

    metadata: RemoteArchiveMetadata
    stream: Iterator[bytes]


@dataclasses.dataclass(frozen=True)
class DownloadedArchive:
    """
    A domain model representing a fully written archive file on disk,
    defined by its location and size.
    """

    path: Path
    size_bytes: int
    metadata: RemoteArchiveMetadata


class PrepareOutcome(enum.Enum):
    """Terminal, successful states of a prepare run."""

    ALREADY_PRESENT = "already_present"
    MATERIALIZED = "materialized"


class CancellationToken:
    """A thread-safe flag checked by long-running stages between units of work."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self):
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self):
        """Raise PipelineCancelled once cancel() has been called."""
        if self._event.is_set():
            raise PipelineCancelled("Operation cancelled by caller")


# --- Ports (Interfaces) ---

class EventSink(ABC):
    """A port for structured progress events emitted by the pipeline."""

    @abstractmethod
    def emit(self, event: str, **fields: Any):
        """Records a single named event with its fields."""
        pass


class LocationResolver(ABC):
    """A port that computes where the archive and the dataset live."""

    @abstractmethod
    def dataset_dir(self) -> Path:
        """Returns the dataset directory without creating it."""
        pass

    @abstractmethod
    def resolve_download_dir(self) -> Path:
        """Returns (and creates) the directory holding the raw archive."""
        pass

    @abstractmethod
    def resolve_dataset_dir(self) -> Path:
        """Returns (and creates) the directory holding extracted entries."""
        pass


class PresenceGuard(ABC):
    """A port that decides whether a dataset is already materialized."""

    @abstractmethod
    def is_dataset_present(self, location: Path) -> bool:
        """Inspects the filesystem at location."""
        pass

    @abstractmethod
    def mark_present(
        self, location: Path, archive: DownloadedArchive, entries: List[str]
    ):
        """Records that extraction into location completed."""
        pass

    @abstractmethod
    def clear(self, location: Path):
        """Forgets any earlier completion record for location."""
        pass


class RemoteFetcher(ABC):
    """A port for any source of remote archives."""

    @abstractmethod
    def fetch(self, source_url: str) -> AbstractContextManager:
        """
        Opens the remote archive. Used as a context manager yielding a
        RemoteArchive; the connection is released when the block exits.
        """
        pass


class ArchiveStore(ABC):
    """A port that persists a byte stream to a file."""

    @abstractmethod
    def persist(
        self,
        stream: Iterator[bytes],
        destination: Path,
        expected_length: Optional[int] = None,
        cancel_token: Optional[CancellationToken] = None,
        show_progress: bool = False,
    ) -> int:
        """Writes the whole stream to destination and returns its size."""
        pass


class Hasher(ABC):
    """A port for hashing file contents."""

    @abstractmethod
    def verify(self, archive: DownloadedArchive) -> bool:
        """
        Verifies the integrity of an archive, returning False when there is
        nothing to compare against. Raises ChecksumMismatchError on mismatch.
        """
        pass


class ArchiveExtractor(ABC):
    """A port that unpacks a stored archive into a directory."""

    @abstractmethod
    def extract(
        self,
        archive_path: Path,
        target_dir: Path,
        cancel_token: Optional[CancellationToken] = None,
    ) -> List[str]:
        """Unpacks archive_path into target_dir, returning the file entries."""
        pass
