"""
The core application service and pipeline, containing pure business logic.

This module defines the orchestrator (PreparationService) that guards a
dataset location and the pipeline (DatasetPipeline) that walks a single run
through its stages:

    CheckPresence -> AlreadyPresent
                  -> ResolveLocations -> Fetch -> Store -> Extract -> Done

Any stage failure ends the run with the error raised by that stage.
"""

import logging
from pathlib import Path
from typing import Any, Callable, Optional

from tqdm.contrib.logging import logging_redirect_tqdm

from .domain import *
from .exceptions import CorruptArchiveError

logger = logging.getLogger(__name__)


class DatasetPipeline:
    """Encapsulates the full acquisition pipeline for one dataset."""

    def __init__(
        self,
        resolver: LocationResolver,
        presence_guard: PresenceGuard,
        fetcher: RemoteFetcher,
        store: ArchiveStore,
        hasher: Hasher,
        extractor: ArchiveExtractor,
        events: EventSink,
        source_url: str,
        keep_archive: bool = True,
        retry_policy: Optional[Callable] = None,
    ):
        """Initializes the pipeline with necessary dependencies (ports)."""
        self.logger = logging.getLogger(self.__class__.__name__)
        self.resolver = resolver
        self.presence_guard = presence_guard
        self.fetcher = fetcher
        self.store = store
        self.hasher = hasher
        self.extractor = extractor
        self.events = events
        self.source_url = source_url
        self.keep_archive = keep_archive
        self._download_with_retry = (
            retry_policy(self._download) if retry_policy else self._download
        )
        self._verbose = False

    def _detail(self, event: str, **fields: Any):
        """Emits an event that only verbose runs report."""
        if self._verbose:
            self.events.emit(event, **fields)

    def _download(
        self, download_dir: Path, cancel_token: Optional[CancellationToken]
    ) -> DownloadedArchive:
        """Fetch the archive and stream it to the download directory."""
        self.events.emit("fetch_started", url=self.source_url)

        with self.fetcher.fetch(self.source_url) as remote:
            metadata = remote.metadata
            self._detail(
                "fetch_metadata",
                filename=metadata.filename,
                content_length=metadata.content_length,
            )
            destination = download_dir / metadata.filename
            size = self.store.persist(
                remote.stream,
                destination,
                expected_length=metadata.content_length,
                cancel_token=cancel_token,
                show_progress=self._verbose,
            )

        self.events.emit("fetch_completed", bytes=size)
        return DownloadedArchive(path=destination, size_bytes=size, metadata=metadata)

    def _extract(
        self,
        archive: DownloadedArchive,
        dataset_dir: Path,
        cancel_token: Optional[CancellationToken],
    ):
        """Verify and unpack a stored archive, then record completion."""
        if self.hasher.verify(archive):
            self._detail("checksum_verified", archive=archive.path.name)

        self.presence_guard.clear(dataset_dir)
        self.events.emit(
            "extract_started", archive=archive.path.name, target=dataset_dir
        )
        try:
            entries = self.extractor.extract(
                archive.path, dataset_dir, cancel_token=cancel_token
            )
        except CorruptArchiveError:
            archive.path.unlink(missing_ok=True)
            raise

        self.presence_guard.mark_present(dataset_dir, archive, entries)
        self.events.emit("extract_completed", entries=len(entries))

    def run(
        self,
        verbose: bool = False,
        cancel_token: Optional[CancellationToken] = None,
    ) -> PrepareOutcome:
        """Executes the sequential steps for preparing the dataset.

        Args:
            verbose: Whether to report detail events and download progress.
            cancel_token: Optional token checked between chunks and entries.

        Returns:
            ALREADY_PRESENT if nothing had to be done, MATERIALIZED otherwise.
        """

        self._verbose = verbose

        # Step 1: Check presence before any network activity
        location = self.resolver.dataset_dir()
        present = self.presence_guard.is_dataset_present(location)
        self._detail("presence_checked", location=location, present=present)
        if present:
            self.events.emit("already_present", location=location)
            return PrepareOutcome.ALREADY_PRESENT

        # Step 2: Resolve (and create) the local directories
        download_dir = self.resolver.resolve_download_dir()
        dataset_dir = self.resolver.resolve_dataset_dir()
        self._detail(
            "locations_resolved", download_dir=download_dir, dataset_dir=dataset_dir
        )

        # Step 3: Fetch and store (RemoteArchive -> DownloadedArchive)
        archive = self._download_with_retry(download_dir, cancel_token)

        # Step 4: Extract (DownloadedArchive -> files under dataset_dir)
        self._extract(archive, dataset_dir, cancel_token)

        if not self.keep_archive:
            archive.path.unlink(missing_ok=True)
            self._detail("archive_removed", archive=archive.path.name)

        return PrepareOutcome.MATERIALIZED


class PreparationService:
    """Orchestrates a guarded, idempotent preparation of the dataset."""

    def __init__(
        self,
        pipeline: DatasetPipeline,
        lock_factory: Callable[[Path], Any],
        verbose: bool = False,
    ):
        """Initializes the service around a reusable pipeline."""
        self.pipeline = pipeline
        self.lock_factory = lock_factory
        self.verbose = verbose

    def prepare(
        self,
        verbose: Optional[bool] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> PrepareOutcome:
        """
        Guarantee the dataset is materialized, downloading only if necessary.

        Runs are serialized per dataset location with an exclusive lock.

        Args:
            verbose: Overrides the configured verbosity when not None.
            cancel_token: Optional token to abort a long transfer.

        Returns:
            The PrepareOutcome of the run.

        Raises:
            PipelineError: The error of the stage that failed.
        """

        if verbose is None:
            verbose = self.verbose

        location = self.pipeline.resolver.dataset_dir()
        logger.info(f"Preparing dataset in {location}")

        with self.lock_factory(location):
            with logging_redirect_tqdm():
                outcome = self.pipeline.run(verbose=verbose, cancel_token=cancel_token)

        logger.info(f"Dataset preparation finished: {outcome.value}")
        return outcome
