"""
Dependency Injection container for the dataset_preloader component.

This container uses the `dependency-injector` library to wire together all
the components of the application, such as services and infrastructure adapters,
based on the validated PipelineConfig.
"""

from typing import Generator

from dependency_injector import containers, providers
import httpx

from ..application.domain import *
from ..application.service import DatasetPipeline, PreparationService
from ..settings import load_config

from .decorators import retry_on_transient_error
from .events import LoggingEventSink
from .extractor import TarArchiveExtractor
from .fetcher import HttpArchiveFetcher
from .hashing import Sha256Hasher
from .locations import FilesystemLocationResolver
from .locking import DatasetLock
from .presence import SentinelPresenceGuard
from .store import FileArchiveStore


def _init_http_client() -> Generator[httpx.Client, None, None]:
    """Yields a shared HTTP client and closes it on resource shutdown."""
    client = httpx.Client()
    try:
        yield client
    finally:
        client.close()


class Container(containers.DeclarativeContainer):
    """DI container for wiring the application components."""

    config = providers.Singleton(load_config)

    http_client = providers.Resource(_init_http_client)

    resolver: providers.Factory[LocationResolver] = providers.Factory(
        FilesystemLocationResolver,
        data_dir_name=config.provided.data_dir_name,
        download_dir_override=config.provided.download_dir_override,
        dataset_dir_override=config.provided.dataset_dir_override,
    )

    presence_guard: providers.Factory[PresenceGuard] = providers.Factory(
        SentinelPresenceGuard,
        source_url=config.provided.source_url,
    )

    fetcher: providers.Factory[RemoteFetcher] = providers.Factory(
        HttpArchiveFetcher,
        client=http_client,
        connect_timeout=config.provided.connect_timeout,
        read_timeout=config.provided.read_timeout,
        chunk_size=config.provided.chunk_size,
    )

    store: providers.Factory[ArchiveStore] = providers.Factory(FileArchiveStore)

    hasher: providers.Factory[Hasher] = providers.Factory(
        Sha256Hasher,
        expected_digest=config.provided.sha256,
        chunk_size=config.provided.chunk_size,
    )

    extractor: providers.Factory[ArchiveExtractor] = providers.Factory(
        TarArchiveExtractor
    )

    events: providers.Factory[EventSink] = providers.Factory(LoggingEventSink)

    retry_policy = providers.Factory(
        retry_on_transient_error,
        attempts=config.provided.retry_attempts,
        min_wait=config.provided.retry_min_wait,
        max_wait=config.provided.retry_max_wait,
    )

    pipeline = providers.Factory(
        DatasetPipeline,
        resolver=resolver,
        presence_guard=presence_guard,
        fetcher=fetcher,
        store=store,
        hasher=hasher,
        extractor=extractor,
        events=events,
        source_url=config.provided.source_url,
        keep_archive=config.provided.keep_archive,
        retry_policy=retry_policy,
    )

    preparation_service = providers.Factory(
        PreparationService,
        pipeline=pipeline,
        lock_factory=providers.Object(DatasetLock.for_dataset),
        verbose=config.provided.verbose,
    )
