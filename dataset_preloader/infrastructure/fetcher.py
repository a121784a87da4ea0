"""HTTP implementation of the RemoteFetcher port."""

import contextlib
import logging
from typing import Generator, Iterator, Optional

import httpx

from ..application.domain import RemoteArchive, RemoteArchiveMetadata, RemoteFetcher
from ..application.exceptions import (
    FetchTimeoutError,
    IntegrityError,
    NetworkError,
    ProtocolError,
)


def filename_from_url(url: str) -> str:
    """
    Returns the last path segment of an http(s) URL.

    Raises:
        ProtocolError: If the URL is malformed, not http(s), or has no
                       non-empty final path segment.
    """

    try:
        parsed = httpx.URL(url)
    except httpx.InvalidURL as e:
        raise ProtocolError(f"Malformed URL {url!r}: {e}") from e

    if parsed.scheme not in ("http", "https") or not parsed.host:
        raise ProtocolError(f"Not an http(s) URL: {url!r}")

    filename = parsed.path.split("/")[-1]
    if filename in ("", ".", ".."):
        raise ProtocolError(f"URL {url!r} has no path segment to name the archive")

    return filename


def _parse_content_length(value: Optional[str]) -> Optional[int]:
    if value is None:
        return None
    value = value.strip()
    if not value.isdigit():
        raise ProtocolError(f"Malformed Content-Length header: {value!r}")
    return int(value)


class HttpArchiveFetcher(RemoteFetcher):
    """A fetcher that streams a remote archive over HTTP(S)."""

    def __init__(
        self,
        client: httpx.Client,
        connect_timeout: float,
        read_timeout: float,
        chunk_size: int,
    ):
        """
        Initializes the fetcher adapter.

        Args:
            client: An instance of httpx.Client.
            connect_timeout: Seconds allowed to establish the connection.
            read_timeout: Seconds allowed between two chunks of the body.
            chunk_size: Size in bytes of the chunks handed to the caller.
        """

        self.logger = logging.getLogger(self.__class__.__name__)
        self.client = client
        self.timeout = httpx.Timeout(read_timeout, connect=connect_timeout)
        self.chunk_size = chunk_size

    def _read_metadata(
        self, source_url: str, response: httpx.Response
    ) -> RemoteArchiveMetadata:
        """Builds archive metadata from the final URL and response headers."""
        metadata = RemoteArchiveMetadata(
            source_url=source_url,
            filename=filename_from_url(str(response.url)),
            content_length=_parse_content_length(
                response.headers.get("Content-Length")
            ),
        )
        if metadata.content_length is None:
            self.logger.warning(
                f"{metadata.filename}: no Content-Length, size check disabled"
            )
        return metadata

    def _iter_body(
        self, response: httpx.Response, metadata: RemoteArchiveMetadata
    ) -> Iterator[bytes]:
        """Yield raw body chunks, translating transport failures."""
        received = 0
        try:
            for chunk in response.iter_raw(self.chunk_size):
                received += len(chunk)
                yield chunk
        except httpx.TimeoutException as e:
            raise FetchTimeoutError(
                f"Timed out after {received} bytes of {metadata.filename}"
            ) from e
        except httpx.RemoteProtocolError as e:
            expected = metadata.content_length
            raise IntegrityError(
                f"Connection closed after {received} of "
                f"{expected if expected is not None else 'unknown'} bytes "
                f"of {metadata.filename}"
            ) from e
        except httpx.TransportError as e:
            raise NetworkError(
                f"Transfer of {metadata.filename} failed after {received} "
                f"bytes: {e}"
            ) from e

    @contextlib.contextmanager
    def fetch(self, source_url: str) -> Generator[RemoteArchive, None, None]:
        """
        Open a single GET request and expose the archive as a stream.

        The response is released when the with-block exits, whatever the
        outcome.

        Args:
            source_url: The URL of the archive.

        Yields:
            A RemoteArchive with metadata and a lazy iterator of body chunks.

        Raises:
            ProtocolError: For malformed URLs or headers and non-2xx statuses.
            NetworkError: If the source cannot be reached.
            FetchTimeoutError: If connecting or reading times out.
        """

        filename_from_url(source_url)
        self.logger.info(f"Requesting {source_url}...")

        try:
            with self.client.stream(
                "GET", source_url, timeout=self.timeout, follow_redirects=True
            ) as response:
                if not response.is_success:
                    raise ProtocolError(
                        f"HTTP {response.status_code} for {response.url}"
                    )
                metadata = self._read_metadata(source_url, response)
                yield RemoteArchive(
                    metadata=metadata,
                    stream=self._iter_body(response, metadata),
                )
        except httpx.TimeoutException as e:
            raise FetchTimeoutError(f"Timed out requesting {source_url}: {e}") from e
        except httpx.UnsupportedProtocol as e:
            raise ProtocolError(f"Unsupported URL {source_url}: {e}") from e
        except httpx.TransportError as e:
            raise NetworkError(f"Cannot reach {source_url}: {e}") from e
