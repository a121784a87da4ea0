"""Tests for the HTTP archive fetcher."""

import httpx
import pytest

from conftest import SOURCE_URL, ArchiveServer
from dataset_preloader.application.exceptions import (
    FetchTimeoutError,
    IntegrityError,
    NetworkError,
    ProtocolError,
)
from dataset_preloader.infrastructure.fetcher import (
    HttpArchiveFetcher,
    filename_from_url,
)


def _fetcher(client: httpx.Client, chunk_size: int = 64) -> HttpArchiveFetcher:
    return HttpArchiveFetcher(
        client, connect_timeout=1.0, read_timeout=1.0, chunk_size=chunk_size
    )


def _streaming_client(chunks, exc: Exception, content_length=None) -> httpx.Client:
    """A client whose response body yields chunks and then raises exc."""

    def body():
        yield from chunks
        raise exc

    def handler(request):
        headers = {}
        if content_length is not None:
            headers["Content-Length"] = str(content_length)
        return httpx.Response(200, headers=headers, content=body())

    return httpx.Client(transport=httpx.MockTransport(handler))


class TestFilenameFromUrl:
    def test_last_segment(self):
        assert filename_from_url(SOURCE_URL) == "prim_fwd.tar.gz"

    def test_query_is_ignored(self):
        assert filename_from_url("https://h.test/a/b.tar?x=1") == "b.tar"

    @pytest.mark.parametrize(
        "url",
        [
            "https://example.test",
            "https://example.test/",
            "https://example.test/data/",
            "ftp://example.test/data.tar.gz",
            "not a url",
        ],
    )
    def test_rejects_unusable_urls(self, url):
        with pytest.raises(ProtocolError):
            filename_from_url(url)


class TestFetch:
    def test_metadata_and_body(self, archive_server: ArchiveServer):
        fetcher = _fetcher(archive_server.client())

        with fetcher.fetch(SOURCE_URL) as remote:
            body = b"".join(remote.stream)

        assert remote.metadata.source_url == SOURCE_URL
        assert remote.metadata.filename == "prim_fwd.tar.gz"
        assert remote.metadata.content_length == len(archive_server.payload)
        assert body == archive_server.payload
        assert len(archive_server.requests) == 1
        assert archive_server.requests[0].method == "GET"

    def test_body_is_chunked(self, archive_server: ArchiveServer):
        fetcher = _fetcher(archive_server.client(), chunk_size=100)

        with fetcher.fetch(SOURCE_URL) as remote:
            chunks = list(remote.stream)

        assert len(chunks) > 1
        assert all(len(chunk) <= 100 for chunk in chunks)

    def test_missing_content_length_is_unknown(self, archive_server: ArchiveServer):
        # httpx adds Content-Length for byte content, so stream the body instead
        client = httpx.Client(
            transport=httpx.MockTransport(
                lambda request: httpx.Response(
                    200, content=iter([archive_server.payload])
                )
            )
        )

        with _fetcher(client).fetch(SOURCE_URL) as remote:
            assert remote.metadata.content_length is None
            assert b"".join(remote.stream) == archive_server.payload

    def test_malformed_content_length(self, archive_server: ArchiveServer):
        archive_server.content_length = "lots"

        with pytest.raises(ProtocolError, match="Content-Length"):
            with _fetcher(archive_server.client()).fetch(SOURCE_URL):
                pass

    @pytest.mark.parametrize("status_code", [404, 500, 302])
    def test_non_success_status(self, status_code):
        server = ArchiveServer(b"nope", status_code=status_code)

        with pytest.raises(ProtocolError, match=str(status_code)):
            with _fetcher(server.client()).fetch(SOURCE_URL):
                pass

    def test_url_without_path_fails_before_request(
        self, archive_server: ArchiveServer
    ):
        with pytest.raises(ProtocolError):
            with _fetcher(archive_server.client()).fetch("https://example.test/"):
                pass
        assert archive_server.requests == []

    def test_connect_error(self, archive_server: ArchiveServer):
        archive_server.fail_next(httpx.ConnectError("connection refused"))

        with pytest.raises(NetworkError):
            with _fetcher(archive_server.client()).fetch(SOURCE_URL):
                pass

    def test_connect_timeout(self, archive_server: ArchiveServer):
        archive_server.fail_next(httpx.ConnectTimeout("too slow"))

        with pytest.raises(FetchTimeoutError):
            with _fetcher(archive_server.client()).fetch(SOURCE_URL):
                pass

    def test_read_timeout_mid_body(self):
        client = _streaming_client([b"a" * 64], httpx.ReadTimeout("idle"))

        with pytest.raises(FetchTimeoutError, match="after 64 bytes"):
            with _fetcher(client).fetch(SOURCE_URL) as remote:
                list(remote.stream)

    def test_connection_closed_early(self):
        client = _streaming_client(
            [b"a" * 1200],
            httpx.RemoteProtocolError("peer closed connection"),
            content_length=1700,
        )

        with pytest.raises(IntegrityError, match="1200 of 1700"):
            with _fetcher(client, chunk_size=100).fetch(SOURCE_URL) as remote:
                list(remote.stream)

    def test_network_error_mid_body(self):
        client = _streaming_client([b"a"], httpx.ReadError("reset by peer"))

        with pytest.raises(NetworkError):
            with _fetcher(client).fetch(SOURCE_URL) as remote:
                list(remote.stream)

    def test_filename_follows_redirect(self, archive_server: ArchiveServer):
        def handler(request):
            if request.url.path == "/latest":
                return httpx.Response(
                    302, headers={"Location": "https://cdn.test/files/v2.tar.gz"}
                )
            return archive_server.handler(request)

        client = httpx.Client(transport=httpx.MockTransport(handler))

        with _fetcher(client).fetch("https://example.test/latest") as remote:
            assert remote.metadata.filename == "v2.tar.gz"
            assert remote.metadata.source_url == "https://example.test/latest"
