"""Shared fixtures for the dataset_preloader tests.

All tests are offline-safe: HTTP traffic goes through httpx.MockTransport and
every filesystem operation happens under tmp_path.
"""

import io
import random
import tarfile
from typing import Callable, Dict, List, Tuple

import httpx
import pytest

SOURCE_URL = "https://example.test/data/prim_fwd.tar.gz"


def build_tar(members: Dict[str, bytes], mode: str = "w:gz") -> bytes:
    """Return raw bytes of a tar archive containing *members*."""
    buf = io.BytesIO()
    with tarfile.open(fileobj=buf, mode=mode) as tf:
        for name, data in members.items():
            info = tarfile.TarInfo(name=name)
            info.size = len(data)
            tf.addfile(info, io.BytesIO(data))
    return buf.getvalue()


class RecordingSink:
    """EventSink double keeping every event in order."""

    def __init__(self):
        self.events: List[Tuple[str, dict]] = []

    def emit(self, event, **fields):
        self.events.append((event, fields))

    @property
    def names(self) -> List[str]:
        return [name for name, _ in self.events]


class ArchiveServer:
    """A fake remote source serving a single payload, counting requests."""

    def __init__(self, payload: bytes, content_length=None, status_code: int = 200):
        self.payload = payload
        self.content_length = (
            len(payload) if content_length is None else content_length
        )
        self.status_code = status_code
        self.requests: List[httpx.Request] = []
        self.failures: List[Exception] = []

    def fail_next(self, *errors: Exception):
        """Raise these errors on the next requests, in order."""
        self.failures.extend(errors)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.failures:
            raise self.failures.pop(0)
        headers = {}
        if self.content_length is not False:
            headers["Content-Length"] = str(self.content_length)
        return httpx.Response(
            self.status_code, headers=headers, stream=httpx.ByteStream(self.payload)
        )

    def client(self) -> httpx.Client:
        return httpx.Client(transport=httpx.MockTransport(self.handler))


@pytest.fixture
def make_tar() -> Callable[..., bytes]:
    return build_tar


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def dataset_payload() -> bytes:
    # Incompressible, so the archive is comfortably larger than 1200 bytes
    return build_tar({"prim_fwd/train.txt": random.Random(0).randbytes(2048)})


@pytest.fixture
def archive_server(dataset_payload) -> ArchiveServer:
    return ArchiveServer(dataset_payload)
