"""
Pytest configuration and fixtures.
"""

import os
import sys
import threading
from http.client import HTTPConnection
from pathlib import Path
from typing import Callable, Dict, Generator, List, Optional

import pytest

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from filesend import FileSend, FileRequest, BufferedResponse
from filesend.filesystem import LocalFileSystem, ResourceStat
from filesend.handlers import make_server


# Fixed mtime so Last-Modified / ETag are predictable
FIXTURE_MTIME = 1700000000
FIXTURE_LAST_MODIFIED = "Tue, 14 Nov 2023 22:13:20 GMT"

FIXTURE_FILES: Dict[str, str] = {
    "nums": "123456789",
    "name.txt": "tobi",
    "name.html": "<p>tobi</p>",
    "some thing.txt": "hey",
    "do..ts": "dots",
    "empty.txt": "",
    ".hidden": "secret",
    ".mine/name.txt": "tobi",
    "pets/index.html": "tobi\nloki\njane",
    "nested/dir/file.txt": "deep",
    "nested/notes.bak": "old",
}

FIXTURE_DIRS = ["empty-dir"]


@pytest.fixture(scope="session")
def fixture_root(tmp_path_factory) -> Path:
    """Directory tree served by the engine in tests."""
    root = tmp_path_factory.mktemp("public")

    for name, content in FIXTURE_FILES.items():
        path = root / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(content.encode("utf-8"))
        os.utime(path, (FIXTURE_MTIME, FIXTURE_MTIME))

    for name in FIXTURE_DIRS:
        (root / name).mkdir(parents=True, exist_ok=True)

    return root


@pytest.fixture
def engine(fixture_root: Path) -> FileSend:
    """Engine with default options over the fixture tree."""
    return FileSend(root=str(fixture_root))


@pytest.fixture
def fetch(engine: FileSend) -> Callable[..., BufferedResponse]:
    """
    Run one request through an engine and return the buffered response.

        response = fetch("/nums", headers={"Range": "bytes=0-1"})
        response = fetch("/nums", method="HEAD", using=other_engine)
    """
    def _fetch(
        target: str,
        method: str = "GET",
        headers: Optional[Dict[str, str]] = None,
        using: Optional[FileSend] = None,
        response: Optional[BufferedResponse] = None,
    ) -> BufferedResponse:
        response = response or BufferedResponse()
        (using or engine).send(FileRequest.from_target(method, target, headers), response)
        return response

    return _fetch


class RecordingFileSystem(LocalFileSystem):
    """LocalFileSystem that remembers every path it was asked about."""

    def __init__(self):
        self.stats: List[str] = []
        self.reads: List[tuple] = []

    def stat(self, path: str) -> ResourceStat:
        self.stats.append(path)
        return super().stat(path)

    def read(self, path, start=0, end=None, chunk_size=64 * 1024):
        self.reads.append((path, start, end))
        return super().read(path, start, end, chunk_size)


@pytest.fixture
def recording_fs() -> RecordingFileSystem:
    return RecordingFileSystem()


class LiveServer:
    """http.server instance running in a background thread."""

    def __init__(self, root: str, **options):
        self.server = make_server(root, host="127.0.0.1", port=0, **options)
        self.host, self.port = self.server.server_address[:2]
        self._thread: Optional[threading.Thread] = None

    def start(self) -> "LiveServer":
        self._thread = threading.Thread(target=self.server.serve_forever, daemon=True)
        self._thread.start()
        return self

    def stop(self) -> None:
        self.server.shutdown()
        self.server.server_close()
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=5.0)

    def connect(self) -> HTTPConnection:
        return HTTPConnection(self.host, self.port, timeout=5.0)


@pytest.fixture
def live_server(fixture_root: Path) -> Generator[LiveServer, None, None]:
    """Threaded http.server serving the fixture tree."""
    server = LiveServer(str(fixture_root)).start()
    yield server
    server.stop()
