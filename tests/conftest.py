"""
Shared pytest fixtures for PAI-WebHDFS tests.

FakeWebHdfs is an in-memory namenode plus data node behind
httpx.MockTransport. It speaks enough of the WebHDFS REST protocol
(two-phase writes, redirects on OPEN, RemoteException bodies) to run the
client and filesystem end to end without a network.
"""

from collections.abc import Generator
from pathlib import Path
from urllib.parse import quote

import httpx
import pytest

from pai_webhdfs.config import CacheConfig, ConnectionConfig
from pai_webhdfs.filesystem import HdfsFileSystem
from pai_webhdfs.locator import RemoteLocator
from pai_webhdfs.registry import ClusterCredential, ClusterRegistry
from pai_webhdfs.webhdfs_client import WebHdfsClient

CLUSTER = "openpai"
TOKEN = "secret-token"
NAMENODE_HOST = "pai.test"
DATANODE_HOST = "datanode.test"
PREFIX = "/webhdfs/v1"
DATANODE_ROOT = f"http://{DATANODE_HOST}:50075{PREFIX}"
MTIME_MS = 1_700_000_000_000


def remote_exception(status: int, exception: str, message: str) -> httpx.Response:
    """Build a WebHDFS error response."""
    return httpx.Response(
        status,
        json={
            "RemoteException": {
                "exception": exception,
                "javaClassName": f"org.apache.hadoop.{exception}",
                "message": message,
            }
        },
    )


def _parent(path: str) -> str:
    return path.rsplit("/", 1)[0] or "/"


class FakeWebHdfs:
    """
    In-memory WebHDFS server.

    ``nodes`` maps absolute paths to bytes (files) or None (directories)
    in creation order, which is also the listing order.
    """

    def __init__(self):
        self.nodes: dict[str, bytes | None] = {"/": None}
        self.requests: list[httpx.Request] = []
        self.expected_token: str | None = None
        # Failure switches used by individual tests
        self.omit_location = False
        self.malformed_location = False
        self.negotiate_without_redirect = False
        self.direct_open = False
        self.datanode_error: Exception | None = None
        self.listing_override: httpx.Response | None = None

    # -- helpers -------------------------------------------------------

    def add_file(self, path: str, data: bytes) -> None:
        self._make_dirs(_parent(path))
        self.nodes[path] = data

    def add_dir(self, path: str) -> None:
        self._make_dirs(path)

    def _make_dirs(self, path: str) -> None:
        if path == "/":
            return
        self._make_dirs(_parent(path))
        if path not in self.nodes:
            self.nodes[path] = None

    def children(self, path: str) -> list[str]:
        return [p for p in self.nodes if p != "/" and _parent(p) == path]

    def is_dir(self, path: str) -> bool:
        return path in self.nodes and self.nodes[path] is None

    def _status(self, path: str, suffix: str) -> dict:
        data = self.nodes[path]
        return {
            "pathSuffix": suffix,
            "type": "DIRECTORY" if data is None else "FILE",
            "length": 0 if data is None else len(data),
            "modificationTime": MTIME_MS,
            "owner": "openpai",
            "group": "supergroup",
            "permission": "755",
            "replication": 0 if data is None else 3,
        }

    def _redirect(self, request: httpx.Request, path: str) -> httpx.Response:
        if self.omit_location:
            return httpx.Response(307)
        if self.malformed_location:
            return httpx.Response(307, headers={"Location": "http://datanode.test:notaport/webhdfs/v1"})
        location = httpx.URL(DATANODE_ROOT + quote(path), params=dict(request.url.params))
        return httpx.Response(307, headers={"Location": str(location)})

    def namenode_requests(self, op: str | None = None) -> list[httpx.Request]:
        return [
            r
            for r in self.requests
            if r.url.host == NAMENODE_HOST and (op is None or r.url.params.get("op") == op)
        ]

    def datanode_requests(self) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.host == DATANODE_HOST]

    # -- transport -----------------------------------------------------

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path[len(PREFIX) :].rstrip("/") or "/"
        op = request.url.params.get("op")
        if request.url.host == DATANODE_HOST:
            return self._datanode(request, path, op)
        return self._namenode(request, path, op)

    def _namenode(self, request: httpx.Request, path: str, op: str | None) -> httpx.Response:
        if self.expected_token is not None:
            if request.headers.get("Authorization") != f"Bearer {self.expected_token}":
                return remote_exception(401, "SecurityException", "Failed to obtain user group information")
        if op == "LISTSTATUS":
            if self.listing_override is not None:
                return self.listing_override
            if path not in self.nodes:
                return remote_exception(404, "FileNotFoundException", f"File {path} does not exist.")
            if not self.is_dir(path):
                return httpx.Response(200, json={"FileStatuses": {"FileStatus": [self._status(path, "")]}})
            statuses = [self._status(child, child.rsplit("/", 1)[-1]) for child in self.children(path)]
            return httpx.Response(200, json={"FileStatuses": {"FileStatus": statuses}})
        if op == "GETFILESTATUS":
            if path not in self.nodes:
                return remote_exception(404, "FileNotFoundException", f"File does not exist: {path}")
            return httpx.Response(200, json={"FileStatus": self._status(path, "")})
        if op == "OPEN":
            if path not in self.nodes:
                return remote_exception(404, "FileNotFoundException", f"File does not exist: {path}")
            if self.is_dir(path):
                return remote_exception(404, "FileNotFoundException", f"Path is not a file: {path}")
            if self.direct_open:
                return httpx.Response(200, content=self.nodes[path])
            return self._redirect(request, path)
        if op == "CREATE":
            assert request.content == b"", "negotiate phase must not carry data"
            overwrite = request.url.params.get("overwrite") == "true"
            if path in self.nodes and (not overwrite or self.is_dir(path)):
                return remote_exception(
                    403, "FileAlreadyExistsException", f"{path} for client 127.0.0.1 already exists"
                )
            if self.negotiate_without_redirect:
                return httpx.Response(201)
            return self._redirect(request, path)
        if op == "APPEND":
            assert request.content == b"", "negotiate phase must not carry data"
            if path not in self.nodes or self.is_dir(path):
                return remote_exception(404, "FileNotFoundException", f"File does not exist: {path}")
            return self._redirect(request, path)
        if op == "MKDIRS":
            if path in self.nodes and not self.is_dir(path):
                return remote_exception(403, "FileAlreadyExistsException", f"Path is not a directory: {path}")
            self._make_dirs(path)
            return httpx.Response(200, json={"boolean": True})
        if op == "RENAME":
            destination = request.url.params.get("destination", "")
            if self.is_dir(destination):
                # HDFS moves the source into an existing directory
                destination = destination.rstrip("/") + "/" + path.rsplit("/", 1)[-1]
            if path not in self.nodes or destination in self.nodes or not self.is_dir(_parent(destination)):
                return httpx.Response(200, json={"boolean": False})
            moved = {}
            for key, value in self.nodes.items():
                if key == path or key.startswith(path + "/"):
                    moved[destination + key[len(path) :]] = value
                else:
                    moved[key] = value
            self.nodes = moved
            return httpx.Response(200, json={"boolean": True})
        if op == "DELETE":
            recursive = request.url.params.get("recursive") == "true"
            if path not in self.nodes:
                return httpx.Response(200, json={"boolean": False})
            if self.children(path) and not recursive:
                return remote_exception(
                    403, "PathIsNotEmptyDirectoryException", f"`{path} is non empty': Directory is not empty"
                )
            for key in [k for k in self.nodes if k == path or k.startswith(path + "/")]:
                del self.nodes[key]
            return httpx.Response(200, json={"boolean": True})
        return remote_exception(400, "IllegalArgumentException", f"Invalid value for webhdfs parameter \"op\": {op}")

    def _datanode(self, request: httpx.Request, path: str, op: str | None) -> httpx.Response:
        if self.datanode_error is not None:
            raise self.datanode_error
        if op == "OPEN":
            return httpx.Response(200, content=self.nodes[path])
        if op == "CREATE":
            self._make_dirs(_parent(path))
            self.nodes[path] = request.content
            return httpx.Response(201, headers={"Location": f"hdfs://{NAMENODE_HOST}:8020{path}"})
        if op == "APPEND":
            self.nodes[path] = self.nodes[path] + request.content
            return httpx.Response(200)
        return remote_exception(400, "IllegalArgumentException", f"Unsupported data node op: {op}")


@pytest.fixture
def fake_hdfs() -> FakeWebHdfs:
    """Creates an empty in-memory WebHDFS server."""
    return FakeWebHdfs()


@pytest.fixture
def credential() -> ClusterCredential:
    return ClusterCredential(
        base_uri=f"{NAMENODE_HOST}:50070{PREFIX}",
        username="openpai",
        bearer_token=TOKEN,
    )


@pytest.fixture
def registry(credential: ClusterCredential) -> ClusterRegistry:
    return ClusterRegistry({CLUSTER: credential})


@pytest.fixture
def conn_config() -> ConnectionConfig:
    return ConnectionConfig(timeout_seconds=5, verify_tls=True)


@pytest.fixture
def client(registry: ClusterRegistry, conn_config: ConnectionConfig, fake_hdfs: FakeWebHdfs) -> WebHdfsClient:
    """WebHdfsClient wired to the fake server."""
    return WebHdfsClient(registry, conn_config, transport=httpx.MockTransport(fake_hdfs.handler))


@pytest.fixture
def fs(client: WebHdfsClient) -> HdfsFileSystem:
    """HdfsFileSystem with caching enabled over the fake server."""
    return HdfsFileSystem(client, CacheConfig(enabled=True, max_entries=128))


@pytest.fixture
def at():
    """Build locators on the test cluster: at("/a/b")."""

    def _at(path: str) -> RemoteLocator:
        return RemoteLocator(CLUSTER, path)

    return _at


@pytest.fixture
def tmp_config_file(tmp_path: Path) -> Generator[Path, None, None]:
    """
    Creates a temporary INI configuration file for config tests.

    Returns:
        Path to the temporary config file.
    """
    config_content = """[general]
default_cluster = openpai

[cluster:openpai]
webhdfs_uri = pai.test:50070/webhdfs/v1
username = openpai
token = abc123
https = true

[cluster:backup]
webhdfs_uri = http://backup.test:9870/webhdfs/v1
username = backup
password = s3cret

[cache]
enabled = false
max_entries = 64

[connection]
timeout_seconds = 45
verify_tls = false

[logging]
level = DEBUG
file = test.log
console = false
"""
    config_path = tmp_path / "test_config.ini"
    config_path.write_text(config_content, encoding="utf-8")
    yield config_path


@pytest.fixture
def minimal_config_file(tmp_path: Path) -> Generator[Path, None, None]:
    """
    Creates a minimal INI configuration file with only required fields.

    Returns:
        Path to the temporary config file.
    """
    config_content = """[cluster:minimal]
webhdfs_uri = minimal.server.com:50070/webhdfs/v1
username = alice
"""
    config_path = tmp_path / "minimal_config.ini"
    config_path.write_text(config_content, encoding="utf-8")
    yield config_path
