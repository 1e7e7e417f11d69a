"""
WebHDFS operation adapter built on httpx.

Implements list/stat/read/create/append/mkdir/rename/delete against a
WebHDFS REST endpoint. Writes follow the two-phase protocol: the
negotiate request carries no body and must be answered with a redirect,
then the payload goes to the redirect target. Nothing is retried here;
a failed transfer after a successful negotiate may leave an empty or
partial file behind, and recovering from that is up to the caller.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, NoReturn

import httpx

from .config import ConnectionConfig
from .errors import (
    DestinationExistsError,
    NotFoundError,
    ProtocolError,
    RemoteOperationError,
    TransportError,
    WebHdfsError,
    error_from_response,
)
from .locator import RemoteLocator
from .progress import ProgressEvent, ProgressStream, TransferPhase
from .registry import ClusterRegistry, StaticTokenProvider, TokenProvider, fetch_token
from .resolver import WebHdfsEndpoints, WebHdfsResolver

logger = logging.getLogger(__name__)

REDIRECT_CODES = (301, 302, 303, 307, 308)


class EntryKind(str, Enum):
    FILE = "file"
    DIRECTORY = "directory"


@dataclass(frozen=True)
class DirectoryEntry:
    """One file or directory as reported by the remote side."""

    name: str
    kind: EntryKind
    size: int
    modified_time: datetime

    @property
    def is_dir(self) -> bool:
        return self.kind is EntryKind.DIRECTORY

    @classmethod
    def from_file_status(cls, status: dict[str, Any], name: str | None = None) -> DirectoryEntry:
        """
        Build an entry from a WebHDFS ``FileStatus`` object.

        Args:
            status: The FileStatus JSON object.
            name: Name to use instead of ``pathSuffix`` (GETFILESTATUS
                returns an empty suffix).

        Raises:
            ProtocolError: If required fields are missing or mistyped.
        """
        try:
            kind = EntryKind.DIRECTORY if status["type"] == "DIRECTORY" else EntryKind.FILE
            size = 0 if kind is EntryKind.DIRECTORY else int(status.get("length", 0))
            mtime_ms = int(status.get("modificationTime", 0))
            entry_name = name if name is not None else str(status["pathSuffix"])
        except (KeyError, TypeError, ValueError) as e:
            raise ProtocolError(f"Malformed FileStatus entry: {status!r}") from e
        return cls(
            name=entry_name,
            kind=kind,
            size=size,
            modified_time=datetime.fromtimestamp(mtime_ms / 1000, tz=timezone.utc),
        )


class WebHdfsClient:
    """
    Async WebHDFS client for every cluster in a ClusterRegistry.

    One httpx.AsyncClient is shared by all clusters and created on first
    use. Redirects are never followed by httpx itself: the adapter
    inspects each negotiate response and issues the transfer request.
    """

    def __init__(
        self,
        registry: ClusterRegistry,
        conn_config: ConnectionConfig | None = None,
        token_provider: TokenProvider | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.registry = registry
        self.resolver = WebHdfsResolver(registry)
        self.conn_config = conn_config or ConnectionConfig()
        self.token_provider = token_provider or StaticTokenProvider()
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    # ------------------------------------------------------------------
    # HTTP plumbing
    # ------------------------------------------------------------------

    def _get_client(self) -> httpx.AsyncClient:
        """Lazily create the httpx client on first use."""
        if self._client is None:
            kwargs: dict[str, Any] = {
                "timeout": httpx.Timeout(self.conn_config.timeout_seconds),
                "follow_redirects": False,
                "verify": self.conn_config.verify_tls,
            }
            if self._transport is not None:
                kwargs["transport"] = self._transport
            self._client = httpx.AsyncClient(**kwargs)
        return self._client

    async def aclose(self) -> None:
        """Close the underlying httpx client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> WebHdfsClient:
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def _auth(self, endpoints: WebHdfsEndpoints) -> tuple[dict[str, str], httpx.Auth | None]:
        """Build auth headers for one request; the token is fetched every time."""
        credential = endpoints.credential
        token = await fetch_token(
            self.token_provider, endpoints.locator.cluster_authority, credential
        )
        if token:
            return {"Authorization": f"Bearer {token}"}, None
        if credential.password:
            return {}, httpx.BasicAuth(credential.username, credential.password)
        return {}, None

    @staticmethod
    def _same_origin(url: httpx.URL, endpoints: WebHdfsEndpoints) -> bool:
        base = httpx.URL(endpoints.credential.endpoint)
        return (url.scheme, url.host, url.port) == (base.scheme, base.host, base.port)

    @staticmethod
    def _raise_transport(error: Exception, what: str, path: str) -> NoReturn:
        if isinstance(error, httpx.TimeoutException):
            message = f"{what} timed out: {path}"
        elif isinstance(error, (httpx.InvalidURL, httpx.UnsupportedProtocol, httpx.RemoteProtocolError)):
            message = f"{what} got a malformed response or redirect for {path}: {error}"
        else:
            message = f"{what} failed for {path}: {error}"
        logger.warning("%s", message)
        raise TransportError(message, path=path) from error

    async def _send(
        self,
        method: str,
        url: str | httpx.URL,
        endpoints: WebHdfsEndpoints,
        what: str,
        content: bytes | None = None,
    ) -> httpx.Response:
        """Issue one request with auth attached, translating transport failures."""
        headers, auth = await self._auth(endpoints)
        target = httpx.URL(url) if isinstance(url, str) else url
        if not self._same_origin(target, endpoints):
            headers, auth = {}, None
        if content is not None:
            headers["Content-Type"] = "application/octet-stream"
        try:
            return await self._get_client().request(
                method, target, content=content, headers=headers, auth=auth
            )
        except (httpx.TransportError, httpx.InvalidURL) as e:
            self._raise_transport(e, what, endpoints.locator.path)

    @staticmethod
    def _check(response: httpx.Response, path: str, expected: tuple[int, ...]) -> None:
        if response.status_code not in expected:
            raise error_from_response(response.status_code, response.content, path)

    @staticmethod
    def _json(response: httpx.Response, path: str) -> dict[str, Any]:
        try:
            document = response.json()
        except ValueError as e:
            raise ProtocolError(
                f"Expected a JSON body for {path}, got {response.headers.get('content-type')!r}",
                path=path,
                status_code=response.status_code,
            ) from e
        if not isinstance(document, dict):
            raise ProtocolError(f"Expected a JSON object for {path}", path=path)
        return document

    def _boolean(self, response: httpx.Response, path: str) -> bool:
        value = self._json(response, path).get("boolean")
        if not isinstance(value, bool):
            raise ProtocolError(f"Expected a boolean result for {path}", path=path)
        return value

    def _redirect_target(self, response: httpx.Response, path: str) -> httpx.URL:
        location = response.headers.get("location")
        if not location:
            raise ProtocolError(
                f"Redirect without Location header for {path}",
                path=path,
                status_code=response.status_code,
            )
        try:
            return response.url.join(location)
        except httpx.InvalidURL as e:
            self._raise_transport(e, "Redirect", path)

    async def _negotiate(
        self, method: str, url: str, endpoints: WebHdfsEndpoints, what: str
    ) -> httpx.URL:
        """First phase of a write: send no data, expect a redirect."""
        path = endpoints.locator.path
        response = await self._send(method, url, endpoints, what)
        if response.status_code in REDIRECT_CODES:
            target = self._redirect_target(response, path)
            logger.debug("%s %s negotiated -> %s", what, path, target)
            return target
        if response.is_success:
            raise ProtocolError(
                f"{what} for {path} answered HTTP {response.status_code} instead of a redirect",
                path=path,
                status_code=response.status_code,
            )
        raise error_from_response(response.status_code, response.content, path)

    @staticmethod
    def _emit(
        progress: ProgressStream | None,
        operation: str,
        locator: RemoteLocator,
        phase: TransferPhase,
        done: int = 0,
        total: int | None = None,
        error: str | None = None,
    ) -> None:
        if progress is not None:
            progress.publish(ProgressEvent(operation, locator, phase, done, total, error))

    # ------------------------------------------------------------------
    # Metadata
    # ------------------------------------------------------------------

    async def list_status(self, locator: RemoteLocator) -> list[DirectoryEntry]:
        """
        List a directory.

        Returns:
            Entries in the order the server returned them; an empty list for
            an empty directory.

        Raises:
            NotFoundError: If the path does not exist.
        """
        endpoints = self.resolver.resolve(locator)
        logger.debug("Listing directory: %s", locator)
        response = await self._send("GET", endpoints.list_url, endpoints, "LISTSTATUS")
        self._check(response, locator.path, (200,))
        document = self._json(response, locator.path)
        try:
            statuses = document["FileStatuses"]["FileStatus"]
        except (KeyError, TypeError) as e:
            raise ProtocolError(f"Malformed LISTSTATUS response for {locator.path}") from e
        if not isinstance(statuses, list):
            raise ProtocolError(f"Malformed LISTSTATUS response for {locator.path}")
        entries = [DirectoryEntry.from_file_status(status) for status in statuses]
        logger.debug("Listed %d entries in %s", len(entries), locator)
        return entries

    async def get_file_status(self, locator: RemoteLocator) -> DirectoryEntry:
        """
        Stat a single path.

        Raises:
            NotFoundError: If the path does not exist.
        """
        endpoints = self.resolver.resolve(locator)
        logger.debug("Getting file status: %s", locator)
        response = await self._send("GET", endpoints.status_url, endpoints, "GETFILESTATUS")
        self._check(response, locator.path, (200,))
        status = self._json(response, locator.path).get("FileStatus")
        if not isinstance(status, dict):
            raise ProtocolError(f"Malformed GETFILESTATUS response for {locator.path}")
        return DirectoryEntry.from_file_status(status, name=locator.name)

    async def exists(self, locator: RemoteLocator) -> bool:
        try:
            await self.get_file_status(locator)
        except NotFoundError:
            return False
        return True

    # ------------------------------------------------------------------
    # Data
    # ------------------------------------------------------------------

    async def read_file(
        self, locator: RemoteLocator, progress: ProgressStream | None = None, offset: int = 0
    ) -> bytes:
        """
        Read a whole file (from ``offset``).

        The OPEN request is answered with a redirect to a data node, which
        is followed here and streamed into memory. A gateway that serves the
        bytes directly with 200 is accepted too.
        """
        endpoints = self.resolver.resolve(locator)
        path = locator.path
        logger.debug("Reading file: %s (offset=%d)", locator, offset)
        self._emit(progress, "read", locator, TransferPhase.NEGOTIATE)
        try:
            response = await self._send("GET", endpoints.open_url(offset), endpoints, "OPEN")
            if response.status_code == 200:
                data = response.content
            elif response.status_code in REDIRECT_CODES:
                target = self._redirect_target(response, path)
                data = await self._stream_download(target, endpoints, locator, progress)
            else:
                raise error_from_response(response.status_code, response.content, path)
        except WebHdfsError as e:
            self._emit(progress, "read", locator, TransferPhase.FAILED, error=str(e))
            raise
        self._emit(progress, "read", locator, TransferPhase.DONE, len(data), len(data))
        logger.debug("Read %d bytes from %s", len(data), locator)
        return data

    async def _stream_download(
        self,
        target: httpx.URL,
        endpoints: WebHdfsEndpoints,
        locator: RemoteLocator,
        progress: ProgressStream | None,
    ) -> bytes:
        headers, auth = await self._auth(endpoints)
        if not self._same_origin(target, endpoints):
            headers, auth = {}, None
        chunks: list[bytes] = []
        done = 0
        try:
            async with self._get_client().stream("GET", target, headers=headers, auth=auth) as response:
                if response.status_code != 200:
                    body = await response.aread()
                    raise error_from_response(response.status_code, body, locator.path)
                length = response.headers.get("content-length")
                total = int(length) if length and length.isdigit() else None
                async for chunk in response.aiter_bytes():
                    chunks.append(chunk)
                    done += len(chunk)
                    self._emit(progress, "read", locator, TransferPhase.TRANSFER, done, total)
        except (httpx.TransportError, httpx.InvalidURL) as e:
            self._raise_transport(e, "OPEN transfer", locator.path)
        return b"".join(chunks)

    async def _two_phase_write(
        self,
        operation: str,
        method: str,
        url: str,
        endpoints: WebHdfsEndpoints,
        data: bytes,
        expected: tuple[int, ...],
        progress: ProgressStream | None,
    ) -> None:
        locator = endpoints.locator
        what = operation.upper()
        total = len(data)
        try:
            self._emit(progress, operation, locator, TransferPhase.NEGOTIATE, 0, total)
            target = await self._negotiate(method, url, endpoints, what)
            self._emit(progress, operation, locator, TransferPhase.TRANSFER, 0, total)
            response = await self._send(method, target, endpoints, f"{what} transfer", content=data)
            self._check(response, locator.path, expected)
        except WebHdfsError as e:
            logger.warning("%s failed for %s: %s", what, locator, e)
            self._emit(progress, operation, locator, TransferPhase.FAILED, 0, total, str(e))
            raise
        self._emit(progress, operation, locator, TransferPhase.DONE, total, total)
        logger.debug("%s wrote %d bytes to %s", what, total, locator)

    async def create_file(
        self,
        locator: RemoteLocator,
        data: bytes,
        overwrite: bool = False,
        progress: ProgressStream | None = None,
    ) -> None:
        """
        Create (or overwrite) a file with ``data``.

        Raises:
            DestinationExistsError: If the file exists and overwrite is False.
        """
        endpoints = self.resolver.resolve(locator)
        logger.debug("Creating file: %s (%d bytes, overwrite=%s)", locator, len(data), overwrite)
        await self._two_phase_write(
            "create", "PUT", endpoints.create_url(overwrite), endpoints, data, (200, 201), progress
        )

    async def append_file(
        self, locator: RemoteLocator, data: bytes, progress: ProgressStream | None = None
    ) -> None:
        """Append ``data`` to an existing file."""
        endpoints = self.resolver.resolve(locator)
        logger.debug("Appending to file: %s (%d bytes)", locator, len(data))
        await self._two_phase_write(
            "append", "POST", endpoints.append_url, endpoints, data, (200,), progress
        )

    # ------------------------------------------------------------------
    # Namespace
    # ------------------------------------------------------------------

    async def make_directory(self, locator: RemoteLocator) -> None:
        """Create a directory and any missing parents. Existing directories are fine."""
        endpoints = self.resolver.resolve(locator)
        logger.debug("Creating directory: %s", locator)
        response = await self._send("PUT", endpoints.mkdir_url, endpoints, "MKDIRS")
        self._check(response, locator.path, (200,))
        if not self._boolean(response, locator.path):
            raise RemoteOperationError(
                f"Could not create directory: {locator.path}", path=locator.path
            )

    async def delete(self, locator: RemoteLocator, recursive: bool = False) -> None:
        """
        Delete a file or directory.

        Raises:
            NotEmptyError: If recursive is False and the directory has children.
            NotFoundError: If the path does not exist.
        """
        endpoints = self.resolver.resolve(locator)
        logger.debug("Deleting: %s (recursive=%s)", locator, recursive)
        response = await self._send("DELETE", endpoints.delete_url(recursive), endpoints, "DELETE")
        self._check(response, locator.path, (200,))
        if not self._boolean(response, locator.path):
            raise NotFoundError(f"No such file or directory: {locator.path}", path=locator.path)

    async def rename(self, source: RemoteLocator, destination: RemoteLocator) -> None:
        """
        Rename or move a path within one cluster.

        Raises:
            DestinationExistsError: If the destination already exists.
            NotFoundError: If the source does not exist.
            RemoteOperationError: For cross-cluster moves or other refusals.
        """
        if source.cluster_authority != destination.cluster_authority:
            raise RemoteOperationError(
                f"Cannot rename across clusters: {source} -> {destination}", path=source.path
            )
        endpoints = self.resolver.resolve(source)
        # HDFS moves the source into an existing destination directory instead of
        # refusing, so existence has to be checked before RENAME is sent
        if await self.exists(destination):
            raise DestinationExistsError(
                f"Destination already exists: {destination.path}", path=destination.path
            )
        logger.debug("Renaming: %s -> %s", source, destination.path)
        response = await self._send(
            "PUT", endpoints.rename_url(destination.path), endpoints, "RENAME"
        )
        self._check(response, source.path, (200,))
        if self._boolean(response, source.path):
            return
        # RENAME reports refusal as {"boolean": false}; find out why
        await self.get_file_status(source)
        if await self.exists(destination):
            # Created by another client between the check and RENAME
            raise DestinationExistsError(
                f"Destination already exists: {destination.path}", path=destination.path
            )
        raise RemoteOperationError(
            f"Rename refused: {source.path} -> {destination.path}", path=source.path
        )
