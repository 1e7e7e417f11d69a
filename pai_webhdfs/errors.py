"""
Error taxonomy for WebHDFS operations.

Every failure surfaced by the adapter is one of the classes below. Each
also derives from the nearest builtin exception so callers can catch
FileNotFoundError, PermissionError and friends as usual.
"""

from __future__ import annotations

import json
import logging
from typing import Any

logger = logging.getLogger(__name__)


class WebHdfsError(Exception):
    """Base class for all adapter errors."""

    def __init__(
        self,
        message: str,
        *,
        path: str | None = None,
        status_code: int | None = None,
        remote_exception: str | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.path = path
        self.status_code = status_code
        self.remote_exception = remote_exception

    def __str__(self) -> str:
        return self.message


class UnknownClusterError(WebHdfsError, LookupError):
    """The locator names a cluster that is not registered."""


class NotFoundError(WebHdfsError, FileNotFoundError):
    """The remote path does not exist."""


class NotEmptyError(WebHdfsError, OSError):
    """Non-recursive delete of a directory that still has children."""


class DestinationExistsError(WebHdfsError, FileExistsError):
    """The target of a create, copy or rename already exists."""


class AccessDeniedError(WebHdfsError, PermissionError):
    """Authentication or permission failure on the remote side."""


class TransportError(WebHdfsError, ConnectionError):
    """Network failure, timeout or malformed redirect."""


class ProtocolError(WebHdfsError, ValueError):
    """The server answered with something the protocol does not allow."""


class RemoteOperationError(WebHdfsError, OSError):
    """A RemoteException that does not fit any other category."""


# Java exception simple names -> taxonomy class
REMOTE_EXCEPTION_MAP: dict[str, type[WebHdfsError]] = {
    "FileNotFoundException": NotFoundError,
    "PathIsNotEmptyDirectoryException": NotEmptyError,
    "FileAlreadyExistsException": DestinationExistsError,
    "AlreadyBeingCreatedException": DestinationExistsError,
    "AccessControlException": AccessDeniedError,
    "SecurityException": AccessDeniedError,
    "AuthenticationException": AccessDeniedError,
    "InvalidToken": AccessDeniedError,
}

_NOT_EMPTY_MARKERS = ("is non empty", "not empty")


def parse_remote_exception(body: bytes | str) -> dict[str, Any] | None:
    """
    Extract the ``RemoteException`` object from an error body.

    Returns:
        The inner dict (exception, javaClassName, message) or None when the
        body is not a WebHDFS error document.
    """
    if not body:
        return None
    try:
        document = json.loads(body)
    except (ValueError, UnicodeDecodeError):
        return None
    if not isinstance(document, dict):
        return None
    remote = document.get("RemoteException")
    return remote if isinstance(remote, dict) else None


def error_from_response(status_code: int, body: bytes | str, path: str | None = None) -> WebHdfsError:
    """
    Translate a non-success HTTP response into the error taxonomy.

    Args:
        status_code: HTTP status of the response.
        body: Raw response body.
        path: Remote path the request was about, for the error message.

    Returns:
        The matching WebHdfsError subclass instance (not raised).
    """
    remote = parse_remote_exception(body)
    if remote is not None:
        exception = str(remote.get("exception") or remote.get("javaClassName") or "")
        exception = exception.rsplit(".", 1)[-1].rsplit("$", 1)[-1]
        message = str(remote.get("message") or exception or f"HTTP {status_code}")
        error_class = REMOTE_EXCEPTION_MAP.get(exception)
        if error_class is None:
            if exception == "IOException" and any(m in message.lower() for m in _NOT_EMPTY_MARKERS):
                error_class = NotEmptyError
            elif status_code == 401:
                error_class = AccessDeniedError
            elif status_code == 404:
                error_class = NotFoundError
            else:
                error_class = RemoteOperationError
        logger.debug("RemoteException %s (HTTP %d) for %s: %s", exception, status_code, path, message)
        return error_class(message, path=path, status_code=status_code, remote_exception=exception)

    if status_code in (401, 403):
        return AccessDeniedError(
            f"Access denied (HTTP {status_code}): {path}", path=path, status_code=status_code
        )
    if status_code == 404:
        return NotFoundError(f"No such file or directory: {path}", path=path, status_code=status_code)
    return ProtocolError(
        f"Unexpected HTTP {status_code} response for {path}", path=path, status_code=status_code
    )
