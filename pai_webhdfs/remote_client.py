"""
Virtual-filesystem contract.

Defines the interface tree views, upload helpers and the CLI program
against. HdfsFileSystem implements it; tests may substitute any object
with the same coroutine methods.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from .locator import RemoteLocator
from .webhdfs_client import DirectoryEntry


@runtime_checkable
class RemoteFileSystem(Protocol):
    """Protocol for a cluster-backed filesystem.

    All paths are RemoteLocators. Failures are raised as WebHdfsError
    subclasses (see pai_webhdfs.errors).
    """

    async def stat(self, locator: RemoteLocator) -> DirectoryEntry:
        """Get metadata for a single file or directory.

        Raises:
            NotFoundError: If the path does not exist.
        """
        ...

    async def list_directory(self, locator: RemoteLocator) -> list[DirectoryEntry]:
        """List a directory in server order (may be served from cache)."""
        ...

    async def read_file(self, locator: RemoteLocator) -> bytes:
        """Read a whole file."""
        ...

    async def create_file(
        self, locator: RemoteLocator, data: bytes, overwrite: bool = False
    ) -> None:
        """Create a file, or replace it when overwrite is True.

        Raises:
            DestinationExistsError: If it exists and overwrite is False.
        """
        ...

    async def append_file(self, locator: RemoteLocator, data: bytes) -> None:
        """Append to an existing file."""
        ...

    async def create_directory(self, locator: RemoteLocator) -> None:
        """Create a directory (and parents). Succeeds if it already exists."""
        ...

    async def delete(self, locator: RemoteLocator, recursive: bool = False) -> None:
        """Delete a file or directory.

        Raises:
            NotEmptyError: Non-recursive delete of a non-empty directory.
        """
        ...

    async def rename(self, source: RemoteLocator, destination: RemoteLocator) -> None:
        """Rename or move within one cluster.

        Raises:
            DestinationExistsError: If the destination exists.
        """
        ...

    async def copy(
        self, source: RemoteLocator, destination: RemoteLocator, overwrite: bool = False
    ) -> None:
        """Copy a file by reading it fully and writing it back."""
        ...
