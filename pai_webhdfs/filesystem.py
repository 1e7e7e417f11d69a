"""
HDFS-backed virtual filesystem.

HdfsFileSystem is what callers talk to: it puts the directory cache in
front of list/stat and invalidates it after every confirmed mutation.
All remote work is delegated to WebHdfsClient.
"""

import logging
from functools import wraps

from .cache import DirectoryCache
from .config import CacheConfig
from .errors import NotFoundError, WebHdfsError
from .locator import RemoteLocator
from .progress import ProgressEvent, ProgressStream, TransferPhase
from .webhdfs_client import DirectoryEntry, WebHdfsClient

logger = logging.getLogger(__name__)


def operation(fn):
    """Decorator for filesystem operations - logs outcome at DEBUG."""
    name = fn.__name__

    @wraps(fn)
    async def wrapper(self, *args, **kwargs):
        try:
            result = await fn(self, *args, **kwargs)
            logger.debug("%s: OK", name)
            return result
        except WebHdfsError as exc:
            logger.debug("%s: FAIL - %s", name, exc)
            raise

    return wrapper


class HdfsFileSystem:
    """
    File operations over WebHDFS with a cached directory index.

    The cache is only invalidated after the remote side confirmed a
    mutation. Changes made by other clients are not seen until an
    operation through this object invalidates the affected directory.
    Concurrent operations on the same path are not ordered.
    """

    def __init__(
        self,
        client: WebHdfsClient,
        cache_config: CacheConfig | None = None,
        progress: ProgressStream | None = None,
    ):
        cache_config = cache_config or CacheConfig()
        self.client = client
        self.dir_cache = DirectoryCache(cache_config.max_entries, enabled=cache_config.enabled)
        self.progress = progress
        logger.info(
            "HdfsFileSystem initialized (cache enabled=%s, max_entries=%d)",
            cache_config.enabled,
            cache_config.max_entries,
        )

    async def aclose(self) -> None:
        await self.client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @operation
    async def list_directory(self, locator: RemoteLocator) -> list[DirectoryEntry]:
        """List a directory, serving repeated listings from the cache."""
        return await self.dir_cache.get_or_fetch(
            locator, lambda: self.client.list_status(locator)
        )

    @operation
    async def stat(self, locator: RemoteLocator) -> DirectoryEntry:
        """Stat a path, using the parent's cached listing when it has the entry."""
        if not locator.is_root:
            siblings = self.dir_cache.get(locator.parent)
            if siblings is not None:
                for entry in siblings:
                    if entry.name == locator.name:
                        return entry
        return await self.client.get_file_status(locator)

    @operation
    async def read_file(self, locator: RemoteLocator) -> bytes:
        return await self.client.read_file(locator, progress=self.progress)

    async def exists(self, locator: RemoteLocator) -> bool:
        try:
            await self.stat(locator)
        except NotFoundError:
            return False
        return True

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    @operation
    async def create_file(
        self, locator: RemoteLocator, data: bytes, overwrite: bool = False
    ) -> None:
        await self.client.create_file(locator, data, overwrite=overwrite, progress=self.progress)
        self.dir_cache.invalidate(locator)

    @operation
    async def append_file(self, locator: RemoteLocator, data: bytes) -> None:
        await self.client.append_file(locator, data, progress=self.progress)
        self.dir_cache.invalidate(locator)

    @operation
    async def create_directory(self, locator: RemoteLocator) -> None:
        await self.client.make_directory(locator)
        self.dir_cache.invalidate(locator)

    @operation
    async def delete(self, locator: RemoteLocator, recursive: bool = False) -> None:
        await self.client.delete(locator, recursive=recursive)
        self.dir_cache.invalidate_tree(locator)

    @operation
    async def rename(self, source: RemoteLocator, destination: RemoteLocator) -> None:
        await self.client.rename(source, destination)
        self.dir_cache.invalidate_tree(source)
        self.dir_cache.invalidate_tree(destination)

    @operation
    async def copy(
        self, source: RemoteLocator, destination: RemoteLocator, overwrite: bool = False
    ) -> None:
        """
        Copy a file.

        WebHDFS has no server-side copy, so the whole source is read into
        memory and written to the destination. This is not atomic and its
        memory use grows with the file size.

        Raises:
            DestinationExistsError: If the destination exists and overwrite
                is False; the destination is left untouched.
        """
        if self.progress is not None:
            self.progress.publish(ProgressEvent("copy", source, TransferPhase.NEGOTIATE))
        try:
            data = await self.client.read_file(source, progress=self.progress)
            await self.client.create_file(
                destination, data, overwrite=overwrite, progress=self.progress
            )
        except WebHdfsError as e:
            if self.progress is not None:
                self.progress.publish(
                    ProgressEvent("copy", destination, TransferPhase.FAILED, error=str(e))
                )
            raise
        self.dir_cache.invalidate(destination)
        if self.progress is not None:
            self.progress.publish(
                ProgressEvent("copy", destination, TransferPhase.DONE, len(data), len(data))
            )
        logger.debug("Copied %d bytes: %s -> %s", len(data), source, destination)
