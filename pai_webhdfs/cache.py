import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from cachetools import LRUCache

from .locator import RemoteLocator, parent_path

logger = logging.getLogger(__name__)

CacheKey = tuple[str, str]


@dataclass
class CacheEntry:
    path: str
    entries: list
    fetched_at: float


class DirectoryCache:
    """
    Cache for directory listings.

    Entries never expire by time; they are dropped when a mutating
    operation touches the directory or its parent. Keys carry the cluster
    authority so listings of different clusters never mix. The LRU bound
    only evicts early, it never serves anything stale. A listing that was
    in flight when its directory got invalidated is returned to its caller
    but not stored.

    No lock is taken: callers run on a single event loop.
    """

    def __init__(self, max_entries: int = 1024, enabled: bool = True):
        self.max_entries = max_entries
        self.enabled = enabled
        self._cache: LRUCache = LRUCache(maxsize=max_entries)
        # Only keys with a listing in flight are tracked here
        self._in_flight: dict[CacheKey, int] = {}
        self._generations: dict[CacheKey, int] = {}

    @staticmethod
    def _key(locator: RemoteLocator) -> CacheKey:
        return (locator.cluster_authority, locator.path)

    def get(self, locator: RemoteLocator) -> list | None:
        """
        Retrieve a cached directory listing.

        Args:
            locator: The directory to look up.

        Returns:
            A copy of the cached listing, or None on a miss.
        """
        if not self.enabled:
            return None
        entry = self._cache.get(self._key(locator))
        if entry is None:
            return None
        return list(entry.entries)

    def put(self, locator: RemoteLocator, listing: list) -> None:
        """
        Cache a directory listing.

        Args:
            locator: The directory.
            listing: Its entries in server order.
        """
        if not self.enabled:
            return
        self._cache[self._key(locator)] = CacheEntry(
            path=locator.path, entries=list(listing), fetched_at=time.time()
        )

    async def get_or_fetch(
        self, locator: RemoteLocator, fetch: Callable[[], Awaitable[list]]
    ) -> list:
        """Serve the cached listing, or await ``fetch()`` and cache its result."""
        cached = self.get(locator)
        if cached is not None:
            logger.debug("Directory cache hit: %s", locator)
            return cached
        key = self._key(locator)
        self._in_flight[key] = self._in_flight.get(key, 0) + 1
        generation = self._generations.get(key, 0)
        try:
            listing = await fetch()
        finally:
            invalidated = self._generations.get(key, 0) != generation
            self._in_flight[key] -= 1
            if not self._in_flight[key]:
                del self._in_flight[key]
                self._generations.pop(key, None)
        if invalidated:
            # The directory changed while this listing was on the wire
            logger.debug("Discarding listing of %s invalidated while in flight", locator)
        else:
            self.put(locator, listing)
        return list(listing)

    def _drop(self, key: CacheKey) -> None:
        self._cache.pop(key, None)
        if key in self._in_flight:
            self._generations[key] = self._generations.get(key, 0) + 1

    def invalidate(self, locator: RemoteLocator) -> None:
        """
        Drop the cached listing for a path and for its parent.

        Creating, deleting or renaming an entry changes the parent's
        listing as well, so both go.
        """
        self._drop(self._key(locator))
        self._drop((locator.cluster_authority, parent_path(locator.path)))

    def invalidate_tree(self, locator: RemoteLocator) -> None:
        """Invalidate a path, its parent and every cached descendant."""
        self.invalidate(locator)
        prefix = locator.path.rstrip("/") + "/"
        stale = [
            key
            for key in set(self._cache.keys()) | set(self._in_flight)
            if key[0] == locator.cluster_authority and key[1].startswith(prefix)
        ]
        for key in stale:
            self._drop(key)
        if stale:
            logger.debug("Invalidated %d cached descendants of %s", len(stale), locator)

    def clear(self) -> None:
        for key in set(self._cache.keys()) | set(self._in_flight):
            self._drop(key)

    def __contains__(self, locator: RemoteLocator) -> bool:
        return self._key(locator) in self._cache

    def __len__(self) -> int:
        return len(self._cache)
