"""
Progress events for long-running transfers.

Transfers publish ProgressEvents into a ProgressStream; any number of
subscribers read them as an async iterator. Publishing never waits on a
subscriber, so a slow or absent reader cannot hold up a transfer.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from dataclasses import dataclass
from enum import Enum

from .locator import RemoteLocator

logger = logging.getLogger(__name__)


class TransferPhase(str, Enum):
    NEGOTIATE = "negotiate"
    TRANSFER = "transfer"
    DONE = "done"
    FAILED = "failed"


@dataclass(frozen=True)
class ProgressEvent:
    operation: str  # "create", "append", "read", "copy", "upload"
    locator: RemoteLocator
    phase: TransferPhase
    bytes_done: int = 0
    bytes_total: int | None = None
    error: str | None = None

    @property
    def fraction(self) -> float | None:
        if not self.bytes_total:
            return None
        return min(1.0, self.bytes_done / self.bytes_total)


_CLOSED = object()


class ProgressSubscription:
    """Async iterator over the events published after it was created."""

    def __init__(self, stream: ProgressStream, max_pending: int):
        self._stream = stream
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=max_pending)
        self.dropped = 0

    def _offer(self, item) -> None:
        try:
            self._queue.put_nowait(item)
        except asyncio.QueueFull:
            if item is _CLOSED:
                # Make room so the end marker always gets through
                self._queue.get_nowait()
                self._queue.put_nowait(item)
            else:
                self.dropped += 1

    def __aiter__(self) -> AsyncIterator[ProgressEvent]:
        return self

    async def __anext__(self) -> ProgressEvent:
        item = await self._queue.get()
        if item is _CLOSED:
            raise StopAsyncIteration
        return item

    def close(self) -> None:
        self._stream._unsubscribe(self)
        self._offer(_CLOSED)


class ProgressStream:
    """
    Fan-out channel of ProgressEvents.

    Args:
        max_pending: Per-subscriber buffer size. Events beyond it are
            dropped for that subscriber and counted in ``dropped``.
    """

    def __init__(self, max_pending: int = 1000):
        self.max_pending = max_pending
        self._subscribers: list[ProgressSubscription] = []
        self._closed = False

    def subscribe(self) -> ProgressSubscription:
        subscription = ProgressSubscription(self, self.max_pending)
        if self._closed:
            subscription._offer(_CLOSED)
        else:
            self._subscribers.append(subscription)
        return subscription

    def _unsubscribe(self, subscription: ProgressSubscription) -> None:
        if subscription in self._subscribers:
            self._subscribers.remove(subscription)

    def publish(self, event: ProgressEvent) -> None:
        if self._closed:
            return
        logger.debug(
            "%s %s %s: %d/%s bytes",
            event.operation,
            event.locator,
            event.phase.value,
            event.bytes_done,
            event.bytes_total,
        )
        for subscription in list(self._subscribers):
            subscription._offer(event)

    def close(self) -> None:
        """End every subscription; later publishes are ignored."""
        self._closed = True
        for subscription in list(self._subscribers):
            subscription.close()

    @property
    def closed(self) -> bool:
        return self._closed
