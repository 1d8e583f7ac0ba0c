"""Delivery channels for live transcript events."""

import asyncio
from abc import ABC, abstractmethod

from .models import SessionEvent


class SubscriberClosedError(Exception):
    """Raised when delivering to a subscriber that can no longer accept events."""


class Subscriber(ABC):
    """A live consumer of one session's events."""

    @abstractmethod
    def send(self, event: SessionEvent) -> None:
        """
        Delivers one event without blocking.

        Raises:
            Exception: Any error marks the subscriber as failed; it is then
                unregistered by the session store.
        """
        pass

    def close(self) -> None:
        """Signals that no further events will follow."""


class QueueSubscriber(Subscriber):
    """
    Buffers events in a bounded asyncio queue for a consumer to drain.

    A consumer that falls behind until the queue is full is treated as
    failed. After `close()` the queue yields `None` as an end marker.
    """

    def __init__(self, maxsize: int = 256):
        self._queue: asyncio.Queue[SessionEvent | None] = asyncio.Queue(maxsize=maxsize + 1)
        self._maxsize = maxsize
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def send(self, event: SessionEvent) -> None:
        if self._closed:
            raise SubscriberClosedError("Subscriber is closed")
        if self._queue.qsize() >= self._maxsize:
            raise SubscriberClosedError("Subscriber queue is full")
        self._queue.put_nowait(event)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        # One slot is reserved for the end marker.
        self._queue.put_nowait(None)

    async def get(self) -> SessionEvent | None:
        return await self._queue.get()

    async def events(self):
        """Yields events until the subscriber is closed."""
        while True:
            event = await self._queue.get()
            if event is None:
                return
            yield event
