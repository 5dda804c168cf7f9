"""
RFM69 Event Streams

Multi-subscriber fan-out used for two streams:
- the DIO0 interrupt line (content-less edges)
- received packets handed to the application

Each subscriber gets its own unbounded queue and only sees items
published after it subscribed.
"""

import asyncio
import logging
from typing import Generic, List, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

_CLOSED = object()


class Subscription(Generic[T]):
    """
    One subscriber's view of a Broadcast.

    Usage:
        with stream.subscribe() as sub:
            item = await sub.get()

        async for item in stream.subscribe():
            ...
    """

    def __init__(self, broadcast: "Broadcast[T]"):
        self._broadcast = broadcast
        self._queue: asyncio.Queue = asyncio.Queue()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def pending(self) -> int:
        """Number of items delivered but not yet consumed."""
        return self._queue.qsize()

    def _deliver(self, item) -> None:
        if not self._closed:
            self._queue.put_nowait(item)

    async def get(self) -> T:
        """
        Wait for the next item.

        Raises:
            StopAsyncIteration: If the subscription was closed
        """
        item = await self._queue.get()
        if item is _CLOSED:
            # Leave the marker for any other waiter
            self._queue.put_nowait(_CLOSED)
            raise StopAsyncIteration
        return item

    def close(self) -> None:
        """Unsubscribe and wake any waiter."""
        if self._closed:
            return
        self._closed = True
        self._broadcast._remove(self)
        self._queue.put_nowait(_CLOSED)

    def __aiter__(self) -> "Subscription[T]":
        return self

    async def __anext__(self) -> T:
        return await self.get()

    def __enter__(self) -> "Subscription[T]":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False


class Broadcast(Generic[T]):
    """Fan-out of published items to every current subscriber."""

    def __init__(self, name: str = "broadcast"):
        self.name = name
        self._subscribers: List[Subscription[T]] = []
        self._loop: Optional[asyncio.AbstractEventLoop] = None

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def subscribe(self) -> Subscription[T]:
        """Start receiving items published from now on."""
        try:
            self._loop = asyncio.get_running_loop()
        except RuntimeError:
            pass
        sub: Subscription[T] = Subscription(self)
        self._subscribers.append(sub)
        return sub

    def publish(self, item: T) -> None:
        """Deliver item to every subscriber. Must run on the event loop thread."""
        for sub in list(self._subscribers):
            sub._deliver(item)

    def publish_threadsafe(self, item: T) -> None:
        """Deliver item from a foreign thread (e.g. a GPIO callback)."""
        if self._loop is None or self._loop.is_closed():
            logger.debug(f"{self.name}: no event loop yet, dropping item")
            return
        self._loop.call_soon_threadsafe(self.publish, item)

    def _remove(self, sub: Subscription[T]) -> None:
        if sub in self._subscribers:
            self._subscribers.remove(sub)


class InterruptLine(Broadcast[None]):
    """
    Edge events from the radio's DIO0 pin.

    Hardware adapters call fire_threadsafe() from their callback thread;
    simulations on the loop call fire().
    """

    def __init__(self, name: str = "dio0"):
        super().__init__(name)

    def fire(self) -> None:
        """Signal one edge."""
        self.publish(None)

    def fire_threadsafe(self) -> None:
        """Signal one edge from a foreign thread."""
        self.publish_threadsafe(None)
