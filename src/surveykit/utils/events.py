"""Broadcast event channel for job and progress updates."""

import asyncio
from collections.abc import AsyncIterator, Callable
from typing import Generic, TypeVar

from surveykit.utils.logging import get_logger

log = get_logger(__name__)

T = TypeVar("T")

_CLOSED = object()


class Subscription(Generic[T]):
    """A single subscriber's view of an :class:`EventChannel`.

    Iterate with ``async for`` to receive every event published after the
    subscription was created. Iteration ends when the channel is closed or
    the subscription is cancelled.
    """

    def __init__(self, channel: "EventChannel[T]") -> None:
        self._channel = channel
        self._queue: asyncio.Queue[object] = asyncio.Queue()

    def _push(self, item: object) -> None:
        self._queue.put_nowait(item)

    def pending(self) -> list[T]:
        """Drain and return events already delivered but not yet consumed."""
        items: list[T] = []
        while not self._queue.empty():
            item = self._queue.get_nowait()
            if item is _CLOSED:
                break
            items.append(item)  # type: ignore[arg-type]
        return items

    async def get(self) -> T:
        """Wait for the next event.

        Raises:
            StopAsyncIteration: If the channel was closed
        """
        item = await self._queue.get()
        if item is _CLOSED:
            raise StopAsyncIteration
        return item  # type: ignore[return-value]

    def cancel(self) -> None:
        """Stop receiving events."""
        self._channel._remove(self)
        self._push(_CLOSED)

    def __aiter__(self) -> AsyncIterator[T]:
        return self

    async def __anext__(self) -> T:
        return await self.get()


class EventChannel(Generic[T]):
    """Fan-out channel: every published event reaches every subscriber.

    Supports queue-based subscribers (``subscribe()``) for async consumers
    and plain callbacks (``listen()``) for synchronous observers. Publishing
    never blocks; a failing callback is logged and does not affect others.
    """

    def __init__(self, name: str = "events") -> None:
        self.name = name
        self._subscriptions: list[Subscription[T]] = []
        self._listeners: list[Callable[[T], None]] = []
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def subscriber_count(self) -> int:
        return len(self._subscriptions) + len(self._listeners)

    def subscribe(self) -> Subscription[T]:
        """Create a new queue-backed subscription."""
        subscription: Subscription[T] = Subscription(self)
        if self._closed:
            subscription._push(_CLOSED)
        else:
            self._subscriptions.append(subscription)
        return subscription

    def listen(self, callback: Callable[[T], None]) -> Callable[[], None]:
        """Register a callback; returns a function that unregisters it."""
        self._listeners.append(callback)

        def _unlisten() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)

        return _unlisten

    def publish(self, event: T) -> None:
        """Deliver an event to all subscribers and listeners."""
        if self._closed:
            log.debug("Dropping event on closed channel", channel=self.name)
            return
        for subscription in list(self._subscriptions):
            subscription._push(event)
        for callback in list(self._listeners):
            try:
                callback(event)
            except Exception as e:
                log.warning("Event listener failed", channel=self.name, error=str(e))

    def close(self) -> None:
        """Close the channel and end every subscriber's iteration."""
        if self._closed:
            return
        self._closed = True
        for subscription in self._subscriptions:
            subscription._push(_CLOSED)
        self._subscriptions.clear()
        self._listeners.clear()

    def _remove(self, subscription: Subscription[T]) -> None:
        if subscription in self._subscriptions:
            self._subscriptions.remove(subscription)
