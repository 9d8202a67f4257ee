"""Event broadcaster - fan-out of server notifications to subscribers.

Every subscriber gets its own bounded buffer, so a slow consumer never holds
up the dispatch loop or other subscribers. When a buffer is full the oldest
event is dropped and the subscriber is told how many it missed:

    async for item in subscription:
        if isinstance(item, Lagged):
            resync(item.skipped)
            continue
        handle(item)

There is no replay: a subscription only sees events published after it was
created. At connection teardown every subscription ends normally (the async
iterator stops) after yielding what it had already buffered.
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from dataclasses import dataclass
from typing import Any

from .config import DEFAULT_BROADCAST_CAPACITY
from .errors import NotConnected
from .protocol.frames import Event

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Lagged:
    """Gap marker: `skipped` events were dropped from this subscription."""

    skipped: int


class Subscription:
    """A live stream of events for one consumer.

    Yields Event items (and Lagged markers after overflow) in arrival order.
    Use as an async iterator, optionally inside `async with`.
    """

    def __init__(self, broadcaster: EventBroadcaster, capacity: int):
        self._broadcaster: EventBroadcaster | None = broadcaster
        self._capacity = capacity
        self._buffer: deque[Event] = deque()
        self._skipped = 0
        self._ended = False
        self._wakeup = asyncio.Event()

    @property
    def closed(self) -> bool:
        return self._ended

    @property
    def buffered(self) -> int:
        """Number of events waiting to be read."""
        return len(self._buffer)

    def close(self) -> None:
        """Detach from the broadcaster and discard anything still buffered."""
        if self._broadcaster is not None:
            self._broadcaster._detach(self)
            self._broadcaster = None
        self._buffer.clear()
        self._skipped = 0
        self._end()

    async def aclose(self) -> None:
        self.close()

    def _push(self, event: Event) -> None:
        if self._ended:
            return
        if len(self._buffer) >= self._capacity:
            self._buffer.popleft()
            self._skipped += 1
        self._buffer.append(event)
        self._wakeup.set()

    def _end(self) -> None:
        self._ended = True
        self._broadcaster = None
        self._wakeup.set()

    def __aiter__(self) -> Subscription:
        return self

    async def __anext__(self) -> Event | Lagged:
        while True:
            if self._skipped:
                skipped, self._skipped = self._skipped, 0
                return Lagged(skipped)
            if self._buffer:
                return self._buffer.popleft()
            if self._ended:
                raise StopAsyncIteration
            self._wakeup.clear()
            await self._wakeup.wait()

    async def __aenter__(self) -> Subscription:
        return self

    async def __aexit__(self, *args: Any) -> None:
        self.close()


class EventBroadcaster:
    """Delivers each published event to every attached subscription."""

    def __init__(self, capacity: int = DEFAULT_BROADCAST_CAPACITY):
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self._capacity = capacity
        self._subscribers: list[Subscription] = []
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def subscribe(self) -> Subscription:
        """Attach a new subscription.

        Raises:
            NotConnected: After close_all()
        """
        if self._closed:
            raise NotConnected("Event stream is closed")
        subscription = Subscription(self, self._capacity)
        self._subscribers.append(subscription)
        return subscription

    def publish(self, event: Event) -> int:
        """Buffer an event for every subscriber. Never blocks.

        Returns the number of subscribers it was delivered to.
        """
        if self._closed:
            return 0
        subscribers = list(self._subscribers)
        for subscription in subscribers:
            subscription._push(event)
        return len(subscribers)

    def close_all(self) -> None:
        """End every subscription and refuse new ones."""
        if self._closed:
            return
        self._closed = True
        subscribers, self._subscribers = self._subscribers, []
        for subscription in subscribers:
            subscription._end()
        logger.debug(f"Closed {len(subscribers)} event subscription(s)")

    def _detach(self, subscription: Subscription) -> None:
        if subscription in self._subscribers:
            self._subscribers.remove(subscription)
