"""Event Hub - broadcast of every frame to all subscribers.

Each subscriber gets its own unbounded queue, so every subscriber sees every
event (broadcast, not work-stealing) in the order frames were read. A slow
subscriber accumulates backlog; nothing is dropped.

Usage:
    async with hub.subscribe() as events:
        async for event in events:
            if event.type == "packet":
                ...

All methods run on the event loop thread and never await while mutating
the subscriber set, so no lock is needed.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from .protocol.events import CloseEvent, IPCEvent

logger = logging.getLogger(__name__)

_STOP = object()


class Subscription:
    """One subscriber's view of the event stream.

    Registered on creation; yields events published afterwards (no replay)
    until the hub closes, then yields the terminal CloseEvent and stops.
    """

    def __init__(self, hub: EventHub):
        self._hub = hub
        self._queue: asyncio.Queue[IPCEvent | object] = asyncio.Queue()
        self._finished = False

    @property
    def pending(self) -> int:
        """Number of events queued but not yet consumed."""
        return self._queue.qsize()

    @property
    def closed(self) -> bool:
        return self._finished

    def _deliver(self, event: IPCEvent) -> None:
        self._queue.put_nowait(event)

    def close(self) -> None:
        """Stop receiving events. Removes this registration only."""
        if self._finished:
            return
        self._hub._remove(self)
        self._finished = True
        # Wake a consumer blocked in __anext__
        self._queue.put_nowait(_STOP)

    async def aclose(self) -> None:
        self.close()

    def __aiter__(self) -> Subscription:
        return self

    async def __anext__(self) -> IPCEvent:
        if self._finished:
            raise StopAsyncIteration

        event = await self._queue.get()
        if event is _STOP or self._finished:
            raise StopAsyncIteration
        if isinstance(event, CloseEvent):
            self._finished = True
        return event  # type: ignore[return-value]

    async def __aenter__(self) -> Subscription:
        return self

    async def __aexit__(self, *args: Any) -> None:
        self.close()


class EventHub:
    """Fan-out of IPC events to independent subscribers."""

    def __init__(self) -> None:
        self._subscribers: list[Subscription] = []
        self._closed: CloseEvent | None = None

    @property
    def closed(self) -> bool:
        return self._closed is not None

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def subscribe(self) -> Subscription:
        """Create a new independent subscription starting now."""
        subscription = Subscription(self)
        if self._closed is not None:
            # Late subscribers still observe the terminal event
            subscription._deliver(self._closed)
            return subscription

        self._subscribers.append(subscription)
        logger.debug(f"Subscriber added ({len(self._subscribers)} active)")
        return subscription

    def publish(self, event: IPCEvent) -> None:
        """Enqueue an event to every registered subscriber."""
        if self._closed is not None:
            logger.debug(f"Dropping {event.type} event published after close")
            return

        # Copy so a subscriber closing mid-publish can't skip a neighbour
        for subscription in list(self._subscribers):
            subscription._deliver(event)

    def close_all(self, event: CloseEvent | None = None) -> None:
        """Deliver the terminal close event to everyone, then drop all registrations."""
        if self._closed is not None:
            return

        self._closed = event or CloseEvent()
        subscribers, self._subscribers = self._subscribers, []
        for subscription in subscribers:
            subscription._deliver(self._closed)
        logger.debug(f"Event hub closed ({len(subscribers)} subscribers notified)")

    def _remove(self, subscription: Subscription) -> None:
        if subscription in self._subscribers:
            self._subscribers.remove(subscription)
            logger.debug(f"Subscriber removed ({len(self._subscribers)} active)")
