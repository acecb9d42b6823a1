"""Unit tests for the event hub."""

import asyncio

import pytest

from discord_ipc.bus import EventHub
from discord_ipc.protocol.events import CloseEvent, PacketEvent, Payload
from discord_ipc.protocol.frames import OpCode


def packet(n: int) -> PacketEvent:
    return PacketEvent(op=OpCode.MESSAGE, payload=Payload(cmd="DISPATCH", data={"n": n}))


async def collect(subscription, timeout: float = 1.0) -> list:
    """Drain a subscription until it stops."""

    async def run():
        return [event async for event in subscription]

    return await asyncio.wait_for(run(), timeout)


class TestPublish:
    """Test fan-out of published events."""

    @pytest.mark.asyncio
    async def test_broadcast_to_all_subscribers(self):
        """Every subscriber receives every event."""
        hub = EventHub()
        first = hub.subscribe()
        second = hub.subscribe()

        hub.publish(packet(1))
        hub.publish(packet(2))
        hub.close_all()

        first_events = await collect(first)
        second_events = await collect(second)

        assert [e.data for e in first_events[:2]] == [{"n": 1}, {"n": 2}]
        assert first_events == second_events

    @pytest.mark.asyncio
    async def test_no_replay_for_late_subscribers(self):
        """A subscription only sees events published after it was created."""
        hub = EventHub()
        early = hub.subscribe()
        hub.publish(packet(1))
        late = hub.subscribe()
        hub.publish(packet(2))
        hub.close_all()

        assert len(await collect(early)) == 3
        late_events = await collect(late)
        assert [e.data for e in late_events if e.type == "packet"] == [{"n": 2}]

    @pytest.mark.asyncio
    async def test_backlog_accumulates(self):
        """An idle subscriber keeps everything queued."""
        hub = EventHub()
        subscription = hub.subscribe()

        for n in range(50):
            hub.publish(packet(n))

        assert subscription.pending == 50

    @pytest.mark.asyncio
    async def test_publish_without_subscribers(self):
        hub = EventHub()
        hub.publish(packet(1))

        assert hub.subscriber_count == 0


class TestUnsubscribe:
    """Test removing individual subscriptions."""

    @pytest.mark.asyncio
    async def test_close_removes_only_that_subscription(self):
        hub = EventHub()
        keep = hub.subscribe()
        drop = hub.subscribe()

        drop.close()
        hub.publish(packet(1))

        assert hub.subscriber_count == 1
        assert keep.pending == 1
        assert drop.closed is True

    @pytest.mark.asyncio
    async def test_closed_subscription_stops_iterating(self):
        hub = EventHub()
        subscription = hub.subscribe()
        hub.publish(packet(1))

        subscription.close()

        assert await collect(subscription) == []

    @pytest.mark.asyncio
    async def test_close_wakes_blocked_consumer(self):
        """Closing a subscription ends a pending `async for`."""
        hub = EventHub()
        subscription = hub.subscribe()
        consumer = asyncio.create_task(collect(subscription))
        await asyncio.sleep(0)

        subscription.close()

        assert await consumer == []

    @pytest.mark.asyncio
    async def test_context_manager_unsubscribes(self):
        hub = EventHub()

        async with hub.subscribe():
            assert hub.subscriber_count == 1

        assert hub.subscriber_count == 0


class TestCloseAll:
    """Test hub shutdown."""

    @pytest.mark.asyncio
    async def test_terminal_event_then_stop(self):
        """Subscribers get the close event last and then stop."""
        hub = EventHub()
        subscription = hub.subscribe()
        hub.publish(packet(1))

        hub.close_all(CloseEvent(code=1000, message="bye"))
        events = await collect(subscription)

        assert events[0].type == "packet"
        assert events[-1] == CloseEvent(code=1000, message="bye")
        assert subscription.closed is True
        assert hub.subscriber_count == 0

    @pytest.mark.asyncio
    async def test_close_all_is_idempotent(self):
        hub = EventHub()
        subscription = hub.subscribe()

        hub.close_all()
        hub.close_all()

        assert len(await collect(subscription)) == 1

    @pytest.mark.asyncio
    async def test_publish_after_close_is_dropped(self):
        hub = EventHub()
        subscription = hub.subscribe()
        hub.close_all()

        hub.publish(packet(1))

        assert [e.type for e in await collect(subscription)] == ["close"]

    @pytest.mark.asyncio
    async def test_subscribe_after_close(self):
        """A subscription created after close yields only the close event."""
        hub = EventHub()
        hub.close_all()

        events = await collect(hub.subscribe())

        assert [e.type for e in events] == ["close"]
        assert hub.subscriber_count == 0
