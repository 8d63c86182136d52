"""Tests for the in-memory change broker."""

import asyncio

import pytest

from huddle.domain.entities.change import ChangeOperation, ChangeTable, DataChange
from huddle.infrastructure.realtime import InMemoryChangeBroker


def _change(*topics: str, message_id: str = "m1") -> DataChange:
    return DataChange(
        topics=list(topics),
        table=ChangeTable.MESSAGES,
        operation=ChangeOperation.INSERT,
        new={"id": message_id},
    )


class TestPublish:
    """Tests for publish() and feed delivery."""

    async def test_feed_receives_changes_in_order(self) -> None:
        broker = InMemoryChangeBroker()
        feed = await broker.subscribe(["channel:c1"])

        for n in range(3):
            await broker.publish(_change("channel:c1", message_id=f"m{n}"))

        received = [(await feed.get()).new for _ in range(3)]
        assert received == [{"id": "m0"}, {"id": "m1"}, {"id": "m2"}]

    async def test_other_topics_not_delivered(self) -> None:
        broker = InMemoryChangeBroker()
        feed = await broker.subscribe(["channel:c1"])

        await broker.publish(_change("channel:c2"))

        assert feed.pending_count == 0

    async def test_change_on_two_topics_delivered_once(self) -> None:
        """A thread reply reaches a feed on both keys only once."""
        broker = InMemoryChangeBroker()
        both = await broker.subscribe(["channel:c1", "thread:m0"])
        thread_only = await broker.subscribe(["thread:m0"])

        await broker.publish(_change("channel:c1", "thread:m0"))

        assert both.pending_count == 1
        assert thread_only.pending_count == 1

    async def test_get_waits_for_publish(self) -> None:
        broker = InMemoryChangeBroker()
        feed = await broker.subscribe(["channel:c1"])
        waiter = asyncio.create_task(feed.get())
        await asyncio.sleep(0)

        await broker.publish(_change("channel:c1"))

        assert (await asyncio.wait_for(waiter, timeout=1)).new == {"id": "m1"}


class TestFeedLifecycle:
    """Tests for close(), disconnect() and broker shutdown."""

    async def test_closed_feed_is_removed(self) -> None:
        broker = InMemoryChangeBroker()
        feed = await broker.subscribe(["channel:c1", "thread:m0"])
        assert broker.feed_count == 1

        feed.close()
        await broker.publish(_change("channel:c1"))

        assert feed.closed is True
        assert broker.feed_count == 0
        assert feed.pending_count == 0

    async def test_disconnect_topic_raises_connection_error(self) -> None:
        broker = InMemoryChangeBroker()
        dropped = await broker.subscribe(["channel:c1"])
        kept = await broker.subscribe(["channel:c2"])

        broker.disconnect("channel:c1")

        with pytest.raises(ConnectionError):
            await dropped.get()
        assert dropped.closed is True
        assert kept.closed is False

    async def test_disconnect_delivers_queued_changes_first(self) -> None:
        broker = InMemoryChangeBroker()
        feed = await broker.subscribe(["channel:c1"])
        await broker.publish(_change("channel:c1"))

        broker.disconnect()

        assert (await feed.get()).new == {"id": "m1"}
        with pytest.raises(ConnectionError):
            await feed.get()

    async def test_closed_broker_refuses_subscriptions(self) -> None:
        broker = InMemoryChangeBroker()
        feed = await broker.subscribe(["channel:c1"])

        broker.close()

        with pytest.raises(ConnectionError):
            await feed.get()
        with pytest.raises(ConnectionError):
            await broker.subscribe(["channel:c1"])
