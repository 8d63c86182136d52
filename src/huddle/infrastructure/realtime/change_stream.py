"""In-process change stream with topic-based feeds."""

import asyncio
from typing import Protocol

from huddle.domain.entities.change import DataChange


class ChangeFeed(Protocol):
    """A subscription to one or more topics of a change stream."""

    async def get(self) -> DataChange:
        """Wait for the next change.

        Raises:
            ConnectionError: If the feed was disconnected.
        """
        ...

    def close(self) -> None:
        """Release the feed."""
        ...


class ChangeStream(Protocol):
    """Source of row-level change notifications."""

    async def subscribe(self, topics: list[str]) -> ChangeFeed:
        """Open a feed receiving changes published on any of ``topics``.

        Raises:
            ConnectionError: If the stream is unavailable.
        """
        ...


class ChangePublisher(Protocol):
    """Sink for row-level change notifications."""

    async def publish(self, change: DataChange) -> None:
        """Deliver ``change`` to every feed subscribed to any of its topics."""
        ...


class _Disconnected:
    """Queue sentinel marking a dropped feed."""


_DISCONNECTED = _Disconnected()


class QueueChangeFeed:
    """Feed backed by an unbounded asyncio.Queue."""

    def __init__(self, broker: "InMemoryChangeBroker", topics: list[str]) -> None:
        self._broker = broker
        self.topics = tuple(topics)
        self._queue: asyncio.Queue[DataChange | _Disconnected] = asyncio.Queue()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def pending_count(self) -> int:
        return self._queue.qsize()

    def put(self, item: DataChange | _Disconnected) -> None:
        if not self._closed:
            self._queue.put_nowait(item)

    async def get(self) -> DataChange:
        item = await self._queue.get()
        if isinstance(item, _Disconnected):
            raise ConnectionError("Change feed disconnected")
        return item

    def close(self) -> None:
        if not self._closed:
            self._closed = True
            self._broker.remove_feed(self)


class InMemoryChangeBroker:
    """Process-local change stream.

    Changes are delivered to each feed in publication order. A change
    published on several topics reaches a feed once even if the feed
    listens to more than one of them.
    """

    def __init__(self) -> None:
        self._feeds: dict[str, set[QueueChangeFeed]] = {}
        self._closed = False

    @property
    def feed_count(self) -> int:
        return len({feed for feeds in self._feeds.values() for feed in feeds})

    async def subscribe(self, topics: list[str]) -> QueueChangeFeed:
        if self._closed:
            raise ConnectionError("Change stream is closed")
        feed = QueueChangeFeed(self, topics)
        for topic in topics:
            self._feeds.setdefault(topic, set()).add(feed)
        return feed

    async def publish(self, change: DataChange) -> None:
        recipients: dict[int, QueueChangeFeed] = {}
        for topic in change.topics:
            for feed in self._feeds.get(topic, ()):
                recipients[id(feed)] = feed
        for feed in recipients.values():
            feed.put(change)

    def disconnect(self, topic: str | None = None) -> None:
        """Drop the feeds of ``topic`` (or all feeds) as a transport failure would.

        Dropped feeds raise ConnectionError from ``get``; their owners are
        expected to resubscribe.
        """
        feeds = (
            self._feeds.get(topic, set()).copy()
            if topic is not None
            else {feed for feeds in self._feeds.values() for feed in feeds}
        )
        for feed in feeds:
            feed.put(_DISCONNECTED)
            feed.close()

    def close(self) -> None:
        """Disconnect every feed and refuse new subscriptions."""
        self._closed = True
        self.disconnect()

    def remove_feed(self, feed: QueueChangeFeed) -> None:
        for topic in feed.topics:
            feeds = self._feeds.get(topic)
            if feeds is None:
                continue
            feeds.discard(feed)
            if not feeds:
                del self._feeds[topic]
