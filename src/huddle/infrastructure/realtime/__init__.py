"""Realtime change stream infrastructure."""

from huddle.infrastructure.realtime.change_stream import (
    ChangeFeed,
    ChangePublisher,
    ChangeStream,
    InMemoryChangeBroker,
    QueueChangeFeed,
)

__all__ = [
    "ChangeFeed",
    "ChangePublisher",
    "ChangeStream",
    "InMemoryChangeBroker",
    "QueueChangeFeed",
]
