"""Realtime fan-out of change notifications to conversation listeners."""

import asyncio
import itertools
from collections.abc import Awaitable, Callable
from enum import Enum

from structlog.stdlib import BoundLogger

from huddle.application.handlers.change_handlers import ChangeHandlerRegistry
from huddle.config.models import RealtimeConfig
from huddle.domain.entities.change import DataChange, RealtimeEvent, RealtimeEventType
from huddle.infrastructure.realtime.change_stream import ChangeFeed, ChangeStream

Listener = Callable[[RealtimeEvent], Awaitable[None]]


class SubscriptionState(str, Enum):
    """Lifecycle of one conversation subscription."""

    UNSUBSCRIBED = "unsubscribed"
    SUBSCRIBING = "subscribing"
    ACTIVE = "active"
    RESUBSCRIBING = "resubscribing"


class Subscription:
    """One change-stream feed shared by every listener of a conversation."""

    def __init__(self, key: str) -> None:
        self.key = key
        self.state = SubscriptionState.SUBSCRIBING
        self.listeners: dict[int, Listener] = {}
        self.feed: ChangeFeed | None = None
        self.task: asyncio.Task[None] | None = None


class SubscriptionHandle:
    """A listener's registration; close it to stop receiving events."""

    def __init__(self, router: "FanOutRouter", key: str, listener_id: int) -> None:
        self._router = router
        self.key = key
        self.listener_id = listener_id

    @property
    def closed(self) -> bool:
        return not self._router.has_listener(self.key, self.listener_id)

    async def close(self) -> None:
        await self._router.unsubscribe(self)


class FanOutRouter:
    """Owns the conversation key to subscription map.

    At most one feed is open per key; further listeners share it. Each
    subscription has a single pump task, so its events reach listeners in
    the order the change stream emitted them. Listeners are awaited one
    after another and must be idempotent: delivery is at-least-once and
    nothing is deduplicated here.

    When a feed drops, the pump resubscribes after a fixed delay, keeping
    its listeners. After ``max_resubscribe_attempts`` consecutive failures
    the listeners receive a ``subscription_failed`` event and the
    subscription is released.
    """

    def __init__(
        self,
        stream: ChangeStream,
        handlers: ChangeHandlerRegistry,
        config: RealtimeConfig,
        logger: BoundLogger,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._stream = stream
        self._handlers = handlers
        self._config = config
        self._logger = logger
        self._sleep = sleep
        self._subscriptions: dict[str, Subscription] = {}
        self._listener_ids = itertools.count(1)

    @property
    def subscription_count(self) -> int:
        return len(self._subscriptions)

    def state(self, key: str) -> SubscriptionState:
        subscription = self._subscriptions.get(key)
        return subscription.state if subscription else SubscriptionState.UNSUBSCRIBED

    def listener_count(self, key: str) -> int:
        subscription = self._subscriptions.get(key)
        return len(subscription.listeners) if subscription else 0

    def has_listener(self, key: str, listener_id: int) -> bool:
        subscription = self._subscriptions.get(key)
        return subscription is not None and listener_id in subscription.listeners

    async def subscribe(self, key: str, listener: Listener) -> SubscriptionHandle:
        """Register ``listener`` for changes on ``key``.

        The first listener for a key opens the feed; later ones reuse it.
        """
        listener_id = next(self._listener_ids)
        subscription = self._subscriptions.get(key)
        if subscription is not None:
            subscription.listeners[listener_id] = listener
            self._logger.debug(
                "Reusing subscription", key=key, listeners=len(subscription.listeners)
            )
            return SubscriptionHandle(self, key, listener_id)

        subscription = Subscription(key)
        subscription.listeners[listener_id] = listener
        self._subscriptions[key] = subscription

        try:
            feed = await self._stream.subscribe([key])
        except ConnectionError as e:
            self._logger.warning("Subscribe failed, will retry", key=key, error=str(e))
            feed = None

        if self._subscriptions.get(key) is not subscription:
            # Every listener left while the feed was opening
            if feed is not None:
                feed.close()
            return SubscriptionHandle(self, key, listener_id)

        subscription.feed = feed
        subscription.state = (
            SubscriptionState.ACTIVE if feed is not None else SubscriptionState.RESUBSCRIBING
        )
        subscription.task = asyncio.create_task(self._pump(subscription))
        self._logger.info("Subscribed", key=key, state=subscription.state.value)
        return SubscriptionHandle(self, key, listener_id)

    async def unsubscribe(self, handle: SubscriptionHandle) -> None:
        """Remove a listener; the last one out releases the feed."""
        subscription = self._subscriptions.get(handle.key)
        if subscription is None or handle.listener_id not in subscription.listeners:
            return

        del subscription.listeners[handle.listener_id]
        if subscription.listeners:
            return

        del self._subscriptions[handle.key]
        await self._release(subscription)
        self._logger.info("Unsubscribed", key=handle.key)

    async def close(self) -> None:
        """Release every subscription."""
        subscriptions = list(self._subscriptions.values())
        self._subscriptions.clear()
        for subscription in subscriptions:
            subscription.listeners.clear()
            await self._release(subscription)

    async def _release(self, subscription: Subscription) -> None:
        subscription.state = SubscriptionState.UNSUBSCRIBED
        task = subscription.task
        if task is not None and not task.done():
            task.cancel()
            # A listener may unsubscribe from inside the pump
            if task is not asyncio.current_task():
                try:
                    await task
                except asyncio.CancelledError:
                    pass
        if subscription.feed is not None:
            subscription.feed.close()
            subscription.feed = None

    async def _pump(self, subscription: Subscription) -> None:
        failures = 0
        while True:
            # Released from inside a listener; cancellation lands at the next suspension
            if subscription.state == SubscriptionState.UNSUBSCRIBED:
                return
            if subscription.feed is None:
                if failures >= self._config.max_resubscribe_attempts:
                    await self._fail(subscription, failures)
                    return
                failures += 1
                await self._sleep(self._config.resubscribe_delay)
                try:
                    subscription.feed = await self._stream.subscribe([subscription.key])
                except ConnectionError as e:
                    self._logger.warning(
                        "Resubscribe failed",
                        key=subscription.key,
                        attempt=failures,
                        error=str(e),
                    )
                    continue
                subscription.state = SubscriptionState.ACTIVE
                self._logger.info("Resubscribed", key=subscription.key, attempt=failures)
                failures = 0

            try:
                change = await subscription.feed.get()
            except ConnectionError as e:
                self._logger.warning("Feed disconnected", key=subscription.key, error=str(e))
                subscription.feed.close()
                subscription.feed = None
                subscription.state = SubscriptionState.RESUBSCRIBING
                continue

            await self._dispatch(subscription, change)

    async def _dispatch(self, subscription: Subscription, change: DataChange) -> None:
        handler = self._handlers.get_handler(change.table)
        if handler is None:
            self._logger.warning("No handler found for change", table=change.table.value)
            return

        try:
            events = await handler.handle(change, subscription.key)
        except Exception as e:
            self._logger.error(
                "Error handling change",
                key=subscription.key,
                change_id=change.id,
                error=str(e),
            )
            return

        for event in events:
            await self._deliver(subscription, event)

    async def _deliver(self, subscription: Subscription, event: RealtimeEvent) -> None:
        for listener in list(subscription.listeners.values()):
            try:
                await listener(event)
            except Exception as e:
                self._logger.error(
                    "Listener failed",
                    key=subscription.key,
                    event_type=event.type.value,
                    error=str(e),
                )

    async def _fail(self, subscription: Subscription, attempts: int) -> None:
        self._logger.error(
            "Subscription failed after retries", key=subscription.key, attempts=attempts
        )
        if self._subscriptions.get(subscription.key) is subscription:
            del self._subscriptions[subscription.key]
        subscription.state = SubscriptionState.UNSUBSCRIBED

        event = RealtimeEvent(
            type=RealtimeEventType.SUBSCRIPTION_FAILED,
            conversation=subscription.key,
            payload={"attempts": attempts},
        )
        await self._deliver(subscription, event)
        subscription.listeners.clear()
