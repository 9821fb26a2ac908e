"""
Realtime change notifications for content collections.

The change feed is the push side: it announces that a collection changed,
with no guarantee about the payload. The subscription manager turns those
pushes into re-fetch callbacks for the views bound to the collection.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, List, Optional, Protocol, Set

logger = logging.getLogger(__name__)

INSERT = "INSERT"
UPDATE = "UPDATE"
DELETE = "DELETE"


@dataclass(frozen=True)
class ChangeEvent:
    collection: str
    type: str
    record_id: Optional[str] = None


ChangeHandler = Callable[[ChangeEvent], None]
RefetchCallback = Callable[[], Awaitable[None]]


class Channel(Protocol):
    def close(self) -> None:
        ...


class ChangeFeed(Protocol):
    """Transport that delivers change events for a collection."""

    def open_channel(self, collection: str, handler: ChangeHandler) -> Channel:
        ...

    def publish(self, event: ChangeEvent) -> None:
        ...


class LocalChannel:
    def __init__(self, feed: "LocalChangeFeed", collection: str, handler: ChangeHandler):
        self.feed = feed
        self.collection = collection
        self.handler = handler
        self.closed = False

    def close(self) -> None:
        if not self.closed:
            self.closed = True
            self.feed._detach(self)


class LocalChangeFeed:
    """
    In-process change feed.
    The content store publishes here after every committed mutation.
    """

    def __init__(self):
        self._channels: Dict[str, List[LocalChannel]] = {}

    def open_channel(self, collection: str, handler: ChangeHandler) -> LocalChannel:
        channel = LocalChannel(self, collection, handler)
        self._channels.setdefault(collection, []).append(channel)
        logger.debug(f"Opened change channel for {collection}")
        return channel

    def publish(self, event: ChangeEvent) -> None:
        for channel in list(self._channels.get(event.collection, ())):
            try:
                channel.handler(event)
            except Exception as e:
                logger.error(
                    f"Change handler for {event.collection} failed: {str(e)}",
                    exc_info=True
                )

    def channel_count(self, collection: str) -> int:
        return len(self._channels.get(collection, ()))

    def _detach(self, channel: LocalChannel) -> None:
        channels = self._channels.get(channel.collection, [])
        if channel in channels:
            channels.remove(channel)
        if not channels:
            self._channels.pop(channel.collection, None)
        logger.debug(f"Closed change channel for {channel.collection}")


class Subscription:
    """Handle returned to a registrant; release() stops delivery."""

    def __init__(self, manager: "SubscriptionManager", collection: str, callback: RefetchCallback):
        self.manager = manager
        self.collection = collection
        self.callback = callback
        self.active = True

    def release(self) -> None:
        self.manager._release(self)


class SubscriptionManager:
    """
    Keeps one feed channel per collection while any registrant is bound.

    Every change event for a collection schedules each registrant's
    re-fetch callback; callbacks never receive the event itself.
    """

    def __init__(self, feed: ChangeFeed):
        self.feed = feed
        self._registrants: Dict[str, List[Subscription]] = {}
        self._channels: Dict[str, Channel] = {}
        self._pending: Set[asyncio.Task] = set()

    def subscribe(self, collection: str, callback: RefetchCallback) -> Subscription:
        subscription = Subscription(self, collection, callback)
        self._registrants.setdefault(collection, []).append(subscription)
        if collection not in self._channels:
            self._channels[collection] = self.feed.open_channel(collection, self._dispatch)
            logger.info(f"Watching {collection} for changes")
        return subscription

    def is_watching(self, collection: str) -> bool:
        return collection in self._channels

    def registrant_count(self, collection: str) -> int:
        return len(self._registrants.get(collection, ()))

    async def flush(self) -> None:
        """Wait until every scheduled re-fetch has finished."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    def close(self) -> None:
        for subscriptions in list(self._registrants.values()):
            for subscription in list(subscriptions):
                subscription.release()

    def _release(self, subscription: Subscription) -> None:
        if not subscription.active:
            return
        subscription.active = False

        registrants = self._registrants.get(subscription.collection, [])
        if subscription in registrants:
            registrants.remove(subscription)
        if registrants:
            return

        self._registrants.pop(subscription.collection, None)
        channel = self._channels.pop(subscription.collection, None)
        if channel is not None:
            channel.close()
            logger.info(f"Stopped watching {subscription.collection}")

    def _dispatch(self, event: ChangeEvent) -> None:
        logger.debug(f"{event.type} on {event.collection} ({event.record_id})")
        for subscription in list(self._registrants.get(event.collection, ())):
            task = asyncio.get_running_loop().create_task(self._deliver(subscription))
            self._pending.add(task)
            task.add_done_callback(self._pending.discard)

    async def _deliver(self, subscription: Subscription) -> None:
        if not subscription.active:
            return
        try:
            await subscription.callback()
        except Exception as e:
            logger.error(
                f"Re-fetch for {subscription.collection} failed: {str(e)}",
                exc_info=True
            )
