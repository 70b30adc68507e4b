"""Per-table fan-out of change events and presence to realtime subscribers."""
from __future__ import annotations

import asyncio
import logging

from ..constants import PRESENCE_CHANNEL
from ..schemas import ChangeEvent, ChangeEventType

logger = logging.getLogger(__name__)


class Subscription:
    """A live stream of change events for one table.

    Iterate with ``async for``; iteration ends once :meth:`close` is called and
    nothing queued after that point is handed out.
    """

    def __init__(self, feed: ChangeFeed, table: str) -> None:
        self.table = table
        self._feed = feed
        self._queue: asyncio.Queue[ChangeEvent | None] = asyncio.Queue()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def deliver(self, event: ChangeEvent) -> None:
        if not self._closed:
            self._queue.put_nowait(event)

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        await self._feed.detach(self)
        self._queue.put_nowait(None)

    def __aiter__(self) -> Subscription:
        return self

    async def __anext__(self) -> ChangeEvent:
        if self._closed:
            raise StopAsyncIteration
        event = await self._queue.get()
        if event is None or self._closed:
            raise StopAsyncIteration
        return event


class ChangeFeed:
    """Tracks per-table subscriptions and broadcasts events to them.

    The feed also keeps presence: each connected client tracks one user id
    under its own key, and every change to the set of online users is pushed
    to ``presence`` subscribers as a ``sync`` event. A new presence
    subscriber receives the current state straight away.
    """

    def __init__(self) -> None:
        self._channels: dict[str, set[Subscription]] = {}
        self._presence: dict[str, str] = {}
        self._lock = asyncio.Lock()

    async def subscribe(self, table: str) -> Subscription:
        subscription = Subscription(self, table)
        async with self._lock:
            self._channels.setdefault(table, set()).add(subscription)
            if table == PRESENCE_CHANNEL:
                subscription.deliver(self._presence_event())
        logger.debug("Subscribed to %s changes", table)
        return subscription

    async def detach(self, subscription: Subscription) -> None:
        async with self._lock:
            group = self._channels.get(subscription.table)
            if group is None:
                return
            group.discard(subscription)
            if not group:
                self._channels.pop(subscription.table, None)

    async def publish(self, event: ChangeEvent) -> None:
        async with self._lock:
            targets = list(self._channels.get(event.table, ()))
        for subscription in targets:
            subscription.deliver(event)

    def subscriber_count(self, table: str) -> int:
        return len(self._channels.get(table, ()))

    # --- presence ---
    async def track(self, key: str, user_id: str) -> None:
        async with self._lock:
            if self._presence.get(key) == user_id:
                return
            self._presence[key] = user_id
            self._broadcast_presence()

    async def untrack(self, key: str) -> None:
        async with self._lock:
            if self._presence.pop(key, None) is None:
                return
            self._broadcast_presence()

    def online_user_ids(self) -> list[str]:
        return sorted(set(self._presence.values()))

    def _presence_event(self) -> ChangeEvent:
        return ChangeEvent(PRESENCE_CHANNEL, ChangeEventType.SYNC, {"user_ids": self.online_user_ids()})

    def _broadcast_presence(self) -> None:
        # Caller holds the lock, so sync events go out in the order of the changes.
        event = self._presence_event()
        for subscription in list(self._channels.get(PRESENCE_CHANNEL, ())):
            subscription.deliver(event)


__all__ = ["ChangeFeed", "Subscription"]
