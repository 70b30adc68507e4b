"""Apply server-pushed change events to the Local Store."""
from __future__ import annotations

import asyncio
import logging

from ..constants import MESSAGES_TABLE, PRESENCE_CHANNEL, TYPING_CHANNEL, USERS_TABLE
from ..schemas import ChangeEvent, ChangeEventType, Notification, User
from .alerts import AlertDispatcher
from .change_feed import Subscription
from .datastore import DataStore
from .identifiers import now_ms
from .local_store import LocalStore
from .mapper import message_from_record, user_from_record
from .notification_service import (
    BroadcastReceived,
    DerivedEvent,
    FriendRequestReceived,
    MessageReceived,
    derive_notification,
    requests_to_notify,
)
from .session_service import SessionManager

logger = logging.getLogger(__name__)

SUBSCRIBED_TABLES = (USERS_TABLE, MESSAGES_TABLE)
SUBSCRIBED_CHANNELS = (*SUBSCRIBED_TABLES, TYPING_CHANNEL, PRESENCE_CHANNEL)


class ChangeIngestion:
    """Consume the ``users`` and ``messages`` streams and the typing and presence channels.

    Events are applied synchronously on the event loop, one at a time, so the
    prior state read for the friend-request check cannot interleave with
    another write to the same user. Session and user data are read from the
    owning objects each time an event is handled.
    """

    def __init__(
        self,
        store: LocalStore,
        session: SessionManager,
        alerts: AlertDispatcher,
        datastore: DataStore,
    ) -> None:
        self._store = store
        self._session = session
        self._alerts = alerts
        self._datastore = datastore
        self._subscriptions: list[Subscription] = []
        self._tasks: list[asyncio.Task[None]] = []
        self._typing_timers: dict[str, asyncio.TimerHandle] = {}
        self._running = False
        self._stopped = False

    @property
    def running(self) -> bool:
        return self._running

    async def subscribe(self) -> None:
        """Open the subscriptions; events queue until :meth:`start`."""

        if self._subscriptions:
            return
        self._stopped = False
        for table in SUBSCRIBED_CHANNELS:
            self._subscriptions.append(await self._datastore.subscribe(table))

    async def start(self) -> None:
        if self._running:
            return
        await self.subscribe()
        for subscription in self._subscriptions:
            self._tasks.append(
                asyncio.create_task(self._consume(subscription), name=f"ingest:{subscription.table}")
            )
        self._running = True
        logger.info("Change ingestion started for %s", ", ".join(SUBSCRIBED_CHANNELS))

    async def stop(self) -> None:
        """Unsubscribe; nothing delivered after this call reaches the Local Store."""

        self._running = False
        self._stopped = True
        subscriptions, self._subscriptions = self._subscriptions, []
        tasks, self._tasks = self._tasks, []
        for subscription in subscriptions:
            await subscription.close()
        for task in tasks:
            task.cancel()
        for timer in self._typing_timers.values():
            timer.cancel()
        self._typing_timers.clear()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        logger.info("Change ingestion stopped")

    async def _consume(self, subscription: Subscription) -> None:
        async for event in subscription:
            if self._stopped:
                break
            try:
                self.apply(event)
            except Exception:
                logger.exception("Skipping %s event on %s", event.event_type, event.table)

    def apply(self, event: ChangeEvent) -> list[Notification]:
        """Apply one change event and return the notifications it produced."""

        if self._stopped:
            logger.debug("Dropping %s event on %s after stop", event.event_type, event.table)
            return []
        if event.table == TYPING_CHANNEL:
            self._apply_typing(event)
            return []
        if event.table == PRESENCE_CHANNEL:
            self._store.set_online_users(event.record.get("user_ids") or [])
            return []
        if event.record_id is None:
            logger.warning("Ignoring %s event on %s without an id", event.event_type, event.table)
            return []

        if event.table == USERS_TABLE:
            if event.event_type == ChangeEventType.DELETE:
                self._remove_user(event.record_id)
                return []
            return self._apply_user(event)

        if event.table == MESSAGES_TABLE:
            if event.event_type == ChangeEventType.DELETE:
                self._store.remove_message(event.record_id)
                return []
            if event.event_type == ChangeEventType.UPDATE:
                self._store.upsert_message(message_from_record(event.record))
                return []
            return self._apply_message_insert(event)

        logger.debug("Ignoring event for untracked table %s", event.table)
        return []

    # --- users ---
    def _apply_user(self, event: ChangeEvent) -> list[Notification]:
        placeholder = self._session.settings.placeholder_avatar_url
        incoming = user_from_record(event.record, placeholder_avatar=placeholder)
        previous = self._store.upsert_user(incoming)

        current_id = self._session.user_id
        if current_id is None or incoming.id != current_id:
            return []

        baseline: User | None = previous
        if event.old_record:
            baseline = user_from_record(event.old_record, placeholder_avatar=placeholder)

        derived: list[Notification] = []
        for requester_id in requests_to_notify(baseline, incoming, self._store.get_notifications()):
            notification = self._derive(FriendRequestReceived(requester_id), incoming)
            if notification is not None:
                derived.append(notification)
        return derived

    def _remove_user(self, user_id: str) -> None:
        self._store.remove_user(user_id)
        if user_id == self._session.user_id:
            logger.info("Session user %s was deleted remotely", user_id)
            self._session.logout()

    # --- messages ---
    def _apply_message_insert(self, event: ChangeEvent) -> list[Notification]:
        message = message_from_record(event.record)
        previous = self._store.upsert_message(message)
        if previous is not None:
            # Our own optimistic insert echoing back, or a redelivery.
            return []

        current = self._session.current_user
        if current is None:
            return []
        derived_event: DerivedEvent
        if message.is_broadcast:
            derived_event = BroadcastReceived(message)
        elif message.receiver_id == current.id:
            derived_event = MessageReceived(message)
        else:
            return []
        notification = self._derive(derived_event, current)
        return [notification] if notification is not None else []

    # --- signals ---
    def _apply_typing(self, event: ChangeEvent) -> None:
        sender_id = event.record.get("from")
        current = self._session.current_user
        if current is None or not sender_id or event.record.get("to") != current.id:
            return
        if current.has_blocked(sender_id):
            return
        timeout = self._session.settings.typing_timeout
        self._store.set_typing(sender_id, now_ms() + int(timeout * 1000))

        # Each new signal restarts the sender's expiry timer.
        previous = self._typing_timers.pop(sender_id, None)
        if previous is not None:
            previous.cancel()
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        self._typing_timers[sender_id] = loop.call_later(timeout, self._expire_typing, sender_id)

    def _expire_typing(self, sender_id: str) -> None:
        self._typing_timers.pop(sender_id, None)
        self._store.clear_typing(sender_id)

    def _derive(self, derived_event: DerivedEvent, current: User) -> Notification | None:
        notification = derive_notification(
            derived_event,
            current.id,
            self._store.get_users(),
            blocked_ids=current.blocked_users,
        )
        if notification is None:
            return None
        self._store.prepend_notification(notification)
        self._alerts.notify(notification)
        return notification


__all__ = ["ChangeIngestion", "SUBSCRIBED_CHANNELS", "SUBSCRIBED_TABLES"]
