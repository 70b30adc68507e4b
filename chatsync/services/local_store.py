"""In-memory authoritative cache of users, messages and notifications."""
from __future__ import annotations

import logging
from typing import Callable, Iterable

from ..schemas import Message, Notification, User

logger = logging.getLogger(__name__)

StoreListener = Callable[[str], None]

USERS_TOPIC = "users"
MESSAGES_TOPIC = "messages"
NOTIFICATIONS_TOPIC = "notifications"
TYPING_TOPIC = "typing"
PRESENCE_TOPIC = "presence"


class LocalStore:
    """Session cache keyed by entity id.

    Users and messages live in insertion-ordered dicts, so an upsert of an
    existing id replaces the value without moving it. Messages therefore keep
    send order; conversation views sort their own subset by timestamp.
    Every mutation is synchronous and must go through these methods.
    """

    def __init__(self) -> None:
        self._users: dict[str, User] = {}
        self._messages: dict[str, Message] = {}
        self._notifications: list[Notification] = []
        self._typing: dict[str, int] = {}
        self._online: list[str] = []
        self._listeners: list[StoreListener] = []

    # --- reads ---
    def get_users(self) -> list[User]:
        return list(self._users.values())

    def get_user(self, user_id: str | None) -> User | None:
        if not user_id:
            return None
        return self._users.get(user_id)

    def get_messages(self) -> list[Message]:
        return list(self._messages.values())

    def get_message(self, message_id: str) -> Message | None:
        return self._messages.get(message_id)

    def has_message(self, message_id: str) -> bool:
        return message_id in self._messages

    def get_notifications(self) -> list[Notification]:
        return list(self._notifications)

    def conversation(self, user_id: str, peer_id: str) -> list[Message]:
        """Messages exchanged between two users, oldest first."""

        thread = [message for message in self._messages.values() if message.involves(user_id, peer_id)]
        return sorted(thread, key=lambda message: message.timestamp)

    def unread_messages(self, peer_id: str, user_id: str) -> list[Message]:
        return [
            message
            for message in self._messages.values()
            if message.sender_id == peer_id and message.receiver_id == user_id and not message.read
        ]

    def unread_count(self, peer_id: str, user_id: str) -> int:
        return len(self.unread_messages(peer_id, user_id))

    def unread_notification_count(self) -> int:
        return sum(1 for notification in self._notifications if not notification.read)

    # --- mutations ---
    def load_snapshot(self, users: Iterable[User], messages: Iterable[Message]) -> None:
        """Replace users and messages wholesale with a fresh snapshot."""

        self._users = {user.id: user for user in users if user.id}
        self._messages = {message.id: message for message in messages if message.id}
        self._notify(USERS_TOPIC)
        self._notify(MESSAGES_TOPIC)

    def upsert_user(self, user: User) -> User | None:
        """Insert or replace ``user`` in place and return the previous value."""

        previous = self._users.get(user.id)
        self._users[user.id] = user
        self._notify(USERS_TOPIC)
        return previous

    def replace_user(self, user: User) -> bool:
        """Replace an existing user wholesale. Unknown ids are left untouched."""

        if user.id not in self._users:
            return False
        self._users[user.id] = user
        self._notify(USERS_TOPIC)
        return True

    def remove_user(self, user_id: str) -> User | None:
        removed = self._users.pop(user_id, None)
        if removed is not None:
            self._notify(USERS_TOPIC)
        return removed

    def upsert_message(self, message: Message) -> Message | None:
        """Append ``message`` if new, else replace it in place. Returns the previous value."""

        previous = self._messages.get(message.id)
        self._messages[message.id] = message
        self._notify(MESSAGES_TOPIC)
        return previous

    def remove_message(self, message_id: str) -> Message | None:
        removed = self._messages.pop(message_id, None)
        if removed is not None:
            self._notify(MESSAGES_TOPIC)
        return removed

    def mark_messages_read(self, message_ids: Iterable[str]) -> list[str]:
        """Flip ``read`` on the given messages; returns the ids that changed."""

        changed: list[str] = []
        for message_id in message_ids:
            message = self._messages.get(message_id)
            if message is None or message.read:
                continue
            self._messages[message_id] = message.model_copy(update={"read": True})
            changed.append(message_id)
        if changed:
            self._notify(MESSAGES_TOPIC)
        return changed

    def prepend_notification(self, notification: Notification) -> None:
        self._notifications.insert(0, notification)
        self._notify(NOTIFICATIONS_TOPIC)

    def mark_notification_read(self, notification_id: str) -> bool:
        for index, notification in enumerate(self._notifications):
            if notification.id == notification_id:
                if not notification.read:
                    self._notifications[index] = notification.model_copy(update={"read": True})
                    self._notify(NOTIFICATIONS_TOPIC)
                return True
        return False

    def clear_notifications(self) -> None:
        self._notifications = []
        self._notify(NOTIFICATIONS_TOPIC)

    # --- typing and presence ---
    def set_typing(self, user_id: str, expires_at: int) -> None:
        """Mark ``user_id`` as typing to the session user until ``expires_at`` (epoch ms)."""

        self._typing[user_id] = expires_at
        self._notify(TYPING_TOPIC)

    def clear_typing(self, user_id: str | None = None) -> None:
        """Drop one typing entry, or all of them when ``user_id`` is None."""

        if user_id is None:
            if not self._typing:
                return
            self._typing = {}
        elif self._typing.pop(user_id, None) is None:
            return
        self._notify(TYPING_TOPIC)

    def typing_users(self, now: int) -> list[str]:
        return [user_id for user_id, expires_at in self._typing.items() if expires_at > now]

    def is_typing(self, user_id: str, now: int) -> bool:
        return self._typing.get(user_id, 0) > now

    def set_online_users(self, user_ids: Iterable[str]) -> None:
        online = list(dict.fromkeys(user_id for user_id in user_ids if user_id))
        if online == self._online:
            return
        self._online = online
        self._notify(PRESENCE_TOPIC)

    def get_online_users(self) -> list[str]:
        return list(self._online)

    def is_online(self, user_id: str) -> bool:
        return user_id in self._online

    # --- change listeners ---
    def add_listener(self, listener: StoreListener) -> Callable[[], None]:
        """Register ``listener`` for topic names; returns a callable that removes it."""

        self._listeners.append(listener)

        def _remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _remove

    def _notify(self, topic: str) -> None:
        for listener in list(self._listeners):
            try:
                listener(topic)
            except Exception:
                logger.exception("Store listener failed for topic %s", topic)


__all__ = [
    "LocalStore",
    "StoreListener",
    "USERS_TOPIC",
    "MESSAGES_TOPIC",
    "NOTIFICATIONS_TOPIC",
    "TYPING_TOPIC",
    "PRESENCE_TOPIC",
]
