"""Derive session notifications from raw change events.

Everything here is pure: callers pass the current user id and a users
snapshot read at call time, and get back zero or one :class:`Notification`.
"""
from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Callable, Union

from ..constants import FALLBACK_BROADCAST_LABEL, FALLBACK_SENDER_LABEL
from ..schemas import Message, Notification, NotificationType, User
from .identifiers import default_notification_ids, now_ms

IdFactory = Callable[[int], str]
UsersSnapshot = Union[Mapping[str, User], Iterable[User]]


@dataclass(frozen=True, slots=True)
class MessageReceived:
    message: Message


@dataclass(frozen=True, slots=True)
class BroadcastReceived:
    message: Message


@dataclass(frozen=True, slots=True)
class FriendRequestReceived:
    requester_id: str


DerivedEvent = Union[MessageReceived, BroadcastReceived, FriendRequestReceived]


def _index(users: UsersSnapshot) -> Mapping[str, User]:
    if isinstance(users, Mapping):
        return users
    return {user.id: user for user in users}


def derive_notification(
    event: DerivedEvent,
    current_user_id: str | None,
    users: UsersSnapshot,
    *,
    blocked_ids: Iterable[str] = (),
    id_factory: IdFactory = default_notification_ids,
    timestamp: int | None = None,
) -> Notification | None:
    """Return the notification ``event`` produces for ``current_user_id``, if any.

    Self-caused events, events from blocked users and friend requests from
    users missing in ``users`` produce nothing.
    """

    if not current_user_id:
        return None
    directory = _index(users)
    blocked = set(blocked_ids)
    created_at = now_ms() if timestamp is None else timestamp

    if isinstance(event, MessageReceived):
        message = event.message
        if message.sender_id == current_user_id or message.receiver_id != current_user_id:
            return None
        if message.sender_id in blocked:
            return None
        sender = directory.get(message.sender_id)
        label = sender.username if sender else FALLBACK_SENDER_LABEL
        return Notification(
            id=id_factory(created_at),
            type=NotificationType.MESSAGE,
            content=f"New message from {label}",
            timestamp=created_at,
            payload={
                "sender_id": message.sender_id,
                "sender": sender,
                "message_id": message.id,
                "preview": message.content,
                "avatar": sender.avatar if sender else None,
            },
        )

    if isinstance(event, BroadcastReceived):
        message = event.message
        if not message.is_broadcast or message.sender_id == current_user_id:
            return None
        sender = directory.get(message.sender_id)
        label = sender.username if sender else FALLBACK_BROADCAST_LABEL
        return Notification(
            id=id_factory(created_at),
            type=NotificationType.SYSTEM,
            content=f"📢 {label}: {message.content}",
            timestamp=created_at,
            payload={
                "sender_id": message.sender_id,
                "message_id": message.id,
                "preview": message.content,
                "sender_label": label,
            },
        )

    if isinstance(event, FriendRequestReceived):
        requester_id = event.requester_id
        if requester_id == current_user_id or requester_id in blocked:
            return None
        requester = directory.get(requester_id)
        if requester is None:
            return None
        return Notification(
            id=id_factory(created_at),
            type=NotificationType.FRIEND_REQUEST,
            content=f"{requester.username} sent you a friend request",
            timestamp=created_at,
            payload={
                "requester_id": requester.id,
                "requester": requester,
                "avatar": requester.avatar,
            },
        )

    raise TypeError(f"Unsupported event {event!r}")


def added_requests(previous: User | None, current: User) -> list[str]:
    """Requester ids present in ``current.requests`` but not in ``previous``."""

    before = set(previous.requests) if previous is not None else set()
    return [requester_id for requester_id in current.requests if requester_id not in before]


def notified_requester_ids(notifications: Iterable[Notification]) -> set[str]:
    return {
        str(notification.payload.get("requester_id"))
        for notification in notifications
        if notification.type == NotificationType.FRIEND_REQUEST and notification.payload.get("requester_id")
    }


def requests_to_notify(previous: User | None, current: User, notifications: Iterable[Notification]) -> list[str]:
    """Newly added requests plus pending ones that were never notified, in order."""

    already = notified_requester_ids(notifications)
    fresh = added_requests(previous, current)
    ordered = fresh + [requester_id for requester_id in current.requests if requester_id not in fresh]
    return [requester_id for requester_id in ordered if requester_id not in already]


def pending_request_notifications(
    user: User,
    users: UsersSnapshot,
    existing: Iterable[Notification],
    *,
    id_factory: IdFactory = default_notification_ids,
) -> list[Notification]:
    """Friend-request notifications for requests already pending on ``user``."""

    directory = _index(users)
    derived: list[Notification] = []
    for requester_id in requests_to_notify(user, user, existing):
        notification = derive_notification(
            FriendRequestReceived(requester_id),
            user.id,
            directory,
            blocked_ids=user.blocked_users,
            id_factory=id_factory,
        )
        if notification is not None:
            derived.append(notification)
    return derived


__all__ = [
    "MessageReceived",
    "BroadcastReceived",
    "FriendRequestReceived",
    "DerivedEvent",
    "derive_notification",
    "added_requests",
    "notified_requester_ids",
    "requests_to_notify",
    "pending_request_notifications",
]
