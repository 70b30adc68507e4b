"""Messaging actions with optimistic local writes."""
from __future__ import annotations

import logging

from ..constants import BROADCAST_ID, MESSAGES_TABLE, TYPING_CHANNEL
from ..exceptions import ActionRejectedError, RemoteWriteError
from ..schemas import Message
from .datastore import REMOTE_FAILURES
from .identifiers import new_record_id, now_ms
from .mapper import message_to_record
from .session_service import SessionManager

logger = logging.getLogger(__name__)


def _ensure_deliverable(session: SessionManager, sender_id: str, receiver_id: str) -> None:
    if receiver_id == BROADCAST_ID:
        return
    sender = session.store.get_user(sender_id)
    receiver = session.store.get_user(receiver_id)
    if receiver is None:
        raise ActionRejectedError("Recipient not found")
    if sender is not None and sender.has_blocked(receiver_id):
        raise ActionRejectedError("You have blocked this user.")
    if receiver.has_blocked(sender_id):
        raise ActionRejectedError("Message cannot be delivered.")
    if receiver.is_deactivated:
        raise ActionRejectedError("This user has deactivated their account.")


async def send_message(session: SessionManager, *, receiver_id: str, content: str) -> Message:
    """Append a message locally, then insert it remotely; roll back on failure."""

    sender = session.require_user()
    if not (content or "").strip():
        raise ActionRejectedError("Message requires text")
    _ensure_deliverable(session, sender.id, receiver_id)

    message = Message(
        id=new_record_id(),
        sender_id=sender.id,
        receiver_id=receiver_id,
        content=content,
        timestamp=now_ms(),
        read=False,
    )
    session.store.upsert_message(message)
    session.alerts.play_send_sound()

    try:
        await session.datastore.insert(MESSAGES_TABLE, message_to_record(message))
    except REMOTE_FAILURES as exc:
        session.store.remove_message(message.id)
        logger.warning("Message %s to %s rolled back: %s", message.id, receiver_id, exc)
        raise RemoteWriteError("send_message", "Failed to send message", rolled_back=True) from exc
    return message


async def broadcast_message(session: SessionManager, *, content: str) -> Message:
    """Send ``content`` to every user. Restricted to admin accounts."""

    session.require_user()
    if not session.is_admin:
        raise ActionRejectedError("Only admins can broadcast")
    return await send_message(session, receiver_id=BROADCAST_ID, content=content)


async def mark_conversation_as_read(session: SessionManager, *, peer_id: str) -> bool:
    """Mark every unread message from ``peer_id`` as read.

    The local flip is kept even when the remote update fails; the return
    value tells the caller whether the backend confirmed it.
    """

    me = session.require_user()
    unread_ids = [message.id for message in session.store.unread_messages(peer_id, me.id)]
    if not unread_ids:
        return True

    session.store.mark_messages_read(unread_ids)
    try:
        await session.datastore.update_many(MESSAGES_TABLE, unread_ids, {"read": True})
    except REMOTE_FAILURES as exc:
        logger.warning("Failed to mark %d messages from %s as read: %s", len(unread_ids), peer_id, exc)
        return False
    return True


async def send_typing_signal(session: SessionManager, *, receiver_id: str) -> bool:
    """Tell ``receiver_id`` that the session user is typing.

    Best effort: returns False when signed out or when the signal could not
    be sent.
    """

    me = session.current_user
    if me is None or not session.is_authenticated:
        return False
    try:
        await session.datastore.send_signal(TYPING_CHANNEL, {"from": me.id, "to": receiver_id})
    except REMOTE_FAILURES as exc:
        logger.debug("Typing signal to %s failed: %s", receiver_id, exc)
        return False
    return True


__all__ = ["send_message", "broadcast_message", "mark_conversation_as_read", "send_typing_signal"]
