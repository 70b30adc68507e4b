"""Business logic for friend requests and friendships.

Relationships are id lists on the user rows: ``requests`` holds users who
asked this user, ``friends`` must end up symmetric. Multi-row changes are not
transactional; a failure after the first committed write is reported as a
:class:`PartialWriteError` and left for the caller to retry.
"""
from __future__ import annotations

import logging

from ..constants import USERS_TABLE
from ..exceptions import ActionRejectedError, PartialWriteError, RemoteWriteError
from ..schemas import NotificationType, User
from .datastore import REMOTE_FAILURES
from .session_service import SessionManager

logger = logging.getLogger(__name__)


def _require_other(session: SessionManager, me: User, user_id: str) -> User:
    if user_id == me.id:
        raise ActionRejectedError("Cannot befriend yourself")
    other = session.store.get_user(user_id)
    if other is None:
        raise ActionRejectedError("User not found")
    return other


def _with_id(ids: list[str], user_id: str) -> list[str]:
    return ids if user_id in ids else [*ids, user_id]


def _without_id(ids: list[str], user_id: str) -> list[str]:
    return [value for value in ids if value != user_id]


def _restore_ids(
    session: SessionManager, user_id: str, field: str, *, add: str | None = None, remove: str | None = None
) -> None:
    """Undo one optimistic id change on the latest local copy of ``user_id``.

    Only the id this action touched is put back; whatever change events
    applied to the row in the meantime stays.
    """

    latest = session.store.get_user(user_id)
    if latest is None:
        return
    ids = getattr(latest, field)
    if remove is not None:
        ids = _without_id(ids, remove)
    if add is not None:
        ids = _with_id(ids, add)
    session.store.replace_user(latest.model_copy(update={field: ids}))


async def send_friend_request(session: SessionManager, *, target_id: str) -> bool:
    """Add the session user to ``target_id``'s requests.

    Returns False when the request is already pending, True once written.
    """

    me = session.require_user()
    target = _require_other(session, me, target_id)
    if me.id in target.requests:
        return False
    if me.id in target.friends:
        raise ActionRejectedError("Already friends")

    requests = _with_id(target.requests, me.id)
    session.store.replace_user(target.model_copy(update={"requests": requests}))
    try:
        await session.datastore.update(USERS_TABLE, target_id, {"requests": requests})
    except REMOTE_FAILURES as exc:
        _restore_ids(session, target_id, "requests", remove=me.id)
        logger.warning("Friend request to %s rolled back: %s", target_id, exc)
        raise RemoteWriteError("send_friend_request", "Failed to send request", rolled_back=True) from exc
    return True


async def accept_friend_request(session: SessionManager, *, requester_id: str) -> User:
    """Befriend ``requester_id`` on both rows and consume the pending request."""

    me = session.require_user()
    _require_other(session, me, requester_id)

    was_friend = requester_id in me.friends
    was_requested = requester_id in me.requests
    my_friends = _with_id(me.friends, requester_id)
    my_requests = _without_id(me.requests, requester_id)
    session.store.replace_user(me.model_copy(update={"friends": my_friends, "requests": my_requests}))
    try:
        await session.datastore.update(USERS_TABLE, me.id, {"friends": my_friends, "requests": my_requests})
    except REMOTE_FAILURES as exc:
        if not was_friend:
            _restore_ids(session, me.id, "friends", remove=requester_id)
        if was_requested:
            _restore_ids(session, me.id, "requests", add=requester_id)
        raise RemoteWriteError("accept_friend_request", "Failed to accept request", rolled_back=True) from exc

    for notification in session.store.get_notifications():
        if (
            notification.type == NotificationType.FRIEND_REQUEST
            and notification.payload.get("requester_id") == requester_id
        ):
            session.store.mark_notification_read(notification.id)

    requester = session.store.get_user(requester_id)
    if requester is not None and me.id not in requester.friends:
        their_friends = _with_id(requester.friends, me.id)
        session.store.replace_user(requester.model_copy(update={"friends": their_friends}))
        try:
            await session.datastore.update(USERS_TABLE, requester_id, {"friends": their_friends})
        except REMOTE_FAILURES as exc:
            _restore_ids(session, requester_id, "friends", remove=me.id)
            logger.warning("Friendship with %s is one-sided until retried: %s", requester_id, exc)
            raise PartialWriteError(
                "accept_friend_request",
                "Friend added, but their friend list could not be updated",
                completed_steps=("update_own_friends",),
            ) from exc

    return session.require_user()


async def unfriend(session: SessionManager, *, target_id: str) -> User:
    """Remove the friendship from both rows."""

    me = session.require_user()
    _require_other(session, me, target_id)

    was_friend = target_id in me.friends
    my_friends = _without_id(me.friends, target_id)
    session.store.replace_user(me.model_copy(update={"friends": my_friends}))
    try:
        await session.datastore.update(USERS_TABLE, me.id, {"friends": my_friends})
    except REMOTE_FAILURES as exc:
        if was_friend:
            _restore_ids(session, me.id, "friends", add=target_id)
        raise RemoteWriteError("unfriend", "Failed to remove friend", rolled_back=True) from exc

    target = session.store.get_user(target_id)
    if target is not None and me.id in target.friends:
        their_friends = _without_id(target.friends, me.id)
        session.store.replace_user(target.model_copy(update={"friends": their_friends}))
        try:
            await session.datastore.update(USERS_TABLE, target_id, {"friends": their_friends})
        except REMOTE_FAILURES as exc:
            _restore_ids(session, target_id, "friends", add=me.id)
            raise PartialWriteError(
                "unfriend",
                "Friend removed, but their friend list could not be updated",
                completed_steps=("update_own_friends",),
            ) from exc

    return session.require_user()


__all__ = ["send_friend_request", "accept_friend_request", "unfriend"]
