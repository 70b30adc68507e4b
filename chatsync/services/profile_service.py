"""Profile edits and account-level actions for the session user."""
from __future__ import annotations

import logging
from typing import Any

from ..constants import USERS_TABLE
from ..exceptions import ActionRejectedError, RemoteWriteError
from ..schemas import User
from .datastore import REMOTE_FAILURES
from .friendship_service import unfriend
from .mapper import user_to_record
from .session_service import SessionManager

logger = logging.getLogger(__name__)


async def update_profile(session: SessionManager, user: User) -> User:
    """Write ``user`` remotely and cache it once the backend accepted it.

    A failed write leaves local state untouched.
    """

    me = session.require_user()
    if user.id != me.id:
        raise ActionRejectedError("Only your own profile can be edited")

    changes = user_to_record(user)
    changes.pop("id", None)
    try:
        await session.datastore.update(USERS_TABLE, user.id, changes)
    except REMOTE_FAILURES as exc:
        logger.warning("Profile update for %s failed: %s", user.id, exc)
        raise RemoteWriteError("update_profile", "Failed to update profile") from exc

    session.store.upsert_user(user)
    return user


async def _update_own_fields(session: SessionManager, operation: str, changes: dict[str, Any]) -> User:
    """Write only ``changes`` to the session user's row, then apply them locally.

    Columns not named in ``changes`` are left to the backend, so list changes
    from other writers that have not been ingested yet are kept.
    """

    me = session.require_user()
    try:
        await session.datastore.update(USERS_TABLE, me.id, changes)
    except REMOTE_FAILURES as exc:
        logger.warning("%s for %s failed: %s", operation, me.id, exc)
        raise RemoteWriteError(operation, "Failed to update account") from exc

    latest = session.store.get_user(me.id) or me
    updated = latest.model_copy(update=changes)
    session.store.upsert_user(updated)
    return updated


async def block_user(session: SessionManager, *, target_id: str) -> User:
    me = session.require_user()
    if target_id == me.id:
        raise ActionRejectedError("Cannot block yourself")
    if me.is_friend(target_id):
        await unfriend(session, target_id=target_id)
        me = session.require_user()
    if me.has_blocked(target_id):
        return me
    return await _update_own_fields(session, "block_user", {"blocked_users": [*me.blocked_users, target_id]})


async def unblock_user(session: SessionManager, *, target_id: str) -> User:
    me = session.require_user()
    if not me.has_blocked(target_id):
        return me
    blocked = [user_id for user_id in me.blocked_users if user_id != target_id]
    return await _update_own_fields(session, "unblock_user", {"blocked_users": blocked})


async def deactivate_account(session: SessionManager) -> None:
    """Flag the account as deactivated and end the session. Logging in again reactivates it."""

    await _update_own_fields(session, "deactivate_account", {"is_deactivated": True})
    session.logout()


async def delete_account(session: SessionManager) -> None:
    me = session.require_user()
    try:
        await session.datastore.delete(USERS_TABLE, me.id)
    except REMOTE_FAILURES as exc:
        raise RemoteWriteError("delete_account", "Failed to delete account") from exc
    session.store.remove_user(me.id)
    session.logout()


__all__ = ["update_profile", "block_user", "unblock_user", "deactivate_account", "delete_account"]
