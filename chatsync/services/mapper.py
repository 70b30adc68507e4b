"""Translation between wire records and domain models.

Wire records are the snake_case rows exchanged with the backend data store.
Every ``*_from_record`` function is total: malformed or missing values fall
back to safe defaults so a bad upstream row can never break ingestion.
"""
from __future__ import annotations

import logging
from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Any

from ..config import get_settings
from ..constants import UNKNOWN_USERNAME
from ..schemas import Gender, Message, User
from .identifiers import now_ms

logger = logging.getLogger(__name__)

Record = dict[str, Any]


def _as_mapping(record: Any) -> Mapping[str, Any]:
    if isinstance(record, Mapping):
        return record
    logger.warning("Expected a mapping record, got %s", type(record).__name__)
    return {}


def _optional_str(value: Any) -> str | None:
    if value is None:
        return None
    return value if isinstance(value, str) else str(value)


def _optional_int(value: Any) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _id_list(value: Any) -> list[str]:
    if not isinstance(value, (list, tuple)):
        return []
    ids: list[str] = []
    for item in value:
        if item in (None, ""):
            continue
        text = str(item)
        if text not in ids:
            ids.append(text)
    return ids


def _gender(value: Any) -> Gender | None:
    if value in (None, ""):
        return None
    try:
        return Gender(value)
    except ValueError:
        logger.debug("Dropping unknown gender value %r", value)
        return None


def _timestamp_ms(value: Any) -> int:
    if isinstance(value, datetime):
        moment = value if value.tzinfo else value.replace(tzinfo=timezone.utc)
        return int(moment.timestamp() * 1000)
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return int(value)
    if isinstance(value, str) and value.strip():
        text = value.strip()
        try:
            return int(float(text))
        except ValueError:
            pass
        try:
            parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
        except ValueError:
            logger.warning("Unparseable message timestamp %r, using now", value)
            return now_ms()
        return _timestamp_ms(parsed)
    return now_ms()


def user_from_record(record: Any, *, placeholder_avatar: str | None = None) -> User:
    """Build a :class:`User` from a wire record, filling gaps with defaults."""

    data = _as_mapping(record)
    avatar = data.get("avatar") or placeholder_avatar or get_settings().placeholder_avatar_url
    return User(
        id=str(data.get("id") or ""),
        username=_optional_str(data.get("username")) or UNKNOWN_USERNAME,
        name=_optional_str(data.get("name")),
        email=_optional_str(data.get("email")) or "",
        avatar=str(avatar),
        description=_optional_str(data.get("description")),
        birthdate=_optional_str(data.get("birthdate")),
        gender=_gender(data.get("gender")),
        is_private_profile=bool(data.get("is_private_profile")),
        allow_private_chat=bool(data.get("allow_private_chat")),
        friends=_id_list(data.get("friends")),
        requests=_id_list(data.get("requests")),
        blocked_users=_id_list(data.get("blocked_users")),
        last_seen=_optional_str(data.get("last_seen")),
        is_deactivated=bool(data.get("is_deactivated")),
        instagram_link=_optional_str(data.get("instagram_link")),
        is_premium=bool(data.get("is_premium")),
        premium_expiry=_optional_int(data.get("premium_expiry")),
    )


def user_to_record(user: User) -> Record:
    return {
        "id": user.id,
        "username": user.username,
        "name": user.name,
        "email": user.email,
        "avatar": user.avatar,
        "description": user.description,
        "birthdate": user.birthdate,
        "gender": user.gender.value if user.gender is not None else None,
        "is_private_profile": user.is_private_profile,
        "allow_private_chat": user.allow_private_chat,
        "friends": list(user.friends),
        "requests": list(user.requests),
        "blocked_users": list(user.blocked_users),
        "last_seen": user.last_seen,
        "is_deactivated": user.is_deactivated,
        "instagram_link": user.instagram_link,
        "is_premium": user.is_premium,
        "premium_expiry": user.premium_expiry,
    }


def message_from_record(record: Any) -> Message:
    """Build a :class:`Message` from a wire record."""

    data = _as_mapping(record)
    return Message(
        id=str(data.get("id") or ""),
        sender_id=str(data.get("sender_id") or ""),
        receiver_id=str(data.get("receiver_id") or ""),
        content=_optional_str(data.get("content")) or "",
        timestamp=_timestamp_ms(data.get("timestamp")),
        read=bool(data.get("read")),
    )


def message_to_record(message: Message) -> Record:
    return {
        "id": message.id,
        "sender_id": message.sender_id,
        "receiver_id": message.receiver_id,
        "content": message.content,
        "timestamp": message.timestamp,
        "read": message.read,
    }


__all__ = [
    "Record",
    "user_from_record",
    "user_to_record",
    "message_from_record",
    "message_to_record",
]
