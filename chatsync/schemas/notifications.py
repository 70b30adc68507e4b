"""Schemas for in-app notifications."""
from __future__ import annotations

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class NotificationType(StrEnum):
    MESSAGE = "message"
    FRIEND_REQUEST = "friend_request"
    SYSTEM = "system"


class Notification(BaseModel):
    """Session-local notification. Never written to the backend."""

    model_config = ConfigDict(frozen=True)

    id: str
    type: NotificationType
    content: str
    read: bool = False
    timestamp: int
    payload: dict[str, Any] = Field(default_factory=dict)


__all__ = ["NotificationType", "Notification"]
