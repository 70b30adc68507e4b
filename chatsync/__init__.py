"""Client-side state synchronization and notification core for the chat app."""
from .client import ChatSyncClient
from .exceptions import (
    ActionRejectedError,
    ChatSyncError,
    NotAuthenticatedError,
    PartialWriteError,
    RemoteWriteError,
)
from .schemas import ChangeEvent, ChangeEventType, Gender, Message, Notification, NotificationType, User

__all__ = [
    "ChatSyncClient",
    "ActionRejectedError",
    "ChatSyncError",
    "NotAuthenticatedError",
    "PartialWriteError",
    "RemoteWriteError",
    "ChangeEvent",
    "ChangeEventType",
    "Gender",
    "Message",
    "Notification",
    "NotificationType",
    "User",
]
