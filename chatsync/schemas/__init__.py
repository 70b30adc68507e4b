"""Convenience exports for domain schemas."""
from .events import ChangeEvent, ChangeEventType
from .messages import Message
from .notifications import Notification, NotificationType
from .users import Gender, User

__all__ = [
    "ChangeEvent",
    "ChangeEventType",
    "Gender",
    "Message",
    "Notification",
    "NotificationType",
    "User",
]
