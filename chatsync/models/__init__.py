"""Convenience exports for ORM models."""
from .message import MessageRow
from .user import UserRow

__all__ = ["MessageRow", "UserRow"]
