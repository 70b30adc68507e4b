"""Failures reported by the sync client to the calling UI layer."""
from __future__ import annotations

from typing import Sequence


class ChatSyncError(RuntimeError):
    """Base class for every failure surfaced by the sync client."""


class NotAuthenticatedError(ChatSyncError):
    """Raised when an action requiring a session runs while logged out."""


class ActionRejectedError(ChatSyncError):
    """Raised when an action is refused locally before anything is written."""


class RemoteWriteError(ChatSyncError):
    """Raised when a write against the backend data store fails."""

    def __init__(self, operation: str, message: str, *, rolled_back: bool = False) -> None:
        super().__init__(message)
        self.operation = operation
        self.rolled_back = rolled_back


class PartialWriteError(RemoteWriteError):
    """Raised when a multi-step write fails after some steps were committed."""

    def __init__(self, operation: str, message: str, *, completed_steps: Sequence[str]) -> None:
        super().__init__(operation, message, rolled_back=False)
        self.completed_steps = tuple(completed_steps)


__all__ = [
    "ChatSyncError",
    "NotAuthenticatedError",
    "ActionRejectedError",
    "RemoteWriteError",
    "PartialWriteError",
]
