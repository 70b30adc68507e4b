"""Change events pushed by the backend data store."""
from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Any


class ChangeEventType(StrEnum):
    INSERT = "insert"
    UPDATE = "update"
    DELETE = "delete"
    # Signals on ephemeral channels
    BROADCAST = "broadcast"
    SYNC = "sync"


@dataclass(frozen=True, slots=True)
class ChangeEvent:
    """A single row change on ``table``, or a signal on a realtime channel.

    ``record`` is the row after the change (empty for deletes) and ``old_record``
    the row before it, when the backend can supply it. For signals ``table``
    names the channel and ``record`` carries the payload.
    """

    table: str
    event_type: ChangeEventType
    record: dict[str, Any]
    old_record: dict[str, Any] | None = None

    @property
    def record_id(self) -> str | None:
        source = self.record or self.old_record or {}
        value = source.get("id")
        return str(value) if value not in (None, "") else None


__all__ = ["ChangeEventType", "ChangeEvent"]
