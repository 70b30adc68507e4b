"""Domain model for chat messages."""
from __future__ import annotations

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from ..constants import BROADCAST_ID


class Message(BaseModel):
    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    id: str
    sender_id: str
    receiver_id: str
    content: str = ""
    timestamp: int  # epoch milliseconds
    read: bool = False

    @property
    def is_broadcast(self) -> bool:
        return self.receiver_id == BROADCAST_ID

    def involves(self, first: str, second: str) -> bool:
        """Return True when the message travels between ``first`` and ``second`` in either direction."""

        return (self.sender_id == first and self.receiver_id == second) or (
            self.sender_id == second and self.receiver_id == first
        )


__all__ = ["Message"]
