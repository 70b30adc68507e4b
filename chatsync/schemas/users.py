"""Domain model for user profiles held by the sync client."""
from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class Gender(StrEnum):
    MALE = "Male"
    FEMALE = "Female"
    OTHER = "Other"
    PREFER_NOT_TO_SAY = "Prefer not to say"


class User(BaseModel):
    """A user profile plus its friend/request/block relationships.

    Instances are immutable; mutations go through ``model_copy(update=...)``
    and are written back with the Local Store primitives. ``model_dump(by_alias=True)``
    yields the camelCase shape handed to UI code.
    """

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    id: str
    username: str
    email: str = ""
    avatar: str = ""
    name: str | None = None
    description: str | None = None
    birthdate: str | None = None
    gender: Gender | None = None
    is_private_profile: bool = False
    allow_private_chat: bool = False
    friends: list[str] = Field(default_factory=list)
    requests: list[str] = Field(default_factory=list)
    blocked_users: list[str] = Field(default_factory=list)
    last_seen: str | None = None
    is_deactivated: bool = False
    instagram_link: str | None = None
    is_premium: bool = False
    premium_expiry: int | None = None

    @property
    def display_name(self) -> str:
        return self.name or self.username

    def is_friend(self, user_id: str) -> bool:
        return user_id in self.friends

    def has_blocked(self, user_id: str) -> bool:
        return user_id in self.blocked_users


__all__ = ["Gender", "User"]
