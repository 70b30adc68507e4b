"""
Runtime configuration helpers for the sync client.

Loads CHATSYNC_* variables from the environment and from the .env file
located in the project root.
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Annotated

from dotenv import load_dotenv
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

# Resolve the project root
BASE_DIR = Path(__file__).resolve().parents[1]

# Absolute path to .env
ENV_PATH = BASE_DIR / ".env"

# Load .env defaults without overriding environment variables provided by the platform
load_dotenv(dotenv_path=ENV_PATH, override=False)


class Settings(BaseSettings):
    database_url: str = Field(default="sqlite+pysqlite:///./chatsync.db", alias="CHATSYNC_DATABASE_URL")

    # Persisted client state
    storage_path: str = Field(default="./chatsync_state.json", alias="CHATSYNC_STORAGE_PATH")
    storage_prefix: str = Field(default="fh_", alias="CHATSYNC_STORAGE_PREFIX")

    # Media defaults
    placeholder_avatar_url: str = Field(default="https://via.placeholder.com/150", alias="CHATSYNC_PLACEHOLDER_AVATAR")
    notification_icon_url: str = Field(default="/favicon.ico", alias="CHATSYNC_NOTIFICATION_ICON")
    alert_sound_url: str = Field(default="/sounds/notify.mp3", alias="CHATSYNC_ALERT_SOUND")
    send_sound_url: str = Field(default="/sounds/send.mp3", alias="CHATSYNC_SEND_SOUND")

    initial_message_limit: int = Field(default=200, alias="CHATSYNC_INITIAL_MESSAGE_LIMIT")
    cache_flush_delay: float = Field(default=0.5, alias="CHATSYNC_CACHE_FLUSH_DELAY")
    typing_timeout: float = Field(default=3.0, alias="CHATSYNC_TYPING_TIMEOUT")
    admin_emails: Annotated[list[str], NoDecode] = Field(default_factory=list, alias="CHATSYNC_ADMIN_EMAILS")

    model_config = SettingsConfigDict(
        env_file=str(ENV_PATH),
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    @field_validator("admin_emails", mode="before")
    @classmethod
    def _split_admin_emails(cls, value: object) -> object:
        if isinstance(value, str):
            return [item.strip().lower() for item in value.split(",") if item.strip()]
        if isinstance(value, (list, tuple)):
            return [str(item).strip().lower() for item in value if str(item).strip()]
        return value


@lru_cache()
def get_settings() -> Settings:
    return Settings()


__all__ = ["Settings", "get_settings"]
