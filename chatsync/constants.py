"""Project-wide constant values."""
from __future__ import annotations

BROADCAST_ID = "broadcast"  # receiver_id meaning "every user"

USERS_TABLE = "users"
MESSAGES_TABLE = "messages"

# Ephemeral realtime channels; nothing on them is stored
TYPING_CHANNEL = "typing"
PRESENCE_CHANNEL = "presence"
BROADCAST_CHANNELS = (TYPING_CHANNEL,)
SIGNAL_CHANNELS = (TYPING_CHANNEL, PRESENCE_CHANNEL)

CURRENT_USER_KEY = "current_user_id"
THEME_KEY = "theme"
CACHED_USERS_KEY = "cache_users"
CACHED_MESSAGES_KEY = "cache_messages"

UNKNOWN_USERNAME = "Unknown"
FALLBACK_SENDER_LABEL = "Someone"
FALLBACK_BROADCAST_LABEL = "Admin"

__all__ = [
    "BROADCAST_ID",
    "USERS_TABLE",
    "MESSAGES_TABLE",
    "TYPING_CHANNEL",
    "PRESENCE_CHANNEL",
    "BROADCAST_CHANNELS",
    "SIGNAL_CHANNELS",
    "CURRENT_USER_KEY",
    "THEME_KEY",
    "CACHED_USERS_KEY",
    "CACHED_MESSAGES_KEY",
    "UNKNOWN_USERNAME",
    "FALLBACK_SENDER_LABEL",
    "FALLBACK_BROADCAST_LABEL",
]
