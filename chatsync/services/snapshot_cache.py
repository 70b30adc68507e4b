"""Persisted copy of the last known users and messages.

The cache lets a restarted client show its previous state before the fresh
snapshot arrives, and keep working from it when the snapshot fetch fails.
Writes are debounced: a burst of store changes produces one write.
"""
from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Callable

from ..config import Settings, get_settings
from ..constants import CACHED_MESSAGES_KEY, CACHED_USERS_KEY
from ..schemas import Message, User
from .local_store import MESSAGES_TOPIC, USERS_TOPIC, LocalStore
from .mapper import message_from_record, message_to_record, user_from_record, user_to_record
from .persistence import KeyValueStore

logger = logging.getLogger(__name__)

_CACHED_TOPICS = (USERS_TOPIC, MESSAGES_TOPIC)


class SnapshotCache:
    def __init__(self, store: LocalStore, storage: KeyValueStore, *, settings: Settings | None = None) -> None:
        self.store = store
        self.storage = storage
        self.settings = settings or get_settings()
        self._dirty: set[str] = set()
        self._pending: asyncio.TimerHandle | None = None
        self._detach: Callable[[], None] | None = None

    def load(self) -> tuple[list[User], list[Message]]:
        placeholder = self.settings.placeholder_avatar_url
        users = [user_from_record(row, placeholder_avatar=placeholder) for row in self._read(CACHED_USERS_KEY)]
        messages = [message_from_record(row) for row in self._read(CACHED_MESSAGES_KEY)]
        return users, messages

    def _read(self, key: str) -> list[dict[str, Any]]:
        raw = self.storage.get(key)
        if not raw:
            return []
        try:
            rows = json.loads(raw)
        except ValueError:
            logger.warning("Ignoring unreadable cache entry %s", key)
            return []
        if not isinstance(rows, list):
            return []
        return [row for row in rows if isinstance(row, dict) and row.get("id")]

    # --- write-behind ---
    def attach(self) -> None:
        """Start following Local Store changes."""

        if self._detach is None:
            self._detach = self.store.add_listener(self._on_change)

    def detach(self) -> None:
        if self._detach is not None:
            self._detach()
            self._detach = None
        if self._pending is not None:
            self._pending.cancel()
            self._pending = None

    def _on_change(self, topic: str) -> None:
        if topic not in _CACHED_TOPICS:
            return
        self._dirty.add(topic)
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self.flush()
            return
        if self._pending is not None:
            self._pending.cancel()
        self._pending = loop.call_later(self.settings.cache_flush_delay, self.flush)

    def flush(self) -> None:
        """Write every collection changed since the last flush.

        Empty collections are not written, so a cold start with an unreachable
        backend keeps the previous cache.
        """

        if self._pending is not None:
            self._pending.cancel()
            self._pending = None
        dirty, self._dirty = self._dirty, set()
        if USERS_TOPIC in dirty:
            self._write(CACHED_USERS_KEY, [user_to_record(user) for user in self.store.get_users()])
        if MESSAGES_TOPIC in dirty:
            self._write(CACHED_MESSAGES_KEY, [message_to_record(message) for message in self.store.get_messages()])

    def _write(self, key: str, rows: list[dict[str, Any]]) -> None:
        if rows:
            self.storage.set(key, json.dumps(rows))


__all__ = ["SnapshotCache"]
