"""Tests for the persisted users/messages cache."""
from __future__ import annotations

import asyncio
import json

from support import message_record, user_record

from chatsync.config import Settings
from chatsync.constants import CACHED_MESSAGES_KEY, CACHED_USERS_KEY
from chatsync.services.local_store import LocalStore
from chatsync.services.mapper import message_from_record, user_from_record
from chatsync.services.persistence import MemoryKeyValueStore
from chatsync.services.snapshot_cache import SnapshotCache


def test_changes_are_written_once_after_a_quiet_period(settings: Settings, storage: MemoryKeyValueStore) -> None:
    store = LocalStore()
    cache = SnapshotCache(store, storage, settings=settings.model_copy(update={"cache_flush_delay": 0.02}))

    async def scenario() -> tuple[str | None, str | None]:
        cache.attach()
        store.upsert_user(user_from_record(user_record("u1", "me")))
        store.upsert_user(user_from_record(user_record("u2", "sarah")))
        store.upsert_message(message_from_record(message_record("m1", "u2", "u1", "hi", 100)))
        before = storage.get(CACHED_USERS_KEY)
        await asyncio.sleep(0.1)
        return before, storage.get(CACHED_USERS_KEY)

    before, after = asyncio.run(scenario())
    cache.detach()

    assert before is None
    assert [row["id"] for row in json.loads(after)] == ["u1", "u2"]
    assert [row["content"] for row in json.loads(storage.get(CACHED_MESSAGES_KEY))] == ["hi"]


def test_load_restores_models(settings: Settings, storage: MemoryKeyValueStore) -> None:
    storage.set(CACHED_USERS_KEY, json.dumps([user_record("u1", "me", friends=["u2"]), {"username": "no id"}]))
    storage.set(CACHED_MESSAGES_KEY, json.dumps([message_record("m1", "u2", "u1", "hi", 100)]))

    users, messages = SnapshotCache(LocalStore(), storage, settings=settings).load()

    assert [(user.id, user.friends) for user in users] == [("u1", ["u2"])]
    assert [message.id for message in messages] == ["m1"]


def test_unreadable_cache_is_ignored(settings: Settings, storage: MemoryKeyValueStore) -> None:
    storage.set(CACHED_USERS_KEY, "{not json")
    storage.set(CACHED_MESSAGES_KEY, json.dumps({"m1": "wrong shape"}))

    assert SnapshotCache(LocalStore(), storage, settings=settings).load() == ([], [])


def test_empty_collections_keep_previous_cache(settings: Settings, storage: MemoryKeyValueStore) -> None:
    previous = json.dumps([user_record("u1", "me")])
    storage.set(CACHED_USERS_KEY, previous)
    store = LocalStore()
    cache = SnapshotCache(store, storage, settings=settings)
    cache.attach()

    # Outside an event loop the write happens immediately.
    store.load_snapshot([], [])
    cache.detach()

    assert storage.get(CACHED_USERS_KEY) == previous
    assert storage.get(CACHED_MESSAGES_KEY) is None
