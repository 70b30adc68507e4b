"""Tests for profile edits, blocking and account lifecycle actions."""
from __future__ import annotations

import asyncio

import pytest
from support import FlakyDataStore, RecordingAudio, RecordingNotifications, drain, user_record

from chatsync import ChatSyncClient
from chatsync.config import Settings
from chatsync.constants import CURRENT_USER_KEY
from chatsync.exceptions import ActionRejectedError, RemoteWriteError
from chatsync.services.persistence import MemoryKeyValueStore
from chatsync.services.session_service import SessionState


@pytest.fixture
def client(
    datastore: FlakyDataStore,
    storage: MemoryKeyValueStore,
    notifications: RecordingNotifications,
    audio: RecordingAudio,
    settings: Settings,
) -> ChatSyncClient:
    datastore.seed(
        "users",
        [
            user_record("u1", "me", friends=["u2"]),
            user_record("u2", "sarah", friends=["u1"]),
            user_record("u3", "tom"),
        ],
    )
    storage.set(CURRENT_USER_KEY, "u1")
    return ChatSyncClient(datastore, storage=storage, notifications=notifications, audio=audio, settings=settings)


def _remote_user(datastore: FlakyDataStore, user_id: str) -> dict | None:
    rows = asyncio.run(datastore.fetch_all("users"))
    return next((row for row in rows if row["id"] == user_id), None)


def test_update_profile_writes_then_caches(client: ChatSyncClient, datastore: FlakyDataStore) -> None:
    async def scenario() -> None:
        async with client:
            edited = client.current_user.model_copy(update={"description": "new bio", "name": "Me Myself"})
            await client.update_profile(edited)
            await drain()

    asyncio.run(scenario())

    assert client.current_user.description == "new bio"
    assert client.current_user.display_name == "Me Myself"
    assert _remote_user(datastore, "u1")["description"] == "new bio"


def test_failed_profile_update_changes_nothing(client: ChatSyncClient, datastore: FlakyDataStore) -> None:
    async def scenario() -> None:
        async with client:
            datastore.fail_on.add("update")
            with pytest.raises(RemoteWriteError):
                await client.update_profile(client.current_user.model_copy(update={"description": "nope"}))

    asyncio.run(scenario())

    assert client.current_user.description is None
    assert _remote_user(datastore, "u1")["description"] is None


def test_cannot_edit_someone_else(client: ChatSyncClient) -> None:
    async def scenario() -> None:
        async with client:
            other = client.store.get_user("u3").model_copy(update={"description": "hacked"})
            with pytest.raises(ActionRejectedError):
                await client.update_profile(other)

    asyncio.run(scenario())


def test_block_user_unfriends_first(client: ChatSyncClient, datastore: FlakyDataStore) -> None:
    async def scenario() -> None:
        async with client:
            me = await client.block_user("u2")
            assert me.blocked_users == ["u2"]
            assert me.friends == []
            await drain()

    asyncio.run(scenario())

    assert client.store.get_user("u2").friends == []
    assert _remote_user(datastore, "u1")["blocked_users"] == ["u2"]


def test_unblock_user(client: ChatSyncClient) -> None:
    async def scenario() -> None:
        async with client:
            await client.block_user("u3")
            me = await client.unblock_user("u3")
            assert me.blocked_users == []
            again = await client.unblock_user("u3")
            assert again.blocked_users == []
            with pytest.raises(ActionRejectedError):
                await client.block_user("u1")

    asyncio.run(scenario())


def test_deactivate_account_logs_out(client: ChatSyncClient, datastore: FlakyDataStore, storage: MemoryKeyValueStore) -> None:
    async def scenario() -> None:
        async with client:
            await client.deactivate_account()

    asyncio.run(scenario())

    assert client.state is SessionState.ANONYMOUS
    assert storage.get(CURRENT_USER_KEY) is None
    assert _remote_user(datastore, "u1")["is_deactivated"] is True


def test_delete_account_removes_user(client: ChatSyncClient, datastore: FlakyDataStore) -> None:
    async def scenario() -> None:
        async with client:
            await client.delete_account()
            await drain()

    asyncio.run(scenario())

    assert client.state is SessionState.ANONYMOUS
    assert client.store.get_user("u1") is None
    assert _remote_user(datastore, "u1") is None


def test_failed_delete_keeps_session(client: ChatSyncClient, datastore: FlakyDataStore) -> None:
    async def scenario() -> None:
        async with client:
            datastore.fail_on.add("delete")
            with pytest.raises(RemoteWriteError):
                await client.delete_account()

    asyncio.run(scenario())

    assert client.state is SessionState.AUTHENTICATED
    assert client.current_user is not None


def test_block_writes_only_the_block_list(client: ChatSyncClient, datastore: FlakyDataStore) -> None:
    async def scenario() -> None:
        async with client:
            # Another user's request is committed but not ingested yet.
            await datastore.commit_elsewhere("users", "u1", {"requests": ["u3"]})
            await client.block_user("u2")
            await drain()

    asyncio.run(scenario())

    remote = _remote_user(datastore, "u1")
    assert remote["requests"] == ["u3"]
    assert remote["blocked_users"] == ["u2"]
    assert client.current_user.requests == ["u3"]


def test_deactivate_keeps_pending_remote_requests(client: ChatSyncClient, datastore: FlakyDataStore) -> None:
    async def scenario() -> None:
        async with client:
            await datastore.commit_elsewhere("users", "u1", {"requests": ["u3"]})
            await client.deactivate_account()

    asyncio.run(scenario())

    remote = _remote_user(datastore, "u1")
    assert remote["is_deactivated"] is True
    assert remote["requests"] == ["u3"]
