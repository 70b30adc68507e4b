"""Test doubles and record builders shared by the test modules."""
from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable

from chatsync.services.alerts import PermissionState
from chatsync.services.datastore import DataStoreError, InMemoryDataStore


class RecordingNotifications:
    def __init__(self, permission: PermissionState = PermissionState.GRANTED) -> None:
        self.permission = permission
        self.answer = PermissionState.GRANTED
        self.requests = 0
        self.shown: list[tuple[str, str, str | None]] = []

    async def request_permission(self) -> PermissionState:
        self.requests += 1
        self.permission = self.answer
        return self.answer

    def show(self, title: str, *, body: str, icon: str | None = None) -> None:
        self.shown.append((title, body, icon))


class RecordingAudio:
    def __init__(self) -> None:
        self.played: list[str] = []

    def play(self, url: str) -> None:
        self.played.append(url)


class FlakyDataStore(InMemoryDataStore):
    """In-memory store whose operations can be switched to fail.

    ``before_failure`` runs just before a failure is raised, standing in for
    other writers whose changes land while the failing call is in flight.
    """

    def __init__(self) -> None:
        super().__init__()
        self.fail_on: set[str] = set()
        self.fail_ids: set[str] = set()
        self.before_failure: Callable[[], Awaitable[None]] | None = None

    async def _check(self, operation: str, record_id: str | None = None) -> None:
        if operation in self.fail_on or (record_id is not None and record_id in self.fail_ids):
            if self.before_failure is not None:
                hook, self.before_failure = self.before_failure, None
                await hook()
            raise DataStoreError(f"{operation} unavailable")

    async def fetch_all(self, table: str) -> list[dict[str, Any]]:
        await self._check("fetch_all")
        return await super().fetch_all(table)

    async def insert(self, table: str, record: dict[str, Any]) -> dict[str, Any]:
        await self._check("insert", record.get("id"))
        return await super().insert(table, record)

    async def update(self, table: str, record_id: str, changes: dict[str, Any]) -> dict[str, Any]:
        await self._check("update", record_id)
        return await super().update(table, record_id, changes)

    async def update_many(self, table: str, record_ids, changes: dict[str, Any]) -> list[dict[str, Any]]:
        await self._check("update_many")
        return await super().update_many(table, record_ids, changes)

    async def delete(self, table: str, record_id: str) -> None:
        await self._check("delete", record_id)
        await super().delete(table, record_id)

    async def send_signal(self, channel: str, payload: dict[str, Any]) -> None:
        await self._check("send_signal")
        await super().send_signal(channel, payload)

    async def track_presence(self, key: str, user_id: str) -> None:
        await self._check("track_presence")
        await super().track_presence(key, user_id)

    async def commit_elsewhere(self, table: str, record_id: str, changes: dict[str, Any]) -> None:
        """Apply an update from another writer, bypassing the failure switches."""

        await InMemoryDataStore.update(self, table, record_id, changes)


def user_record(user_id: str, username: str, **fields: Any) -> dict[str, Any]:
    record: dict[str, Any] = {
        "id": user_id,
        "username": username,
        "email": f"{username}@example.com",
        "avatar": f"https://cdn.example.com/{username}.png",
        "friends": [],
        "requests": [],
        "blocked_users": [],
    }
    record.update(fields)
    return record


def message_record(message_id: str, sender_id: str, receiver_id: str, content: str, timestamp: int, **fields: Any):
    record = {
        "id": message_id,
        "sender_id": sender_id,
        "receiver_id": receiver_id,
        "content": content,
        "timestamp": timestamp,
        "read": False,
    }
    record.update(fields)
    return record


async def drain(rounds: int = 20) -> None:
    """Let queued change events reach their consumer tasks."""

    for _ in range(rounds):
        await asyncio.sleep(0)


class Visibility:
    """Mutable stand-in for the application's foreground state."""

    def __init__(self, visible: bool = True) -> None:
        self.visible = visible

    def __call__(self) -> bool:
        return self.visible
