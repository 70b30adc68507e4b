"""Backend data store contract plus an in-memory implementation."""
from __future__ import annotations

import copy
import logging
from typing import Any, Iterable, Protocol

from ..constants import BROADCAST_CHANNELS, MESSAGES_TABLE, SIGNAL_CHANNELS, USERS_TABLE
from ..schemas import ChangeEvent, ChangeEventType
from .change_feed import ChangeFeed, Subscription

logger = logging.getLogger(__name__)

Record = dict[str, Any]


class DataStoreError(RuntimeError):
    """Raised when the backend rejects or cannot perform an operation."""


# Failures a remote call may surface; callers roll back optimistic state on these.
REMOTE_FAILURES: tuple[type[BaseException], ...] = (DataStoreError, ConnectionError, TimeoutError)


class DataStore(Protocol):
    """Realtime-capable relational store reached by the sync client."""

    async def fetch_all(self, table: str) -> list[Record]: ...

    async def insert(self, table: str, record: Record) -> Record: ...

    async def update(self, table: str, record_id: str, changes: Record) -> Record: ...

    async def update_many(self, table: str, record_ids: Iterable[str], changes: Record) -> list[Record]: ...

    async def delete(self, table: str, record_id: str) -> None: ...

    async def subscribe(self, table: str) -> Subscription: ...

    async def send_signal(self, channel: str, payload: Record) -> None: ...

    async def track_presence(self, key: str, user_id: str) -> None: ...

    async def untrack_presence(self, key: str) -> None: ...


class InMemoryDataStore:
    """Dict-backed store that publishes every committed write to its feed."""

    def __init__(self, tables: Iterable[str] = (USERS_TABLE, MESSAGES_TABLE), feed: ChangeFeed | None = None) -> None:
        self._tables: dict[str, dict[str, Record]] = {name: {} for name in tables}
        self.feed = feed or ChangeFeed()

    def _table(self, table: str) -> dict[str, Record]:
        try:
            return self._tables[table]
        except KeyError as exc:
            raise DataStoreError(f"Unknown table '{table}'") from exc

    def seed(self, table: str, records: Iterable[Record]) -> None:
        """Load rows without emitting change events."""

        rows = self._table(table)
        for record in records:
            rows[str(record["id"])] = copy.deepcopy(dict(record))

    async def fetch_all(self, table: str) -> list[Record]:
        return [copy.deepcopy(row) for row in self._table(table).values()]

    async def insert(self, table: str, record: Record) -> Record:
        rows = self._table(table)
        record_id = record.get("id")
        if not record_id:
            raise DataStoreError("Record id required")
        if str(record_id) in rows:
            raise DataStoreError(f"Duplicate id '{record_id}' in {table}")
        stored = copy.deepcopy(dict(record))
        rows[str(record_id)] = stored
        await self.feed.publish(ChangeEvent(table, ChangeEventType.INSERT, copy.deepcopy(stored)))
        return copy.deepcopy(stored)

    async def update(self, table: str, record_id: str, changes: Record) -> Record:
        rows = self._table(table)
        current = rows.get(record_id)
        if current is None:
            raise DataStoreError(f"No row '{record_id}' in {table}")
        previous = copy.deepcopy(current)
        current.update(copy.deepcopy({key: value for key, value in changes.items() if key != "id"}))
        await self.feed.publish(
            ChangeEvent(table, ChangeEventType.UPDATE, copy.deepcopy(current), old_record=previous)
        )
        return copy.deepcopy(current)

    async def update_many(self, table: str, record_ids: Iterable[str], changes: Record) -> list[Record]:
        rows = self._table(table)
        updated: list[Record] = []
        for record_id in record_ids:
            if record_id in rows:
                updated.append(await self.update(table, record_id, changes))
        return updated

    async def delete(self, table: str, record_id: str) -> None:
        removed = self._table(table).pop(record_id, None)
        if removed is None:
            return
        await self.feed.publish(ChangeEvent(table, ChangeEventType.DELETE, {}, old_record=removed))

    async def subscribe(self, table: str) -> Subscription:
        if table not in SIGNAL_CHANNELS:
            self._table(table)
        return await self.feed.subscribe(table)

    async def send_signal(self, channel: str, payload: Record) -> None:
        """Broadcast an ephemeral payload; nothing is stored."""

        if channel not in BROADCAST_CHANNELS:
            raise DataStoreError(f"Unknown channel '{channel}'")
        await self.feed.publish(ChangeEvent(channel, ChangeEventType.BROADCAST, copy.deepcopy(dict(payload))))

    async def track_presence(self, key: str, user_id: str) -> None:
        await self.feed.track(key, user_id)

    async def untrack_presence(self, key: str) -> None:
        await self.feed.untrack(key)


__all__ = ["DataStore", "DataStoreError", "InMemoryDataStore", "Record", "REMOTE_FAILURES"]
