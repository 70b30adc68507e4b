"""SQLAlchemy-backed data store that emits change events after each commit."""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Iterable

from sqlalchemy import delete, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from ..constants import BROADCAST_CHANNELS, MESSAGES_TABLE, SIGNAL_CHANNELS, USERS_TABLE
from ..database import build_engine, build_session_factory, init_db
from ..models import MessageRow, UserRow
from ..schemas import ChangeEvent, ChangeEventType
from .change_feed import ChangeFeed, Subscription
from .datastore import DataStoreError, Record

logger = logging.getLogger(__name__)

_ROW_TYPES: dict[str, type] = {
    USERS_TABLE: UserRow,
    MESSAGES_TABLE: MessageRow,
}


def _row_to_record(row: Any) -> Record:
    return {column.name: getattr(row, column.name) for column in row.__table__.columns}


def _column_names(row_type: type) -> set[str]:
    return {column.name for column in row_type.__table__.columns}  # type: ignore[attr-defined]


class SqlDataStore:
    """Store rows in a relational database and fan out committed changes.

    Blocking SQLAlchemy work runs in a worker thread so the event loop stays
    responsive; events are published only after the transaction commits.
    """

    def __init__(
        self,
        database_url: str | None = None,
        *,
        engine: Engine | None = None,
        feed: ChangeFeed | None = None,
        create_schema: bool = True,
    ) -> None:
        self.engine = engine or build_engine(database_url)
        self._session_factory: sessionmaker[Session] = build_session_factory(self.engine)
        self.feed = feed or ChangeFeed()
        if create_schema:
            init_db(self.engine)

    def _row_type(self, table: str) -> type:
        try:
            return _ROW_TYPES[table]
        except KeyError as exc:
            raise DataStoreError(f"Unknown table '{table}'") from exc

    # --- blocking helpers (run in a worker thread) ---
    def _fetch_all_sync(self, table: str) -> list[Record]:
        row_type = self._row_type(table)
        with self._session_factory() as session:
            return [_row_to_record(row) for row in session.scalars(select(row_type))]

    def _insert_sync(self, table: str, record: Record) -> Record:
        row_type = self._row_type(table)
        allowed = _column_names(row_type)
        row = row_type(**{key: value for key, value in record.items() if key in allowed})
        with self._session_factory() as session:
            try:
                session.add(row)
                session.commit()
                session.refresh(row)
                return _row_to_record(row)
            except SQLAlchemyError as exc:
                session.rollback()
                raise DataStoreError(f"Failed to insert into {table}") from exc

    def _update_sync(self, table: str, record_ids: list[str], changes: Record) -> list[tuple[Record, Record]]:
        row_type = self._row_type(table)
        allowed = _column_names(row_type) - {"id"}
        values = {key: value for key, value in changes.items() if key in allowed}
        pairs: list[tuple[Record, Record]] = []
        with self._session_factory() as session:
            try:
                for record_id in record_ids:
                    row = session.get(row_type, record_id)
                    if row is None:
                        continue
                    previous = _row_to_record(row)
                    for field, value in values.items():
                        setattr(row, field, value)
                    pairs.append((previous, row))
                session.commit()
                return [(previous, _row_to_record(row)) for previous, row in pairs]
            except SQLAlchemyError as exc:
                session.rollback()
                raise DataStoreError(f"Failed to update {table}") from exc

    def _delete_sync(self, table: str, record_id: str) -> Record | None:
        row_type = self._row_type(table)
        with self._session_factory() as session:
            try:
                row = session.get(row_type, record_id)
                if row is None:
                    return None
                previous = _row_to_record(row)
                session.execute(delete(row_type).where(row_type.id == record_id))  # type: ignore[attr-defined]
                session.commit()
            except SQLAlchemyError as exc:
                session.rollback()
                raise DataStoreError(f"Failed to delete from {table}") from exc
            return previous

    # --- DataStore API ---
    async def fetch_all(self, table: str) -> list[Record]:
        try:
            return await asyncio.to_thread(self._fetch_all_sync, table)
        except SQLAlchemyError as exc:
            raise DataStoreError(f"Failed to read {table}") from exc

    async def insert(self, table: str, record: Record) -> Record:
        if not record.get("id"):
            raise DataStoreError("Record id required")
        stored = await asyncio.to_thread(self._insert_sync, table, record)
        await self.feed.publish(ChangeEvent(table, ChangeEventType.INSERT, stored))
        return stored

    async def update(self, table: str, record_id: str, changes: Record) -> Record:
        pairs = await asyncio.to_thread(self._update_sync, table, [record_id], changes)
        if not pairs:
            raise DataStoreError(f"No row '{record_id}' in {table}")
        previous, current = pairs[0]
        await self.feed.publish(ChangeEvent(table, ChangeEventType.UPDATE, current, old_record=previous))
        return current

    async def update_many(self, table: str, record_ids: Iterable[str], changes: Record) -> list[Record]:
        pairs = await asyncio.to_thread(self._update_sync, table, list(record_ids), changes)
        for previous, current in pairs:
            await self.feed.publish(ChangeEvent(table, ChangeEventType.UPDATE, current, old_record=previous))
        return [current for _, current in pairs]

    async def delete(self, table: str, record_id: str) -> None:
        previous = await asyncio.to_thread(self._delete_sync, table, record_id)
        if previous is not None:
            await self.feed.publish(ChangeEvent(table, ChangeEventType.DELETE, {}, old_record=previous))

    async def subscribe(self, table: str) -> Subscription:
        if table not in SIGNAL_CHANNELS:
            self._row_type(table)
        return await self.feed.subscribe(table)

    async def send_signal(self, channel: str, payload: Record) -> None:
        if channel not in BROADCAST_CHANNELS:
            raise DataStoreError(f"Unknown channel '{channel}'")
        await self.feed.publish(ChangeEvent(channel, ChangeEventType.BROADCAST, dict(payload)))

    async def track_presence(self, key: str, user_id: str) -> None:
        await self.feed.track(key, user_id)

    async def untrack_presence(self, key: str) -> None:
        await self.feed.untrack(key)

    def dispose(self) -> None:
        self.engine.dispose()


__all__ = ["SqlDataStore"]
