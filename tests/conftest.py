"""Shared fixtures: isolated settings, recording platforms and a flaky data store."""
from __future__ import annotations

from pathlib import Path

import pytest
from support import FlakyDataStore, RecordingAudio, RecordingNotifications

from chatsync.config import Settings
from chatsync.services.persistence import MemoryKeyValueStore


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(
        database_url=f"sqlite+pysqlite:///{tmp_path / 'chatsync.db'}",
        storage_path=str(tmp_path / "state.json"),
        admin_emails=["admin@example.com"],
    )


@pytest.fixture
def datastore() -> FlakyDataStore:
    return FlakyDataStore()


@pytest.fixture
def storage() -> MemoryKeyValueStore:
    return MemoryKeyValueStore()


@pytest.fixture
def notifications() -> RecordingNotifications:
    return RecordingNotifications()


@pytest.fixture
def audio() -> RecordingAudio:
    return RecordingAudio()
