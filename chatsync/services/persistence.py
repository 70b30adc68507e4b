"""Small key-value persistence for state that must survive a restart."""
from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Protocol

logger = logging.getLogger(__name__)


class KeyValueStore(Protocol):
    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...

    def delete(self, key: str) -> None: ...


class MemoryKeyValueStore:
    """Process-local store; used for tests and for ephemeral clients."""

    def __init__(self, prefix: str = "fh_") -> None:
        self._prefix = prefix
        self._values: dict[str, str] = {}

    def get(self, key: str) -> str | None:
        return self._values.get(self._prefix + key)

    def set(self, key: str, value: str) -> None:
        self._values[self._prefix + key] = value

    def delete(self, key: str) -> None:
        self._values.pop(self._prefix + key, None)

    def dump(self) -> dict[str, str]:
        return dict(self._values)


class JsonFileKeyValueStore:
    """Persist namespaced string values into a single JSON document."""

    def __init__(self, path: str | Path, prefix: str = "fh_") -> None:
        self._path = Path(path)
        self._prefix = prefix

    def _load(self) -> dict[str, str]:
        try:
            with self._path.open("r", encoding="utf-8") as fh:
                data = json.load(fh)
        except FileNotFoundError:
            return {}
        except (OSError, ValueError):
            logger.warning("Ignoring unreadable state file %s", self._path)
            return {}
        if not isinstance(data, dict):
            return {}
        return {str(key): str(value) for key, value in data.items() if value is not None}

    def _save(self, payload: dict[str, str]) -> None:
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with self._path.open("w", encoding="utf-8") as fh:
                json.dump(payload, fh, indent=2)
        except OSError:
            logger.warning("Failed to persist state file %s", self._path, exc_info=True)

    def get(self, key: str) -> str | None:
        return self._load().get(self._prefix + key)

    def set(self, key: str, value: str) -> None:
        payload = self._load()
        payload[self._prefix + key] = value
        self._save(payload)

    def delete(self, key: str) -> None:
        payload = self._load()
        if payload.pop(self._prefix + key, None) is not None:
            self._save(payload)


__all__ = ["KeyValueStore", "MemoryKeyValueStore", "JsonFileKeyValueStore"]
