"""Clock and identifier helpers shared by the sync services."""
from __future__ import annotations

import itertools
import threading
import time
import uuid


def now_ms() -> int:
    """Return the current wall-clock time in epoch milliseconds."""

    return int(time.time() * 1000)


def new_record_id() -> str:
    return str(uuid.uuid4())


class NotificationIdFactory:
    """Produce notification ids that stay unique within one millisecond.

    Ids combine the wall-clock millisecond with a process-wide counter, so two
    events derived in the same millisecond never collide and ids sort in
    creation order.
    """

    def __init__(self, prefix: str = "ntf") -> None:
        self._prefix = prefix
        self._counter = itertools.count(1)
        self._lock = threading.Lock()

    def __call__(self, timestamp: int | None = None) -> str:
        with self._lock:
            sequence = next(self._counter)
        stamp = now_ms() if timestamp is None else timestamp
        return f"{self._prefix}_{stamp}_{sequence:06d}"


default_notification_ids = NotificationIdFactory()


__all__ = ["now_ms", "new_record_id", "NotificationIdFactory", "default_notification_ids"]
