"""Expiring key-value store backing rate windows, sessions and replay markers.

Expiry is lazy: an entry past its deadline is treated as absent (and removed)
the next time it is read. Nothing sweeps the store in the background.

Reads and writes are independent operations. Callers that read, modify and
write back the same key (the rate limiter, the session store) can race with a
concurrent request for the same sender; that is an accepted limitation.
"""

from __future__ import annotations

import sqlite3
import threading
import time
from collections.abc import Callable
from pathlib import Path
from typing import Protocol

Clock = Callable[[], float]


class ExpiringStore(Protocol):
    def get(self, key: str) -> str | None: ...

    def put(self, key: str, value: str, ttl_seconds: float) -> None: ...

    def delete(self, key: str) -> None: ...


class MemoryExpiringStore:
    """Process-local store. Suitable for a single worker and for tests."""

    def __init__(self, clock: Clock | None = None) -> None:
        self._clock = clock or time.time
        self._lock = threading.Lock()
        self._entries: dict[str, tuple[str, float]] = {}

    def get(self, key: str) -> str | None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            value, expires_at = entry
            if self._clock() >= expires_at:
                del self._entries[key]
                return None
            return value

    def put(self, key: str, value: str, ttl_seconds: float) -> None:
        with self._lock:
            self._entries[key] = (value, self._clock() + ttl_seconds)

    def delete(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)


class SQLiteExpiringStore:
    """SQLite-backed store shared by every worker pointing at the same file."""

    def __init__(self, db_path: str, clock: Clock | None = None) -> None:
        self._db_path = db_path
        self._clock = clock or time.time
        self._lock = threading.Lock()
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(db_path, check_same_thread=False)
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._init_schema()

    def _init_schema(self) -> None:
        self._conn.execute(
            """CREATE TABLE IF NOT EXISTS expiring_kv (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL,
                expires_at REAL NOT NULL
            )"""
        )
        self._conn.commit()

    def get(self, key: str) -> str | None:
        with self._lock:
            row = self._conn.execute(
                "SELECT value, expires_at FROM expiring_kv WHERE key = ?", (key,),
            ).fetchone()
            if row is None:
                return None
            value, expires_at = row
            if self._clock() >= expires_at:
                self._conn.execute("DELETE FROM expiring_kv WHERE key = ?", (key,))
                self._conn.commit()
                return None
            return value

    def put(self, key: str, value: str, ttl_seconds: float) -> None:
        with self._lock:
            self._conn.execute(
                """INSERT INTO expiring_kv (key, value, expires_at) VALUES (?, ?, ?)
                   ON CONFLICT(key) DO UPDATE SET
                       value = excluded.value,
                       expires_at = excluded.expires_at""",
                (key, value, self._clock() + ttl_seconds),
            )
            self._conn.commit()

    def delete(self, key: str) -> None:
        with self._lock:
            self._conn.execute("DELETE FROM expiring_kv WHERE key = ?", (key,))
            self._conn.commit()

    def close(self) -> None:
        self._conn.close()
