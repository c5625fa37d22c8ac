"""
Keyed record stores.

The engine addresses all state as opaque bytes at stable keys. Two stores are
provided: SQLite-backed (durable) and in-memory (tests and embedding).
"""

from __future__ import annotations

import json
import sqlite3
import threading
from typing import Dict, List, Optional, Protocol

from src.core.database import get_db_connection
from src.utils.database_utils import TransactionError, transactional
from src.utils.logging_config import get_logger


logger = get_logger(__name__)


class StoreError(Exception):
    """Raised when the underlying store fails to read or write."""

    pass


class KeyValueStore(Protocol):
    """Minimal persistence contract used by every repository."""

    def get(self, key: str) -> Optional[bytes]:
        ...

    def put(self, key: str, value: bytes) -> None:
        ...

    def compare_and_put(self, key: str, expected: Optional[bytes], value: bytes) -> bool:
        ...

    def keys(self, prefix: str = "") -> List[str]:
        ...


class InMemoryKeyValueStore:
    """Dictionary-backed store."""

    def __init__(self) -> None:
        self._data: Dict[str, bytes] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[bytes]:
        return self._data.get(key)

    def put(self, key: str, value: bytes) -> None:
        with self._lock:
            self._data[key] = bytes(value)

    def compare_and_put(self, key: str, expected: Optional[bytes], value: bytes) -> bool:
        """Write only if the current value still equals ``expected``."""
        with self._lock:
            if self._data.get(key) != expected:
                return False
            self._data[key] = bytes(value)
            return True

    def keys(self, prefix: str = "") -> List[str]:
        return sorted(k for k in self._data if k.startswith(prefix))


class SQLiteKeyValueStore:
    """Store backed by the kv_records table."""

    def __init__(self, db: sqlite3.Connection | None = None) -> None:
        self._owns_connection = db is None
        self.db = db or get_db_connection()

    def close(self) -> None:
        """Close the managed database connection if owned by the store."""
        if not self._owns_connection:
            return
        try:
            self.db.close()
        except sqlite3.Error:  # pragma: no cover
            pass

    def get(self, key: str) -> Optional[bytes]:
        row = self.db.execute(
            "SELECT value FROM kv_records WHERE key = ?", (key,)
        ).fetchone()
        if row is None:
            return None
        return bytes(row[0])

    def put(self, key: str, value: bytes) -> None:
        try:
            with transactional(self.db, label="kv_put") as conn:
                self._upsert(conn, key, value)
        except TransactionError as exc:
            raise StoreError(f"Failed to write key {key!r}") from exc

    def compare_and_put(self, key: str, expected: Optional[bytes], value: bytes) -> bool:
        """Write only if the current value still equals ``expected``."""
        try:
            with transactional(self.db, immediate=True, label="kv_compare_and_put") as conn:
                row = conn.execute(
                    "SELECT value FROM kv_records WHERE key = ?", (key,)
                ).fetchone()
                current = None if row is None else bytes(row[0])
                if current != expected:
                    logger.warning("kv_compare_and_put_conflict", key=key)
                    return False
                self._upsert(conn, key, value)
        except TransactionError as exc:
            raise StoreError(f"Failed to write key {key!r}") from exc
        return True

    def keys(self, prefix: str = "") -> List[str]:
        rows = self.db.execute(
            "SELECT key FROM kv_records WHERE substr(key, 1, ?) = ? ORDER BY key",
            (len(prefix), prefix),
        ).fetchall()
        return [row[0] for row in rows]

    @staticmethod
    def _upsert(conn: sqlite3.Connection, key: str, value: bytes) -> None:
        conn.execute(
            """
            INSERT INTO kv_records (key, value)
            VALUES (?, ?)
            ON CONFLICT(key) DO UPDATE SET
                value = excluded.value,
                updated_at_utc = strftime('%Y-%m-%dT%H:%M:%fZ', 'now')
            """,
            (key, sqlite3.Binary(value)),
        )


def encode_record(payload: object) -> bytes:
    """Serialize a JSON-compatible payload deterministically."""
    return json.dumps(payload, sort_keys=True, ensure_ascii=False, separators=(",", ":")).encode("utf-8")


def decode_record(raw: Optional[bytes], default: object = None) -> object:
    """Deserialize a payload written by encode_record."""
    if raw is None:
        return default
    try:
        return json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise StoreError("Stored record is not valid JSON") from exc
