"""
Shared State Store - The Handoff Channel
Persisted string key/value store shared by the perception and actuation loops.
"""
import sqlite3
import threading
from pathlib import Path
from typing import Dict, Optional
import logging

from .errors import StoreError

logger = logging.getLogger(__name__)


class StateStore:
    """
    Key/value interface the two loops rendezvous through.

    Each key has a single writer role; readers treat a missing value as
    "no update yet".
    """

    def get(self, key: str) -> Optional[str]:
        raise NotImplementedError

    def set(self, key: str, value: str):
        raise NotImplementedError

    def remove(self, key: str):
        raise NotImplementedError

    def clear(self):
        raise NotImplementedError

    def snapshot(self) -> Dict[str, str]:
        raise NotImplementedError

    def reset(self):
        """Clear every key at the start of a new session."""
        self.clear()
        logger.info("[STORE] Session state reset")

    def get_str(self, key: str, default: str = "") -> str:
        """Get a value, substituting a default for missing keys."""
        value = self.get(key)
        return default if value is None else value

    def get_flag(self, key: str) -> bool:
        """Read a boolean flag stored as "true"/"false"."""
        return self.get_str(key).strip().lower() == "true"

    def set_flag(self, key: str, value: bool):
        self.set(key, "true" if value else "false")


class InMemoryStateStore(StateStore):
    """Thread-safe, process-local store. Used by tests and single-process runs."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            return self._data.get(key)

    def set(self, key: str, value: str):
        with self._lock:
            self._data[key] = value

    def remove(self, key: str):
        with self._lock:
            self._data.pop(key, None)

    def clear(self):
        with self._lock:
            self._data.clear()

    def snapshot(self) -> Dict[str, str]:
        with self._lock:
            return dict(self._data)


class SQLiteStateStore(StateStore):
    """
    Durable store backed by a single sqlite table.

    A fresh connection is opened per operation so that two processes can
    share the file; sqlite serializes writers and every operation touches a
    single row, giving last-write-wins per key.
    """

    SCHEMA = (
        "CREATE TABLE IF NOT EXISTS kv ("
        "key TEXT PRIMARY KEY, "
        "value TEXT NOT NULL)"
    )

    def __init__(self, path: str, timeout: float = 5.0):
        """
        Initialize the sqlite store.

        Args:
            path: Database file path. Parent directories are created.
            timeout: Seconds to wait on a locked database.
        """
        self.path = Path(path)
        self.timeout = timeout
        self.path.parent.mkdir(parents=True, exist_ok=True)

        self._execute("PRAGMA journal_mode=WAL")
        self._execute(self.SCHEMA)

        logger.info(f"[STORE] Using shared state at {self.path}")

    def _connect(self) -> sqlite3.Connection:
        try:
            return sqlite3.connect(str(self.path), timeout=self.timeout)
        except sqlite3.Error as e:
            raise StoreError(f"Cannot open state store {self.path}: {e}") from e

    def _execute(self, sql: str, params: tuple = ()) -> list:
        conn = self._connect()
        try:
            with conn:
                return conn.execute(sql, params).fetchall()
        except sqlite3.Error as e:
            raise StoreError(f"State store operation failed: {e}") from e
        finally:
            conn.close()

    def get(self, key: str) -> Optional[str]:
        rows = self._execute("SELECT value FROM kv WHERE key = ?", (key,))
        return rows[0][0] if rows else None

    def set(self, key: str, value: str):
        self._execute(
            "INSERT INTO kv (key, value) VALUES (?, ?) "
            "ON CONFLICT(key) DO UPDATE SET value = excluded.value",
            (key, value)
        )

    def remove(self, key: str):
        self._execute("DELETE FROM kv WHERE key = ?", (key,))

    def clear(self):
        self._execute("DELETE FROM kv")

    def snapshot(self) -> Dict[str, str]:
        return dict(self._execute("SELECT key, value FROM kv ORDER BY key"))
