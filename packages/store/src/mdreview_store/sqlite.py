"""SQLiteStore — local single-file database backend.

Why SQLite as an alternative store:
- Batteries included: ships with Python, no extra dependencies.
- Transactional writes: a value is either fully replaced or not at all.
- One file to copy around, convenient when several review directories
  should share a history.

Schema:
  kv  — one row per key; the value column holds the payload verbatim.
"""

from __future__ import annotations

import logging
import sqlite3

from mdreview_store.base import BaseStore
from mdreview_store.errors import QuotaExceededError, StoreUnavailableError

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS kv (
    key    TEXT PRIMARY KEY,
    value  TEXT NOT NULL
);
"""


class SQLiteStore(BaseStore):
    """Stores values in a local SQLite database file.

    The database file path defaults to `.mdreview.db` in the current working
    directory. Configure via .mdreview.yml: `store: sqlite` and
    `store_path: /path/to/mdreview.db`.
    """

    def __init__(self, db_path: str = ".mdreview.db"):
        try:
            self._conn = sqlite3.connect(db_path)
            self._conn.executescript(_SCHEMA)
            self._conn.commit()
        except sqlite3.Error as e:
            raise StoreUnavailableError(f"Cannot open SQLite store at {db_path}: {e}") from e

    def get(self, key: str) -> str | None:
        try:
            row = self._conn.execute("SELECT value FROM kv WHERE key=?", (key,)).fetchone()
        except sqlite3.Error as e:
            raise StoreUnavailableError(f"SQLite read failed: {e}") from e
        return row[0] if row else None

    def set(self, key: str, value: str) -> None:
        try:
            with self._conn:
                self._conn.execute(
                    "INSERT INTO kv (key, value) VALUES (?, ?) ON CONFLICT(key) DO UPDATE SET value=excluded.value",
                    (key, value),
                )
        except sqlite3.OperationalError as e:
            if "full" in str(e).lower():
                raise QuotaExceededError(f"SQLite store is full: {e}") from e
            raise StoreUnavailableError(f"SQLite write failed: {e}") from e
        except sqlite3.Error as e:
            raise StoreUnavailableError(f"SQLite write failed: {e}") from e

    def remove(self, key: str) -> None:
        try:
            with self._conn:
                self._conn.execute("DELETE FROM kv WHERE key=?", (key,))
        except sqlite3.Error as e:
            raise StoreUnavailableError(f"SQLite delete failed: {e}") from e

    def close(self) -> None:
        self._conn.close()
