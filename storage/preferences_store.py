# Folder: qport-core/storage/preferences_store.py
#
# SQLite key/value table - the persistence hook behind the content cache.
# Holds operator preferences and, if the deployment wants it,
# every cached classification so restarts don't re-classify old reports.
#
# Opaque keys, opaque string values. No schema beyond that.

import sqlite3
import logging
import threading
from datetime import datetime
from typing import Optional
import config

logger = logging.getLogger(__name__)


class KeyValueStore:
    """
    get(key) -> value | None
    set(key, value)

    One connection shared across threads, serialized by a lock.
    Use db_path=":memory:" for a throwaway store.
    """

    def __init__(self, db_path: str = None):
        self.db_path = db_path or config.PREFERENCES_DB_PATH
        self.conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self.conn.row_factory = sqlite3.Row
        self._lock = threading.Lock()
        self._create_tables()
        logger.info(f"KeyValueStore initialized at {self.db_path}")

    def _create_tables(self):
        self.conn.executescript("""
            CREATE TABLE IF NOT EXISTS kv (
                key         TEXT PRIMARY KEY,
                value       TEXT NOT NULL,
                updated_at  TEXT NOT NULL
            );
        """)
        self.conn.commit()

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            row = self.conn.execute(
                "SELECT value FROM kv WHERE key = ?", [key]
            ).fetchone()
        return row["value"] if row else None

    def set(self, key: str, value: str):
        with self._lock:
            self.conn.execute("""
                INSERT INTO kv (key, value, updated_at)
                VALUES (?, ?, ?)
                ON CONFLICT(key) DO UPDATE SET
                    value = excluded.value,
                    updated_at = excluded.updated_at
            """, [key, value, datetime.now().isoformat()])
            self.conn.commit()

    def keys(self, prefix: str = ""):
        """All keys starting with prefix - used for debugging and tests"""
        with self._lock:
            rows = self.conn.execute(
                "SELECT key FROM kv WHERE key LIKE ? ORDER BY key",
                [prefix + "%"]
            ).fetchall()
        return [r["key"] for r in rows]

    def close(self):
        with self._lock:
            self.conn.close()
