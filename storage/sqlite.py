"""SQLite storage backend for cached model responses.

One row per fingerprint in ``responses``; ``idx_responses_timestamp`` orders
rows for expiry sweeps. The schema version lives in ``PRAGMA user_version``.
A version bump rebuilds the table once, dropping cached rows.
"""

import logging
import sqlite3
import threading
from pathlib import Path
from typing import Optional

from core.types import CacheEntry

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1


class SQLiteCacheBackend:
    """Thread-safe SQLite-backed storage for CacheEntry records."""

    name = "sqlite"

    def __init__(self, db_path: str) -> None:
        if not db_path:
            raise ValueError("db_path is required")
        self.db_path = db_path
        # Lock guards DB operations done through this backend instance.
        self._lock = threading.Lock()
        if db_path != ":memory:":
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(db_path, check_same_thread=False)
        self.migrate()

    def migrate(self) -> None:
        """Create or rebuild the schema if it is not at SCHEMA_VERSION."""
        with self._lock:
            version = self._conn.execute("PRAGMA user_version").fetchone()[0]
            if version == SCHEMA_VERSION:
                return
            if version:
                logger.info("Migrating response cache schema %s -> %s", version, SCHEMA_VERSION)
            self._conn.execute("DROP TABLE IF EXISTS responses")
            self._conn.execute("""
                CREATE TABLE responses (
                    key TEXT PRIMARY KEY,
                    prompt TEXT NOT NULL,
                    response TEXT NOT NULL,
                    timestamp INTEGER NOT NULL
                )
                """)
            self._conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_responses_timestamp
                ON responses(timestamp)
                """)
            self._conn.execute(f"PRAGMA user_version = {SCHEMA_VERSION}")
            self._conn.commit()

    def get(self, key: str) -> Optional[CacheEntry]:
        with self._lock:
            row = self._conn.execute(
                "SELECT key, prompt, response, timestamp FROM responses WHERE key = ?",
                (key,),
            ).fetchone()
        if row is None:
            return None
        return CacheEntry(key=row[0], prompt=row[1], response=row[2], timestamp=row[3])

    def put(self, entry: CacheEntry) -> None:
        with self._lock:
            self._conn.execute(
                """
                INSERT INTO responses (key, prompt, response, timestamp)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(key) DO UPDATE SET
                    prompt = excluded.prompt,
                    response = excluded.response,
                    timestamp = excluded.timestamp
                """,
                (entry.key, entry.prompt, entry.response, entry.timestamp),
            )
            self._conn.commit()

    def delete(self, key: str) -> None:
        with self._lock:
            self._conn.execute("DELETE FROM responses WHERE key = ?", (key,))
            self._conn.commit()

    def sweep(self, cutoff: int) -> int:
        """Delete rows written before ``cutoff`` (epoch ms). Returns the count."""
        with self._lock:
            cursor = self._conn.execute("DELETE FROM responses WHERE timestamp < ?", (cutoff,))
            self._conn.commit()
            return cursor.rowcount

    def clear(self) -> None:
        with self._lock:
            self._conn.execute("DELETE FROM responses")
            self._conn.commit()

    def close(self) -> None:
        with self._lock:
            self._conn.close()
