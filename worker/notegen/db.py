"""
db.py: SQLite preference store for the notes worker

This module provides:
  - Connection helper with safe defaults
  - Initialization of the preferences table
  - get/set of small string values (the engine selection lives here)
"""

import sqlite3
from typing import Optional
from pathlib import Path
from datetime import datetime, timezone

ENGINE_KEY = "engine"


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class PreferenceStore:
    def __init__(self, path: Path) -> None:
        self.path = Path(path).expanduser().resolve()

    def get_connection(self) -> sqlite3.Connection:
        """
        Open a SQLite connection to the preference file.
        The parent directory is created on first use.
        """
        self.path.parent.mkdir(parents=True, exist_ok=True)
        return sqlite3.connect(str(self.path))

    def initialize(self) -> None:
        """
        Create the table if it doesn't exist.
        This is idempotent and safe to call on startup.
        """
        with self.get_connection() as conn:
            cur = conn.cursor()
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS preferences (
                    key     TEXT PRIMARY KEY,
                    value   TEXT NOT NULL,
                    updated TEXT            -- ISO8601 timestamp (UTC) of last write
                );
                """
            )
            conn.commit()

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        with self.get_connection() as conn:
            cur = conn.cursor()
            try:
                cur.execute("SELECT value FROM preferences WHERE key = ?", (key,))
            except sqlite3.OperationalError:
                # Table not created yet
                return default
            row = cur.fetchone()
        if row is None:
            return default
        return row[0]

    def set(self, key: str, value: str) -> None:
        self.initialize()
        with self.get_connection() as conn:
            cur = conn.cursor()
            cur.execute(
                """
                INSERT INTO preferences (key, value, updated) VALUES (?, ?, ?)
                ON CONFLICT(key) DO UPDATE SET value = excluded.value, updated = excluded.updated
                """,
                (key, value, utc_now_iso()),
            )
            conn.commit()
