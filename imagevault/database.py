"""Database schema and connection management for SQLite."""

import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Generator, Optional

from imagevault.config import DATABASE_PATH

BUSY_TIMEOUT_SECONDS = 30.0


def _resolve_path(db_path: Optional[str]) -> str:
    return db_path if db_path is not None else DATABASE_PATH


def init_database(db_path: Optional[str] = None) -> None:
    """
    Initialize database and create tables if they don't exist.
    """
    path = Path(_resolve_path(db_path))
    path.parent.mkdir(parents=True, exist_ok=True)

    with get_db_connection(db_path) as conn:
        cursor = conn.cursor()

        cursor.execute("PRAGMA journal_mode=WAL")

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS kv (
                key TEXT PRIMARY KEY,
                value BLOB NOT NULL,
                encoding TEXT NOT NULL,
                versionstamp INTEGER NOT NULL
            )
        """)

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS kv_version (
                id INTEGER PRIMARY KEY CHECK (id = 1),
                current INTEGER NOT NULL
            )
        """)

        cursor.execute("""
            INSERT OR IGNORE INTO kv_version (id, current) VALUES (1, 0)
        """)

        conn.commit()


@contextmanager
def get_db_connection(db_path: Optional[str] = None) -> Generator[sqlite3.Connection, None, None]:
    """
    Context manager for database connections.
    """
    conn = sqlite3.connect(_resolve_path(db_path), timeout=BUSY_TIMEOUT_SECONDS)
    conn.row_factory = sqlite3.Row
    try:
        yield conn
    finally:
        conn.close()
