"""
Database connection management.

Provides SQLite connections and the helper that opens, creates and
upgrades the usage database.
"""

import logging
import sqlite3
import threading
from pathlib import Path

from .schema import DATABASE_NAME, DATABASE_VERSION, ensure_schema

logger = logging.getLogger(__name__)

# Seconds a writer waits on a locked database before sqlite3 gives up
BUSY_TIMEOUT = 30.0


def get_connection(db_path: str = DATABASE_NAME) -> sqlite3.Connection:
    """Create and return a SQLite connection with rows addressable by name.

    Args:
        db_path: Path to SQLite database file

    Returns:
        SQLite connection using sqlite3.Row as row factory
    """
    path = Path(db_path)
    conn = sqlite3.connect(str(path), timeout=BUSY_TIMEOUT)
    conn.row_factory = sqlite3.Row
    return conn


def get_schema_version(conn: sqlite3.Connection) -> int:
    return conn.execute("PRAGMA user_version").fetchone()[0]


class DatabaseHelper:
    """Opens the usage database, creating or upgrading it on first access.

    The schema check runs once per helper; afterwards `open()` only hands
    out fresh connections.
    """

    def __init__(self, db_path: str = DATABASE_NAME, version: int = DATABASE_VERSION):
        if version < 1:
            raise ValueError("version must be >= 1")
        self.db_path = db_path
        self.version = version
        self._ready = False
        self._lock = threading.Lock()

    def open(self) -> sqlite3.Connection:
        """Return a new connection to an up-to-date database."""
        if not self._ready:
            with self._lock:
                if not self._ready:
                    self._prepare()
                    self._ready = True
        return get_connection(self.db_path)

    def _prepare(self) -> None:
        conn = get_connection(self.db_path)
        try:
            # Take the write lock up front so two processes never both create
            conn.isolation_level = None
            conn.execute("BEGIN IMMEDIATE")
            try:
                current = get_schema_version(conn)
                if current != self.version:
                    ensure_schema(conn, current, self.version)
                    conn.execute(f"PRAGMA user_version = {int(self.version)}")
                conn.execute("COMMIT")
            except Exception:
                conn.execute("ROLLBACK")
                raise
        finally:
            conn.close()

    def close(self) -> None:
        """Forget the schema check; the next `open()` repeats it."""
        with self._lock:
            self._ready = False
