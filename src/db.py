"""Shared SQLite helpers: WAL mode, busy timeout, row factory."""

import sqlite3
from pathlib import Path

DEFAULT_BUSY_TIMEOUT = 5.0


def wal_connect(
    db_path: str | Path,
    row_factory: bool = False,
    timeout: float = DEFAULT_BUSY_TIMEOUT,
) -> sqlite3.Connection:
    """Open SQLite connection with WAL journal mode.

    Args:
        db_path: Path to database file.
        row_factory: If True, set conn.row_factory = sqlite3.Row.
        timeout: Seconds to wait on a locked database before raising.
    """
    conn = sqlite3.connect(str(db_path), timeout=timeout)
    conn.execute("PRAGMA journal_mode=WAL")
    if row_factory:
        conn.row_factory = sqlite3.Row
    return conn
