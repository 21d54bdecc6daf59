"""SQLite connection management for Specforge."""
from __future__ import annotations

import logging
import sqlite3
import threading
from pathlib import Path

from specforge.db.schema import INDEXES, TABLES

logger = logging.getLogger(__name__)

_DB_PATH: Path | None = None
_local = threading.local()


def _get_db_path() -> Path:
    """Return the configured DB path, falling back to default."""
    if _DB_PATH is not None:
        return _DB_PATH
    return Path(__file__).resolve().parents[3] / "output" / "specforge.db"


def _connect(path: Path) -> sqlite3.Connection:
    conn = sqlite3.connect(str(path))
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute("PRAGMA foreign_keys=ON")
    return conn


def init_db(db_path: str | Path | None = None) -> None:
    """Initialize the SQLite database.

    Creates the DB file, enables WAL mode, and creates all tables.
    Safe to call multiple times; tables use IF NOT EXISTS.
    """
    global _DB_PATH
    if db_path is not None:
        _DB_PATH = Path(db_path)
    path = _get_db_path()
    path.parent.mkdir(parents=True, exist_ok=True)

    conn = _connect(path)
    try:
        for ddl in TABLES:
            conn.execute(ddl)
        for idx in INDEXES:
            conn.execute(idx)
        conn.commit()
        logger.info("Database initialized at %s", path)
    finally:
        conn.close()


def get_conn() -> sqlite3.Connection:
    """Get a thread-local SQLite connection.

    Each thread gets its own connection (SQLite is not thread-safe by
    default).  Connections are reused within the same thread until the
    configured DB path changes.
    """
    path = _get_db_path()
    conn = getattr(_local, "conn", None)
    if conn is None or getattr(_local, "path", None) != path:
        if conn is not None:
            conn.close()
        conn = _connect(path)
        conn.row_factory = sqlite3.Row
        _local.conn = conn
        _local.path = path
    return conn


def close_db() -> None:
    """Close the thread-local connection (if any)."""
    if getattr(_local, "conn", None) is not None:
        _local.conn.close()
        _local.conn = None
        _local.path = None
        logger.info("Database connection closed")
