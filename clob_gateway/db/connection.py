"""SQLite connection management with WAL mode and schema initialization."""
from __future__ import annotations

import sqlite3
from pathlib import Path

SCHEMA_PATH = Path(__file__).parent / "schema.sql"


def apply_schema(conn: sqlite3.Connection) -> None:
    with open(SCHEMA_PATH) as f:
        conn.executescript(f.read())
    conn.commit()


def get_connection(
    db_path: Path | str,
    thread_safe: bool = False,
) -> sqlite3.Connection:
    """Create and initialize a SQLite connection.

    Args:
        db_path: Path to the database file, or ":memory:".
        thread_safe: If True, allow cross-thread usage (the API server
            shares one connection across its worker threads).

    Returns:
        Connection with Row factory, WAL mode and schema applied.
    """
    if str(db_path) != ":memory:":
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(str(db_path), check_same_thread=not thread_safe)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode=WAL")
    apply_schema(conn)
    return conn
