"""
Database connection management.

Provides SQLite connections and transaction scopes for data persistence.
"""

import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

DEFAULT_DB_PATH = "boat_fuel_tracker.db"
DEFAULT_TIMEOUT_SECONDS = 5.0


def get_connection(
    db_path: str = DEFAULT_DB_PATH,
    timeout: float = DEFAULT_TIMEOUT_SECONDS
) -> sqlite3.Connection:
    """Create and return a SQLite database connection with foreign keys enabled.
    
    Autocommit mode is used so transactions are opened explicitly by
    :func:`transaction`.
    
    Args:
        db_path: Path to SQLite database file
        timeout: Seconds to wait for a competing writer's lock
        
    Returns:
        SQLite connection with foreign key constraints enabled
    """
    path = Path(db_path)
    conn = sqlite3.connect(str(path), timeout=timeout, isolation_level=None)
    conn.execute("PRAGMA foreign_keys = ON")
    return conn


@contextmanager
def transaction(conn: sqlite3.Connection, write: bool = True) -> Iterator[sqlite3.Connection]:
    """Run a block inside one transaction, rolling back on any error.
    
    Write transactions take the database write lock up front
    (``BEGIN IMMEDIATE``), so a read-modify-write inside the block always
    sees the latest committed state and competing writers wait or time out.
    Read transactions (``BEGIN``) give the block a single consistent snapshot.
    
    Args:
        conn: Connection from :func:`get_connection`
        write: Whether the block writes
    """
    conn.execute("BEGIN IMMEDIATE" if write else "BEGIN")
    try:
        yield conn
    except BaseException:
        conn.rollback()
        raise
    conn.commit()
