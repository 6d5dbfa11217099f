"""SQLite connections for the catalog database.

Connections are cached per database path for the life of the process. File
databases use WAL journaling so readers are not blocked while a sync run
holds a batch transaction open.
"""

import os
import sqlite3
from pathlib import Path
from typing import Dict, Optional

from pkmn_tracker.utils import get_pkmn_home

MEMORY_DB = ":memory:"
DB_FILENAME = "catalog.sqlite"

# Seconds to wait on a locked database before giving up
BUSY_TIMEOUT = 30.0

_connections: Dict[str, sqlite3.Connection] = {}


def get_db_path(override: Optional[str] = None) -> str:
    """Resolve the catalog path: explicit override, then PKMN_DB, then PKMN_HOME."""
    return override or os.environ.get("PKMN_DB") or str(get_pkmn_home() / DB_FILENAME)


def open_connection(path: str) -> sqlite3.Connection:
    """Open an uncached connection with row access by column name."""
    if path != MEMORY_DB:
        Path(path).parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(path, timeout=BUSY_TIMEOUT)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    if path != MEMORY_DB:
        conn.execute("PRAGMA journal_mode = WAL")
    return conn


def get_connection(db_path: Optional[str] = None) -> sqlite3.Connection:
    """Return the cached connection for a path, opening it on first use."""
    path = get_db_path(db_path)
    conn = _connections.get(path)
    if conn is None:
        conn = _connections[path] = open_connection(path)
    return conn


def close_connection(db_path: Optional[str] = None):
    """Close the cached connection for one path, or every cached connection."""
    if db_path is not None:
        paths = [get_db_path(db_path)]
    else:
        paths = list(_connections)

    for path in paths:
        conn = _connections.pop(path, None)
        if conn is not None:
            conn.close()
