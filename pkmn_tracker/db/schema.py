"""Database schema."""

import sqlite3

SCHEMA_VERSION = 1

SCHEMA_SQL = """
-- Card sets (synced from the upstream snapshot's set catalog)
CREATE TABLE IF NOT EXISTS sets (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    series TEXT,
    printed_total INTEGER,
    total INTEGER,
    ptcgo_code TEXT,
    release_date TEXT,     -- upstream format: YYYY/MM/DD
    updated_at TEXT,
    symbol_url TEXT,
    logo_url TEXT,
    legalities_payload TEXT  -- JSON object: {"unlimited": "Legal", ...}
);

-- Cards (synced from the upstream snapshot's per-set card files)
CREATE TABLE IF NOT EXISTS cards (
    id TEXT PRIMARY KEY,           -- <set_id>-<number>
    name TEXT NOT NULL,
    set_id TEXT NOT NULL,          -- not a foreign key: sets may lag behind cards upstream
    card_number TEXT,              -- raw, may be non-numeric ("SWSH001")
    card_number_sort_key INTEGER,  -- NULL unless card_number is all digits
    image_url TEXT,
    raw_payload TEXT,              -- full upstream entry as JSON
    created_at TEXT NOT NULL,
    synced_at TEXT NOT NULL
);

-- One row per sync pipeline, written only at the end of a successful run
CREATE TABLE IF NOT EXISTS sync_marker (
    key TEXT PRIMARY KEY,
    fingerprint TEXT NOT NULL,
    synced_at TEXT NOT NULL
);

-- Schema version tracking
CREATE TABLE IF NOT EXISTS schema_version (
    version INTEGER PRIMARY KEY,
    applied_at TEXT NOT NULL
);

-- Indexes for the read path
CREATE INDEX IF NOT EXISTS idx_cards_name ON cards(name);
CREATE INDEX IF NOT EXISTS idx_cards_set_sort ON cards(set_id, card_number_sort_key);
CREATE INDEX IF NOT EXISTS idx_sets_release_date ON sets(release_date);
"""


def get_current_version(conn: sqlite3.Connection) -> int:
    """Get the current schema version, or 0 if not initialized."""
    try:
        cursor = conn.execute(
            "SELECT MAX(version) FROM schema_version"
        )
        row = cursor.fetchone()
        return row[0] if row[0] is not None else 0
    except sqlite3.OperationalError:
        # Table doesn't exist
        return 0


def init_db(conn: sqlite3.Connection, force: bool = False) -> bool:
    """
    Initialize the database schema.

    Args:
        conn: Database connection
        force: If True, drop and recreate all tables

    Returns:
        True if schema was created, False if already up to date
    """
    from pkmn_tracker.utils import now_iso

    current = get_current_version(conn)

    if current >= SCHEMA_VERSION and not force:
        return False

    if force:
        drop_all_tables(conn)

    conn.executescript(SCHEMA_SQL)

    conn.execute(
        "INSERT OR REPLACE INTO schema_version (version, applied_at) VALUES (?, ?)",
        (SCHEMA_VERSION, now_iso())
    )
    conn.commit()

    return True


def drop_all_tables(conn: sqlite3.Connection):
    """Drop all tables (for testing/reset)."""
    conn.executescript("""
        DROP TABLE IF EXISTS cards;
        DROP TABLE IF EXISTS sets;
        DROP TABLE IF EXISTS sync_marker;
        DROP TABLE IF EXISTS schema_version;
    """)
    conn.commit()
