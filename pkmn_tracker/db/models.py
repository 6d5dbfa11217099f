"""Database models and repositories."""

import json
import sqlite3
from dataclasses import dataclass
from typing import Dict, List, Optional

from pkmn_tracker.utils import now_iso, parse_json_object


@dataclass
class CardRecord:
    """A single card, keyed by its upstream id (<set_id>-<number>)."""
    id: str
    name: str
    set_id: str
    card_number: Optional[str] = None
    card_number_sort_key: Optional[int] = None
    image_url: Optional[str] = None
    raw_payload: Optional[str] = None  # Full upstream entry as JSON string
    synced_at: Optional[str] = None
    created_at: Optional[str] = None

    def payload(self) -> Dict:
        """Parse and return the full upstream entry as a dict."""
        if self.raw_payload:
            return json.loads(self.raw_payload)
        return {}


@dataclass
class SetRecord:
    """Card set information."""
    id: str
    name: str
    series: Optional[str] = None
    printed_total: Optional[int] = None
    total: Optional[int] = None
    ptcgo_code: Optional[str] = None
    release_date: Optional[str] = None
    updated_at: Optional[str] = None
    symbol_url: Optional[str] = None
    logo_url: Optional[str] = None
    legalities_payload: Optional[str] = None

    def legalities(self) -> Dict[str, str]:
        """Return the set's legalities as a dict (format -> status)."""
        return parse_json_object(self.legalities_payload)


@dataclass
class SyncMarker:
    """Fingerprint of the last successfully completed sync run."""
    key: str
    fingerprint: str
    synced_at: str


class CardRepository:
    """CRUD operations for cards table."""

    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn

    def exists(self, card_id: str) -> bool:
        """Check if a card exists."""
        cursor = self.conn.execute(
            "SELECT 1 FROM cards WHERE id = ?", (card_id,)
        )
        return cursor.fetchone() is not None

    def create(self, card: CardRecord) -> None:
        """Insert a new card. Raises sqlite3.IntegrityError if the id exists."""
        synced_at = card.synced_at or now_iso()
        self.conn.execute(
            """
            INSERT INTO cards
            (id, name, set_id, card_number, card_number_sort_key, image_url,
             raw_payload, created_at, synced_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                card.id,
                card.name,
                card.set_id,
                card.card_number,
                card.card_number_sort_key,
                card.image_url,
                card.raw_payload,
                card.created_at or synced_at,
                synced_at,
            ),
        )

    def update(self, card: CardRecord) -> None:
        """Update an existing card in place. created_at is left untouched."""
        cursor = self.conn.execute(
            """
            UPDATE cards SET
                name = ?,
                set_id = ?,
                card_number = ?,
                card_number_sort_key = ?,
                image_url = ?,
                raw_payload = ?,
                synced_at = ?
            WHERE id = ?
            """,
            (
                card.name,
                card.set_id,
                card.card_number,
                card.card_number_sort_key,
                card.image_url,
                card.raw_payload,
                card.synced_at or now_iso(),
                card.id,
            ),
        )
        if cursor.rowcount == 0:
            raise KeyError(card.id)

    def get(self, card_id: str) -> Optional[CardRecord]:
        """Get a card by id."""
        cursor = self.conn.execute(
            "SELECT * FROM cards WHERE id = ?", (card_id,)
        )
        row = cursor.fetchone()
        if row is None:
            return None
        return self._row_to_card(row)

    def count(self) -> int:
        return self.conn.execute("SELECT COUNT(*) FROM cards").fetchone()[0]

    def search_by_name(self, name: str, limit: int = 50) -> List[CardRecord]:
        """Search cards by name (case-insensitive substring match)."""
        cursor = self.conn.execute(
            """
            SELECT * FROM cards
            WHERE name LIKE ? COLLATE NOCASE
            ORDER BY name, set_id, card_number_sort_key
            LIMIT ?
            """,
            (f"%{name}%", limit),
        )
        return [self._row_to_card(row) for row in cursor]

    def list_by_set(self, set_id: str) -> List[CardRecord]:
        """
        List all cards in a set in collector-number order.

        Numeric card numbers sort by value; non-numeric ones ("SWSH001", "TG05")
        follow, ordered by their raw string.
        """
        cursor = self.conn.execute(
            """
            SELECT * FROM cards
            WHERE set_id = ?
            ORDER BY card_number_sort_key IS NULL, card_number_sort_key, card_number
            """,
            (set_id,),
        )
        return [self._row_to_card(row) for row in cursor]

    def _row_to_card(self, row) -> CardRecord:
        return CardRecord(
            id=row["id"],
            name=row["name"],
            set_id=row["set_id"],
            card_number=row["card_number"],
            card_number_sort_key=row["card_number_sort_key"],
            image_url=row["image_url"],
            raw_payload=row["raw_payload"],
            synced_at=row["synced_at"],
            created_at=row["created_at"],
        )


class SetRepository:
    """CRUD operations for sets table."""

    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn

    def exists(self, set_id: str) -> bool:
        """Check if a set exists."""
        cursor = self.conn.execute(
            "SELECT 1 FROM sets WHERE id = ?", (set_id,)
        )
        return cursor.fetchone() is not None

    def create(self, s: SetRecord) -> None:
        """Insert a new set. Raises sqlite3.IntegrityError if the id exists."""
        self.conn.execute(
            """
            INSERT INTO sets
            (id, name, series, printed_total, total, ptcgo_code, release_date,
             updated_at, symbol_url, logo_url, legalities_payload)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                s.id,
                s.name,
                s.series,
                s.printed_total,
                s.total,
                s.ptcgo_code,
                s.release_date,
                s.updated_at,
                s.symbol_url,
                s.logo_url,
                s.legalities_payload,
            ),
        )

    def update(self, s: SetRecord) -> None:
        """Update an existing set in place."""
        cursor = self.conn.execute(
            """
            UPDATE sets SET
                name = ?,
                series = ?,
                printed_total = ?,
                total = ?,
                ptcgo_code = ?,
                release_date = ?,
                updated_at = ?,
                symbol_url = ?,
                logo_url = ?,
                legalities_payload = ?
            WHERE id = ?
            """,
            (
                s.name,
                s.series,
                s.printed_total,
                s.total,
                s.ptcgo_code,
                s.release_date,
                s.updated_at,
                s.symbol_url,
                s.logo_url,
                s.legalities_payload,
                s.id,
            ),
        )
        if cursor.rowcount == 0:
            raise KeyError(s.id)

    def get(self, set_id: str) -> Optional[SetRecord]:
        """Get a set by id."""
        cursor = self.conn.execute(
            "SELECT * FROM sets WHERE id = ?", (set_id,)
        )
        row = cursor.fetchone()
        if row is None:
            return None
        return self._row_to_set(row)

    def count(self) -> int:
        return self.conn.execute("SELECT COUNT(*) FROM sets").fetchone()[0]

    def list_sets(self, newest_first: bool = True) -> List[SetRecord]:
        """List all sets ordered by release date."""
        direction = "DESC" if newest_first else "ASC"
        cursor = self.conn.execute(
            f"SELECT * FROM sets ORDER BY release_date {direction}, id"
        )
        return [self._row_to_set(row) for row in cursor]

    def _row_to_set(self, row) -> SetRecord:
        return SetRecord(
            id=row["id"],
            name=row["name"],
            series=row["series"],
            printed_total=row["printed_total"],
            total=row["total"],
            ptcgo_code=row["ptcgo_code"],
            release_date=row["release_date"],
            updated_at=row["updated_at"],
            symbol_url=row["symbol_url"],
            logo_url=row["logo_url"],
            legalities_payload=row["legalities_payload"],
        )


class SyncMarkerRepository:
    """Read/write access to the sync_marker table."""

    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn

    def get(self, key: str) -> Optional[SyncMarker]:
        """Get the marker for a pipeline key."""
        cursor = self.conn.execute(
            "SELECT * FROM sync_marker WHERE key = ?", (key,)
        )
        row = cursor.fetchone()
        if row is None:
            return None
        return SyncMarker(
            key=row["key"],
            fingerprint=row["fingerprint"],
            synced_at=row["synced_at"],
        )

    def save(self, marker: SyncMarker) -> None:
        """Insert or replace the marker for its key."""
        self.conn.execute(
            """
            INSERT INTO sync_marker (key, fingerprint, synced_at)
            VALUES (?, ?, ?)
            ON CONFLICT(key) DO UPDATE SET
                fingerprint = excluded.fingerprint,
                synced_at = excluded.synced_at
            """,
            (marker.key, marker.fingerprint, marker.synced_at),
        )
