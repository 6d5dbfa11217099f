"""
Tests for the schema and repositories, including the read-path queries that
depend on set_id and card_number_sort_key.

To run: uv run pytest tests/test_models.py -v
"""

import sqlite3
import tempfile
from pathlib import Path

import pytest

from pkmn_tracker.db.connection import close_connection, get_connection, get_db_path, open_connection
from pkmn_tracker.db.models import (
    CardRecord,
    CardRepository,
    SetRecord,
    SetRepository,
    SyncMarker,
    SyncMarkerRepository,
)
from pkmn_tracker.db.schema import SCHEMA_VERSION, get_current_version, init_db


@pytest.fixture
def conn():
    c = sqlite3.connect(":memory:")
    c.row_factory = sqlite3.Row
    init_db(c)
    yield c
    c.close()


def _card(card_id, name, number, sort_key):
    return CardRecord(
        id=card_id,
        name=name,
        set_id=card_id.split("-", 1)[0],
        card_number=number,
        card_number_sort_key=sort_key,
        synced_at="2026-01-01T00:00:00Z",
    )


class TestSchema:
    def test_tables_created(self, conn):
        tables = {
            r[0] for r in conn.execute("SELECT name FROM sqlite_master WHERE type='table'")
        }
        assert {"cards", "sets", "sync_marker", "schema_version"} <= tables

    def test_version(self, conn):
        assert get_current_version(conn) == SCHEMA_VERSION

    def test_init_is_idempotent(self, conn):
        assert init_db(conn) is False

    def test_force_recreates(self, conn):
        SetRepository(conn).create(SetRecord(id="base1", name="Base Set"))
        conn.commit()
        assert init_db(conn, force=True) is True
        assert SetRepository(conn).count() == 0

    def test_uninitialized_version(self):
        c = sqlite3.connect(":memory:")
        assert get_current_version(c) == 0
        c.close()


class TestConnection:
    def test_env_path(self, monkeypatch):
        monkeypatch.setenv("PKMN_DB", "/tmp/elsewhere.sqlite")
        assert get_db_path() == "/tmp/elsewhere.sqlite"
        assert get_db_path("/explicit.sqlite") == "/explicit.sqlite"

    def test_home_path(self, monkeypatch, tmp_path):
        monkeypatch.delenv("PKMN_DB", raising=False)
        monkeypatch.setenv("PKMN_HOME", str(tmp_path))
        assert get_db_path() == str(tmp_path / "catalog.sqlite")

    def test_cached_connection(self):
        close_connection()
        with tempfile.TemporaryDirectory() as d:
            path = str(Path(d) / "sub" / "catalog.sqlite")
            c1 = get_connection(path)
            c2 = get_connection(path)
            assert c1 is c2
            assert Path(path).exists()
            close_connection()

    def test_file_database_uses_wal(self):
        with tempfile.TemporaryDirectory() as d:
            c = open_connection(str(Path(d) / "catalog.sqlite"))
            assert c.execute("PRAGMA journal_mode").fetchone()[0] == "wal"
            assert c.execute("PRAGMA foreign_keys").fetchone()[0] == 1
            c.close()

    def test_memory_database(self):
        c = open_connection(":memory:")
        assert c.execute("PRAGMA journal_mode").fetchone()[0] == "memory"
        assert isinstance(c.execute("SELECT 1 AS one").fetchone(), sqlite3.Row)
        c.close()

    def test_close_one_path(self):
        close_connection()
        with tempfile.TemporaryDirectory() as d:
            a = str(Path(d) / "a.sqlite")
            b = str(Path(d) / "b.sqlite")
            ca = get_connection(a)
            cb = get_connection(b)

            close_connection(a)

            assert get_connection(a) is not ca
            assert get_connection(b) is cb
            close_connection()


class TestCardRepository:
    def test_create_get(self, conn):
        repo = CardRepository(conn)
        repo.create(_card("base1-4", "Charizard", "4", 4))

        card = repo.get("base1-4")
        assert card.name == "Charizard"
        assert card.set_id == "base1"
        assert card.created_at == "2026-01-01T00:00:00Z"
        assert repo.exists("base1-4")
        assert repo.get("nope") is None

    def test_create_duplicate_raises(self, conn):
        repo = CardRepository(conn)
        repo.create(_card("base1-4", "Charizard", "4", 4))
        with pytest.raises(sqlite3.IntegrityError):
            repo.create(_card("base1-4", "Charizard", "4", 4))

    def test_update_missing_raises(self, conn):
        with pytest.raises(KeyError):
            CardRepository(conn).update(_card("base1-4", "Charizard", "4", 4))

    def test_list_by_set_orders_numerically(self, conn):
        repo = CardRepository(conn)
        for card in [
            _card("swsh1-100", "C", "100", 100),
            _card("swsh1-SWSH001", "Promo", "SWSH001", None),
            _card("swsh1-9", "B", "9", 9),
            _card("swsh1-10", "A", "10", 10),
            _card("swsh1-TG05", "TG", "TG05", None),
            _card("base1-1", "Other set", "1", 1),
        ]:
            repo.create(card)

        ids = [c.id for c in repo.list_by_set("swsh1")]
        assert ids == ["swsh1-9", "swsh1-10", "swsh1-100", "swsh1-SWSH001", "swsh1-TG05"]

    def test_search_by_name(self, conn):
        repo = CardRepository(conn)
        repo.create(_card("base1-58", "Pikachu", "58", 58))
        repo.create(_card("base1-4", "Charizard", "4", 4))
        repo.create(_card("swsh4-44", "Pikachu V", "44", 44))

        assert [c.id for c in repo.search_by_name("pikachu")] == ["base1-58", "swsh4-44"]
        assert repo.search_by_name("mewtwo") == []


class TestSetRepository:
    def test_update(self, conn):
        repo = SetRepository(conn)
        repo.create(SetRecord(id="base1", name="Base", release_date="1999/01/09"))
        repo.update(SetRecord(id="base1", name="Base Set", release_date="1999/01/10",
                              legalities_payload='{"unlimited": "Legal"}'))

        s = repo.get("base1")
        assert s.name == "Base Set"
        assert s.release_date == "1999/01/10"
        assert s.legalities() == {"unlimited": "Legal"}

    def test_update_missing_raises(self, conn):
        with pytest.raises(KeyError):
            SetRepository(conn).update(SetRecord(id="base1", name="Base"))

    def test_list_sets_by_release_date(self, conn):
        repo = SetRepository(conn)
        repo.create(SetRecord(id="sv1", name="Scarlet & Violet", release_date="2023/03/31"))
        repo.create(SetRecord(id="base1", name="Base", release_date="1999/01/09"))
        repo.create(SetRecord(id="swsh1", name="Sword & Shield", release_date="2020/02/07"))

        assert [s.id for s in repo.list_sets()] == ["sv1", "swsh1", "base1"]
        assert [s.id for s in repo.list_sets(newest_first=False)] == ["base1", "swsh1", "sv1"]


class TestSyncMarkerRepository:
    def test_save_replaces(self, conn):
        repo = SyncMarkerRepository(conn)
        assert repo.get("k") is None

        repo.save(SyncMarker("k", "fp1", "t1"))
        repo.save(SyncMarker("k", "fp2", "t2"))

        marker = repo.get("k")
        assert (marker.fingerprint, marker.synced_at) == ("fp2", "t2")
        assert conn.execute("SELECT COUNT(*) FROM sync_marker").fetchone()[0] == 1
