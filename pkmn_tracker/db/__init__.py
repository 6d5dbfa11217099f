"""Database layer for the Pokemon card tracker."""

from pkmn_tracker.db.connection import close_connection, get_connection, get_db_path, open_connection
from pkmn_tracker.db.models import (
    CardRecord,
    CardRepository,
    SetRecord,
    SetRepository,
    SyncMarker,
    SyncMarkerRepository,
)
from pkmn_tracker.db.schema import SCHEMA_VERSION, init_db

__all__ = [
    "get_db_path",
    "get_connection",
    "close_connection",
    "open_connection",
    "init_db",
    "SCHEMA_VERSION",
    "CardRecord",
    "SetRecord",
    "SyncMarker",
    "CardRepository",
    "SetRepository",
    "SyncMarkerRepository",
]
