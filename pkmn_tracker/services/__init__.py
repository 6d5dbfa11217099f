"""Services for the Pokemon card tracker."""

from pkmn_tracker.services.snapshot import SnapshotSource
from pkmn_tracker.services.sync import CatalogSync, SyncConfig

__all__ = ["CatalogSync", "SnapshotSource", "SyncConfig"]
