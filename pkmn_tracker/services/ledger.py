"""Sync ledger: the persisted fingerprint of the last successful run."""

import logging
import sqlite3
from typing import Optional

from pkmn_tracker.db.models import SyncMarker, SyncMarkerRepository
from pkmn_tracker.services.change_detector import SYNC_KEY
from pkmn_tracker.utils import now_iso

log = logging.getLogger(__name__)


class SyncLedger:
    """Read and replace the sync marker for one pipeline key."""

    def __init__(self, marker_repo: SyncMarkerRepository, key: str = SYNC_KEY):
        self.marker_repo = marker_repo
        self.key = key

    def last(self) -> Optional[SyncMarker]:
        return self.marker_repo.get(self.key)

    def commit(self, fingerprint: str) -> bool:
        """
        Record a completed run.

        Storage failures are logged and reported as False: the synced data is
        already in place, only the next run's skip-if-unchanged check is lost.
        """
        marker = SyncMarker(key=self.key, fingerprint=fingerprint, synced_at=now_iso())
        conn = self.marker_repo.conn
        try:
            self.marker_repo.save(marker)
            conn.commit()
        except sqlite3.Error as e:
            log.error("Could not save sync marker: %s", e)
            conn.rollback()
            return False

        log.info("Sync marker saved (%s)", fingerprint or "no fingerprint")
        return True
