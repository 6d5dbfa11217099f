"""Catalog sync pipeline.

fetch snapshot -> detect change -> extract entries -> normalize ->
upsert sets, then cards -> save sync marker

The whole snapshot is downloaded on every run and its own validators are
compared with the stored marker. An unchanged snapshot is discarded without
writing anything.

The run is sequential. Fatal errors (FetchError, ArchiveError,
ErrorBudgetExceeded) propagate to the caller and leave the sync marker
untouched, so the next scheduled run starts over.
"""

import logging
import os
import sqlite3
import time
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Tuple

from pkmn_tracker.db.models import SyncMarkerRepository
from pkmn_tracker.db.schema import init_db
from pkmn_tracker.services.archive import extract_archive
from pkmn_tracker.services.change_detector import SYNC_KEY, ChangeDetector
from pkmn_tracker.services.ledger import SyncLedger
from pkmn_tracker.services.memory import log_memory
from pkmn_tracker.services.normalize import normalize
from pkmn_tracker.services.reconcile import (
    BATCH_DELAY,
    BATCH_SIZE,
    MAX_ERRORS,
    BatchUpserter,
    RunStats,
)
from pkmn_tracker.services.snapshot import RETRY_DELAYS, SNAPSHOT_URL, TIMEOUT, SnapshotSource
from pkmn_tracker.utils import env_int, now_iso

log = logging.getLogger(__name__)


@dataclass
class SyncConfig:
    """Settings for one sync run."""
    url: str = SNAPSHOT_URL
    language: str = "en"
    batch_size: int = BATCH_SIZE
    max_errors: int = MAX_ERRORS
    batch_delay: float = BATCH_DELAY
    retry_delays: Tuple[float, ...] = RETRY_DELAYS
    timeout: float = TIMEOUT
    force: bool = False

    @classmethod
    def from_env(cls, **overrides) -> "SyncConfig":
        """
        Build a config from PKMN_* environment variables.

        Keyword overrides that are not None win over the environment.
        """
        config = cls(
            url=os.environ.get("PKMN_SNAPSHOT_URL") or SNAPSHOT_URL,
            batch_size=env_int("PKMN_BATCH_SIZE", BATCH_SIZE),
            max_errors=env_int("PKMN_MAX_ERRORS", MAX_ERRORS),
        )
        for name, value in overrides.items():
            if value is not None:
                setattr(config, name, value)
        return config


@dataclass
class SyncSummary:
    """Result of a sync run that did not fail."""
    status: str  # "synced", "unchanged" or "empty"
    fingerprint: str = ""
    stats: RunStats = field(default_factory=RunStats)
    skipped_entries: List[str] = field(default_factory=list)
    dropped_records: int = 0
    ledger_committed: bool = False
    elapsed: float = 0.0


class CatalogSync:
    """Run the catalog sync pipeline against one database connection."""

    def __init__(
        self,
        conn: sqlite3.Connection,
        config: Optional[SyncConfig] = None,
        source: Optional[SnapshotSource] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.conn = conn
        self.config = config or SyncConfig()
        self.source = source or SnapshotSource(
            url=self.config.url,
            retry_delays=self.config.retry_delays,
            timeout=self.config.timeout,
            sleep=sleep,
        )
        marker_repo = SyncMarkerRepository(conn)
        self.detector = ChangeDetector(marker_repo, key=SYNC_KEY)
        self.ledger = SyncLedger(marker_repo, key=SYNC_KEY)
        self.upserter = BatchUpserter(
            conn,
            batch_size=self.config.batch_size,
            max_errors=self.config.max_errors,
            batch_delay=self.config.batch_delay,
            sleep=sleep,
        )

    def run(self) -> SyncSummary:
        t0 = time.time()
        log_memory("Start")

        log_memory("Before download")
        snapshot = self.source.fetch()
        log_memory("After download")

        # Nothing is written, schema included, until the snapshot is in hand.
        init_db(self.conn)

        check = self.detector.check_for_changes(snapshot.fingerprint, force=self.config.force)
        if not check.changed:
            log_memory("End")
            return SyncSummary(
                status="unchanged",
                fingerprint=check.fingerprint,
                elapsed=time.time() - t0,
            )

        fingerprint = check.fingerprint
        content = snapshot.content
        del snapshot

        extracted = extract_archive(content, language=self.config.language)
        del content

        if not extracted.cards and not extracted.sets:
            log.warning("No cards or sets found in snapshot")
            log_memory("End")
            return SyncSummary(
                status="empty",
                fingerprint=fingerprint,
                skipped_entries=extracted.skipped_entries,
                elapsed=time.time() - t0,
            )

        normalized = normalize(extracted.cards, extracted.sets, synced_at=now_iso())
        skipped_entries = extracted.skipped_entries
        del extracted

        stats = self.upserter.reconcile(normalized.sets, normalized.cards)
        committed = self.ledger.commit(fingerprint)
        log_memory("End")

        return SyncSummary(
            status="synced",
            fingerprint=fingerprint,
            stats=stats,
            skipped_entries=skipped_entries,
            dropped_records=normalized.dropped,
            ledger_committed=committed,
            elapsed=time.time() - t0,
        )
