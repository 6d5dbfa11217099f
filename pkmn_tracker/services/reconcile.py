"""Write normalized sets and cards to SQLite.

Sets are written first, each in its own transaction. Cards follow in
fixed-size batches: one transaction per batch, one savepoint per card. A card
that fails is rolled back to its savepoint and skipped while the rest of its
batch still commits.

Every recovered failure counts against a single error budget shared by sets
and cards. Going over the budget aborts the run with ErrorBudgetExceeded; the
batch in flight is rolled back and batches already committed stay in place.
"""

import logging
import sqlite3
import time
from contextlib import contextmanager
from dataclasses import asdict, dataclass
from typing import Callable, List, Sequence

from pkmn_tracker.db.models import CardRecord, CardRepository, SetRecord, SetRepository
from pkmn_tracker.services.errors import ErrorBudgetExceeded, RecordPersistError

log = logging.getLogger(__name__)

BATCH_SIZE = 50
MAX_ERRORS = 10
BATCH_DELAY = 0.1  # seconds between card batches

# Failures attributable to a single record rather than the connection
_RECORD_ERRORS = (sqlite3.Error, KeyError, TypeError, ValueError)


@dataclass
class RunStats:
    """Counters accumulated over one reconcile run."""
    sets_created: int = 0
    sets_updated: int = 0
    cards_created: int = 0
    cards_updated: int = 0
    errors: int = 0
    batches: int = 0

    @property
    def created(self) -> int:
        return self.sets_created + self.cards_created

    @property
    def updated(self) -> int:
        return self.sets_updated + self.cards_updated

    def as_dict(self) -> dict:
        d = asdict(self)
        d["created"] = self.created
        d["updated"] = self.updated
        return d


@contextmanager
def _transaction(conn: sqlite3.Connection):
    """Explicit BEGIN/COMMIT; rolls back on any exception."""
    conn.execute("BEGIN")
    try:
        yield
        conn.commit()
    except BaseException:
        conn.rollback()
        raise


class BatchUpserter:
    """Reconcile sets and cards against storage under an error budget.

    The connection must not have an open transaction when reconcile() is
    called; each set and each card batch starts its own.
    """

    def __init__(
        self,
        conn: sqlite3.Connection,
        batch_size: int = BATCH_SIZE,
        max_errors: int = MAX_ERRORS,
        batch_delay: float = BATCH_DELAY,
        sleep: Callable[[float], None] = time.sleep,
    ):
        if batch_size < 1:
            raise ValueError(f"batch_size must be at least 1, got {batch_size}")
        if max_errors < 0:
            raise ValueError(f"max_errors must not be negative, got {max_errors}")
        self.conn = conn
        self.batch_size = batch_size
        self.max_errors = max_errors
        self.batch_delay = batch_delay
        self.sleep = sleep
        self.card_repo = CardRepository(conn)
        self.set_repo = SetRepository(conn)

    def reconcile(self, sets: Sequence[SetRecord], cards: Sequence[CardRecord]) -> RunStats:
        """Upsert all sets, then all cards. Raises ErrorBudgetExceeded."""
        stats = RunStats()

        if sets:
            log.info("Processing %d set(s)...", len(sets))
            self.reconcile_sets(sets, stats)

        if cards:
            log.info("Processing %d card(s) in batches of %d...", len(cards), self.batch_size)
            self.reconcile_cards(cards, stats)

        return stats

    # Sets

    def reconcile_sets(self, sets: Sequence[SetRecord], stats: RunStats) -> None:
        for s in sets:
            try:
                with _transaction(self.conn):
                    created = self._upsert_set(s)
            except _RECORD_ERRORS as e:
                self._record_errors(stats, RecordPersistError("set", s.id, e))
                continue

            if created:
                stats.sets_created += 1
            else:
                stats.sets_updated += 1

    def _upsert_set(self, s: SetRecord) -> bool:
        """Create or update a set. Returns True if it was created."""
        if self.set_repo.exists(s.id):
            self.set_repo.update(s)
            return False
        self.set_repo.create(s)
        return True

    # Cards

    def reconcile_cards(self, cards: Sequence[CardRecord], stats: RunStats) -> None:
        total_batches = (len(cards) + self.batch_size - 1) // self.batch_size

        for index, start in enumerate(range(0, len(cards), self.batch_size), 1):
            if index > 1 and self.batch_delay > 0:
                self.sleep(self.batch_delay)
            batch = cards[start:start + self.batch_size]
            self._apply_batch(batch, index, total_batches, stats)

    def _apply_batch(
        self,
        batch: Sequence[CardRecord],
        index: int,
        total_batches: int,
        stats: RunStats,
    ) -> None:
        stats.batches += 1
        created = 0
        updated = 0
        failed: List[str] = []

        try:
            with _transaction(self.conn):
                for card in batch:
                    try:
                        is_new = self._upsert_card_in_savepoint(card)
                    except RecordPersistError as e:
                        failed.append(card.id)
                        self._record_errors(stats, e)
                        continue
                    if is_new:
                        created += 1
                    else:
                        updated += 1
        except ErrorBudgetExceeded:
            log.error("Batch %d/%d rolled back: error budget exhausted", index, total_batches)
            raise
        except sqlite3.Error as e:
            # The batch as a whole did not commit; every record not already
            # counted as failed is lost with it.
            lost = len(batch) - len(failed)
            log.error("Batch %d/%d failed: %s", index, total_batches, e)
            self._record_errors(
                stats, RecordPersistError("batch", str(index), e), count=lost
            )
            return

        stats.cards_created += created
        stats.cards_updated += updated
        log.info(
            "  Batch %d/%d: %d created, %d updated, %d failed",
            index, total_batches, created, updated, len(failed),
        )

    def _upsert_card_in_savepoint(self, card: CardRecord) -> bool:
        """Upsert one card inside a savepoint. Returns True if it was created."""
        self.conn.execute("SAVEPOINT card_upsert")
        try:
            if self.card_repo.exists(card.id):
                self.card_repo.update(card)
                is_new = False
            else:
                self.card_repo.create(card)
                is_new = True
        except _RECORD_ERRORS as e:
            self.conn.execute("ROLLBACK TO SAVEPOINT card_upsert")
            self.conn.execute("RELEASE SAVEPOINT card_upsert")
            raise RecordPersistError("card", card.id, e) from e
        self.conn.execute("RELEASE SAVEPOINT card_upsert")
        return is_new

    # Error budget

    def _record_errors(self, stats: RunStats, error: RecordPersistError, count: int = 1) -> None:
        """Count recovered failures; raise once the budget is exceeded."""
        stats.errors += count
        log.warning("Error processing %s", error)
        if stats.errors > self.max_errors:
            raise ErrorBudgetExceeded(stats, self.max_errors)
