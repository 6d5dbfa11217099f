"""Catalog sync command: pkmn sync (and the scheduled pkmn-sync entry point)"""

import argparse
import logging
import sys

from pkmn_tracker.db import close_connection, get_connection, get_db_path
from pkmn_tracker.services.errors import SyncError
from pkmn_tracker.services.sync import CatalogSync, SyncConfig, SyncSummary

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def register(subparsers):
    """Register the sync subcommand."""
    parser = subparsers.add_parser(
        "sync",
        help="Sync cards and sets from the upstream snapshot",
        description=(
            "Download the upstream card data snapshot if it changed since the last "
            "successful sync, and create or update every set and card locally."
        ),
    )
    parser.add_argument(
        "--force",
        action="store_true",
        help="Sync even if the upstream fingerprint is unchanged",
    )
    parser.add_argument("--url", metavar="URL", help="Snapshot URL (default: PKMN_SNAPSHOT_URL or upstream)")
    parser.add_argument(
        "--batch-size", type=int, metavar="N", help="Cards per write batch (default: 50)"
    )
    parser.add_argument(
        "--max-errors",
        type=int,
        metavar="N",
        help="Record failures tolerated before the run aborts (default: 10)",
    )
    parser.add_argument(
        "--batch-delay",
        type=float,
        metavar="SECONDS",
        help="Pause between card batches (default: 0.1)",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    parser.set_defaults(func=run)


def configure_logging(verbose: bool = False):
    logging.basicConfig(level=logging.DEBUG if verbose else logging.INFO, format=LOG_FORMAT)


def run(args):
    """Run the sync command. Exits 1 on invalid settings or a fatal sync error."""
    configure_logging(getattr(args, "verbose", False))

    try:
        config = SyncConfig.from_env(
            url=getattr(args, "url", None),
            batch_size=getattr(args, "batch_size", None),
            max_errors=getattr(args, "max_errors", None),
            batch_delay=getattr(args, "batch_delay", None),
        )
        if getattr(args, "force", False):
            config.force = True
        sync = CatalogSync(get_connection(args.db_path), config)
    except ValueError as e:
        print(f"Invalid sync settings: {e}", file=sys.stderr)
        sys.exit(1)

    try:
        summary = sync.run()
    except SyncError as e:
        stats = getattr(e, "stats", None)
        if stats is not None:
            _print_stats(stats)
        print(f"Sync failed: {e}", file=sys.stderr)
        sys.exit(1)

    print_summary(summary)


def print_summary(summary: SyncSummary):
    """Print the end-of-run statistics."""
    if summary.status == "unchanged":
        print("No changes detected since the last sync. Nothing to do.")
        return
    if summary.status == "empty":
        print("No cards or sets found in the snapshot. Sync marker not updated.")
        return

    print()
    print("=" * 50)
    print("SYNC COMPLETE".center(50))
    print("=" * 50)
    print(f"Duration:          {summary.elapsed:.1f}s")
    _print_stats(summary.stats)
    if summary.skipped_entries:
        print(f"Skipped entries:   {len(summary.skipped_entries)}")
        for name in summary.skipped_entries:
            print(f"  {name}")
    if summary.dropped_records:
        print(f"Dropped records:   {summary.dropped_records} (no id)")
    if not summary.ledger_committed:
        print("Warning: sync marker not saved; the next run will sync again.")
    print("=" * 50)


def _print_stats(stats):
    print(f"Sets created:      {stats.sets_created:,}")
    print(f"Sets updated:      {stats.sets_updated:,}")
    print(f"Cards created:     {stats.cards_created:,}")
    print(f"Cards updated:     {stats.cards_updated:,}")
    print(f"Card batches:      {stats.batches:,}")
    print(f"Errors:            {stats.errors:,}")


def main():
    """Scheduled entry point: sync with environment configuration, no arguments."""
    try:
        run(argparse.Namespace(db_path=get_db_path()))
    finally:
        close_connection()
