"""CLI entry point and subcommand assembly."""

import argparse
import sys

from pkmn_tracker.db import get_db_path


def main():
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="pkmn",
        description="Pokemon Card Tracker - keep the local card catalog in sync",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument(
        "--db",
        metavar="PATH",
        help="Database path (default: $HOME/.pkmn/catalog.sqlite, or PKMN_DB env var)",
    )

    subparsers = parser.add_subparsers(dest="command", metavar="<command>")

    from pkmn_tracker.cli import db_cmd, stats, sync_cmd

    for module in (db_cmd, sync_cmd, stats):
        module.register(subparsers)

    args = parser.parse_args()

    if args.command is None:
        parser.print_help()
        sys.exit(0)

    # Resolve database path
    args.db_path = get_db_path(args.db)

    # Run the command
    args.func(args)
