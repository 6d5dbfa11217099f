"""Stats command: pkmn stats"""

from pkmn_tracker.db import (
    CardRepository,
    SetRepository,
    SyncMarkerRepository,
    get_connection,
    init_db,
)
from pkmn_tracker.services.change_detector import SYNC_KEY


def register(subparsers):
    """Register the stats subcommand."""
    parser = subparsers.add_parser(
        "stats",
        help="Show catalog statistics",
        description="Display card and set counts and the last successful sync.",
    )
    parser.set_defaults(func=run)


def run(args):
    """Run the stats command."""
    conn = get_connection(args.db_path)
    init_db(conn)

    marker = SyncMarkerRepository(conn).get(SYNC_KEY)

    print()
    print("=" * 50)
    print("CATALOG STATISTICS".center(50))
    print("=" * 50)
    print()
    print(f"Sets:              {SetRepository(conn).count():,}")
    print(f"Cards:             {CardRepository(conn).count():,}")
    print()

    if marker:
        print(f"Last sync:         {marker.synced_at}")
        print(f"Fingerprint:       {marker.fingerprint or '-'}")
    else:
        print("Last sync:         never")
    print()

    # Largest sets
    rows = conn.execute(
        """
        SELECT c.set_id, s.name, COUNT(*) AS cnt
        FROM cards c
        LEFT JOIN sets s ON c.set_id = s.id
        GROUP BY c.set_id
        ORDER BY cnt DESC
        LIMIT 10
        """
    ).fetchall()

    if rows:
        print("Largest Sets:")
        for row in rows:
            print(f"  {row[0]:<10} {(row[1] or '?')[:35]:<35} {row[2]:,}")
        print()

    print("=" * 50)
