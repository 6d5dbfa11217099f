"""Decide whether the upstream snapshot changed since the last successful sync.

The fingerprint compared is the one the snapshot was actually downloaded with,
so the value stored after a sync and the value checked on the next run always
come from the same kind of request.
"""

import json
import logging
from dataclasses import dataclass
from typing import Optional

log = logging.getLogger(__name__)

SYNC_KEY = "github_cards_and_sets_sync"


def make_fingerprint(etag: str, last_modified: str) -> str:
    """
    Combine the upstream cache validators into one opaque string.

    Returns "" when the upstream sent neither validator; an empty fingerprint
    never matches a stored one.
    """
    etag = (etag or "").strip()
    last_modified = (last_modified or "").strip()
    if not etag and not last_modified:
        return ""
    return json.dumps({"etag": etag, "lastModified": last_modified}, sort_keys=True)


@dataclass
class ChangeCheck:
    """Outcome of a change check."""
    changed: bool
    fingerprint: str
    previous: Optional[str] = None


class ChangeDetector:
    """Compare a snapshot fingerprint against the stored sync marker."""

    def __init__(self, marker_repo, key: str = SYNC_KEY):
        self.marker_repo = marker_repo
        self.key = key

    def check_for_changes(self, fingerprint: str, force: bool = False) -> ChangeCheck:
        """Compare the downloaded snapshot's fingerprint with the last sync. Read-only."""
        marker = self.marker_repo.get(self.key)
        previous = marker.fingerprint if marker else None

        if force:
            log.info("Forced sync, skipping fingerprint comparison")
            return ChangeCheck(True, fingerprint, previous)

        if marker is None:
            log.info("No previous sync record found, processing all data")
            return ChangeCheck(True, fingerprint, previous)

        if not fingerprint:
            log.warning("Upstream sent no ETag or Last-Modified, processing all data")
            return ChangeCheck(True, fingerprint, previous)

        if fingerprint != previous:
            log.info("Upstream changed since %s: %s -> %s", marker.synced_at, previous, fingerprint)
            return ChangeCheck(True, fingerprint, previous)

        log.info("No changes since last sync at %s", marker.synced_at)
        return ChangeCheck(False, fingerprint, previous)
