"""Extract raw card and set entries from the snapshot zip.

The snapshot is a zip of the upstream data repository:

    <root>/cards/<lang>/<set name>.json   JSON array of cards in one set
    <root>/sets/<lang>.json               JSON array of every set

The name of <root> depends on the branch the archive was cut from and is
ignored. Entries are decoded one at a time so that at most one file's text is
held alongside the accumulated records.
"""

import io
import json
import logging
import zipfile
import zlib
from dataclasses import dataclass, field
from typing import List, Optional

from pkmn_tracker.services.errors import ArchiveError, EntryParseError
from pkmn_tracker.services.memory import log_memory

log = logging.getLogger(__name__)

# Card files between memory reports
MEMORY_LOG_EVERY = 10


@dataclass
class ExtractResult:
    """Raw entries pulled out of a snapshot."""
    cards: List[dict] = field(default_factory=list)
    sets: List[dict] = field(default_factory=list)
    card_files: int = 0
    set_files: int = 0
    skipped_entries: List[str] = field(default_factory=list)


def classify_entry(name: str, language: str = "en") -> Optional[str]:
    """
    Classify an archive entry path.

    Returns "cards" for a per-set card file, "sets" for the set catalog,
    or None for anything else.
    """
    parts = name.split("/")
    if len(parts) < 3 or not parts[-1].endswith(".json"):
        return None
    # Drop the archive root directory
    rel = parts[1:]
    if len(rel) == 3 and rel[0] == "cards" and rel[1] == language:
        return "cards"
    if len(rel) == 2 and rel[0] == "sets" and rel[1] == f"{language}.json":
        return "sets"
    return None


def _entry_label(name: str) -> str:
    """Set name encoded in a card file path: '<root>/cards/en/base1.json' -> 'base1'."""
    return name.rsplit("/", 1)[-1][: -len(".json")]


def _read_array(zf: zipfile.ZipFile, info: zipfile.ZipInfo) -> list:
    """Decode one entry as a JSON array of objects."""
    try:
        with zf.open(info) as fh:
            text = fh.read().decode("utf-8")
        data = json.loads(text)
    except (zipfile.BadZipFile, zlib.error, UnicodeDecodeError, json.JSONDecodeError, OSError) as e:
        raise EntryParseError(info.filename, str(e)) from e

    if not isinstance(data, list):
        raise EntryParseError(info.filename, f"expected JSON array, got {type(data).__name__}")

    objects = [item for item in data if isinstance(item, dict)]
    if len(objects) != len(data):
        log.warning(
            "  %s: ignoring %d non-object item(s)", info.filename, len(data) - len(objects)
        )
    return objects


def extract_archive(content: bytes, language: str = "en") -> ExtractResult:
    """
    Walk the snapshot zip and collect raw cards and raw sets.

    A malformed entry is logged and skipped. Raises ArchiveError if the
    payload is not a zip at all.
    """
    try:
        zf = zipfile.ZipFile(io.BytesIO(content))
    except zipfile.BadZipFile as e:
        raise ArchiveError(f"snapshot is not a valid zip archive: {e}") from e

    log_memory("Before ZIP processing")
    result = ExtractResult()

    with zf:
        card_entries = []
        set_entries = []
        for info in zf.infolist():
            if info.is_dir():
                continue
            kind = classify_entry(info.filename, language)
            if kind == "cards":
                card_entries.append(info)
            elif kind == "sets":
                set_entries.append(info)

        log.info(
            "Archive has %d card file(s) and %d set catalog(s)",
            len(card_entries), len(set_entries),
        )

        for info in sorted(card_entries, key=lambda i: i.filename):
            label = _entry_label(info.filename)
            try:
                cards = _read_array(zf, info)
            except EntryParseError as e:
                log.warning("  Skipping card file %s: %s", label, e.reason)
                result.skipped_entries.append(info.filename)
                continue
            result.cards.extend(cards)
            result.card_files += 1
            log.debug("  %s: %d card(s)", label, len(cards))
            if result.card_files % MEMORY_LOG_EVERY == 0:
                log_memory(f"After {result.card_files} card files")

        for info in set_entries:
            try:
                sets = _read_array(zf, info)
            except EntryParseError as e:
                log.warning("  Skipping set catalog %s: %s", info.filename, e.reason)
                result.skipped_entries.append(info.filename)
                continue
            result.sets.extend(sets)
            result.set_files += 1

    log_memory("After ZIP processing")
    log.info(
        "Extracted %d card(s) from %d file(s), %d set(s), %d skipped entries",
        len(result.cards), result.card_files, len(result.sets), len(result.skipped_entries),
    )
    return result
