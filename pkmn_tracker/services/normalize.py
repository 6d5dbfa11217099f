"""Turn raw upstream entries into storage-ready records.

Everything here is total: malformed fields become None rather than raising.
Only entries without a usable id are dropped, since they cannot be keyed.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Iterable, List, Optional

from pkmn_tracker.db.models import CardRecord, SetRecord
from pkmn_tracker.utils import now_iso, to_json

log = logging.getLogger(__name__)

_DIGITS_RE = re.compile(r"[0-9]+")


@dataclass
class NormalizeResult:
    cards: List[CardRecord] = field(default_factory=list)
    sets: List[SetRecord] = field(default_factory=list)
    dropped: int = 0


def card_number_sort_key(number: Any) -> Optional[int]:
    """Integer value of a card number made only of ASCII digits, else None."""
    if not isinstance(number, str) or not _DIGITS_RE.fullmatch(number):
        return None
    return int(number)


def derive_set_id(raw: dict) -> Optional[str]:
    """
    Set id for a raw card.

    Uses the explicit set reference when the entry has one, otherwise the
    part of the card id before its first '-' ("base1-4" -> "base1").
    """
    explicit = raw.get("set")
    if isinstance(explicit, dict) and _text(explicit.get("id")):
        return explicit["id"]
    if _text(raw.get("setId")):
        return raw["setId"]

    card_id = raw.get("id")
    if not _text(card_id):
        return None
    return card_id.split("-", 1)[0]


def _text(value: Any) -> Optional[str]:
    """Non-empty string or None."""
    if isinstance(value, str) and value.strip():
        return value
    return None


def _int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        return card_number_sort_key(value.strip())
    return None


def _image(images: Any, *sizes: str) -> Optional[str]:
    if not isinstance(images, dict):
        return None
    for size in sizes:
        url = _text(images.get(size))
        if url:
            return url
    return None


def normalize_card(raw: dict, synced_at: Optional[str] = None) -> Optional[CardRecord]:
    """Build a CardRecord from a raw card, or None if it has no id."""
    card_id = _text(raw.get("id"))
    if card_id is None:
        return None

    number = raw.get("number")
    number = str(number) if isinstance(number, (str, int)) and not isinstance(number, bool) else None

    return CardRecord(
        id=card_id,
        name=_text(raw.get("name")) or card_id,
        set_id=derive_set_id(raw),
        card_number=number,
        card_number_sort_key=card_number_sort_key(number),
        image_url=_image(raw.get("images"), "small", "large"),
        raw_payload=to_json(raw),
        synced_at=synced_at or now_iso(),
    )


def normalize_set(raw: dict) -> Optional[SetRecord]:
    """Build a SetRecord from a raw set, or None if it has no id."""
    set_id = _text(raw.get("id"))
    if set_id is None:
        return None

    legalities = raw.get("legalities")
    images = raw.get("images")

    return SetRecord(
        id=set_id,
        name=_text(raw.get("name")) or set_id,
        series=_text(raw.get("series")),
        printed_total=_int(raw.get("printedTotal")),
        total=_int(raw.get("total")),
        ptcgo_code=_text(raw.get("ptcgoCode")),
        release_date=_text(raw.get("releaseDate")),
        updated_at=_text(raw.get("updatedAt")),
        symbol_url=_image(images, "symbol"),
        logo_url=_image(images, "logo"),
        legalities_payload=to_json(legalities if isinstance(legalities, dict) else {}),
    )


def normalize(
    raw_cards: Iterable[dict],
    raw_sets: Iterable[dict],
    synced_at: Optional[str] = None,
) -> NormalizeResult:
    """Normalize all raw cards and sets. Entries without an id are dropped."""
    synced_at = synced_at or now_iso()
    result = NormalizeResult()

    for raw in raw_sets:
        record = normalize_set(raw)
        if record is None:
            log.warning("Dropping set without id: %.80s", to_json(raw))
            result.dropped += 1
            continue
        result.sets.append(record)

    for raw in raw_cards:
        record = normalize_card(raw, synced_at)
        if record is None:
            log.warning("Dropping card without id: %.80s", to_json(raw))
            result.dropped += 1
            continue
        result.cards.append(record)

    return result
