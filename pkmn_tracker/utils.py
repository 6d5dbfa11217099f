"""Shared utilities for the Pokemon card tracker."""

import json
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional


def get_pkmn_home() -> Path:
    """Return the tracker home directory (PKMN_HOME env or ~/.pkmn)."""
    if "PKMN_HOME" in os.environ:
        return Path(os.environ["PKMN_HOME"])
    return Path.home() / ".pkmn"


def now_iso() -> str:
    """Return current time as ISO 8601 string."""
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def parse_json_object(value: Optional[str]) -> dict:
    """Parse a JSON object string, returning empty dict for None/empty/invalid."""
    if not value:
        return {}
    try:
        parsed = json.loads(value)
    except (json.JSONDecodeError, TypeError):
        return {}
    return parsed if isinstance(parsed, dict) else {}


def to_json(value: Any) -> str:
    """Serialize a value to a compact, key-sorted JSON string."""
    return json.dumps(value, sort_keys=True, separators=(",", ":"))


def env_int(name: str, default: int) -> int:
    """Read an integer from the environment, falling back to default."""
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None
