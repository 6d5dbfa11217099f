"""Error types for the catalog sync pipeline.

Fatal errors (FetchError, ArchiveError, ErrorBudgetExceeded) abort a run and
propagate to the CLI. Recovered errors (EntryParseError, RecordPersistError)
are logged where they happen and only show up in the run statistics.
"""


class SyncError(Exception):
    """Base class for catalog sync failures."""


class FetchError(SyncError):
    """The upstream snapshot could not be retrieved after all retries."""

    def __init__(self, url: str, attempts: int, cause: Exception):
        self.url = url
        self.attempts = attempts
        self.cause = cause
        super().__init__(f"failed to fetch {url} after {attempts} attempt(s): {cause}")


class ArchiveError(SyncError):
    """The snapshot payload is not a readable archive."""


class EntryParseError(ValueError):
    """A single archive entry could not be decoded or has the wrong shape."""

    def __init__(self, entry_name: str, reason: str):
        self.entry_name = entry_name
        self.reason = reason
        super().__init__(f"{entry_name}: {reason}")


class RecordPersistError(SyncError):
    """A single set or card could not be written."""

    def __init__(self, kind: str, record_id: str, cause: Exception):
        self.kind = kind
        self.record_id = record_id
        self.cause = cause
        super().__init__(f"{kind} {record_id}: {cause}")


class ErrorBudgetExceeded(SyncError):
    """Too many recovered failures; the run is unsafe to mark as synced."""

    def __init__(self, stats, max_errors: int):
        self.stats = stats
        self.max_errors = max_errors
        super().__init__(
            f"error budget exceeded: {stats.errors} error(s), budget {max_errors}"
        )
