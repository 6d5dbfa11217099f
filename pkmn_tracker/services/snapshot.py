"""Upstream snapshot source: the full card dataset as a single zip archive."""

import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional, Sequence

import requests

from pkmn_tracker.services.change_detector import make_fingerprint
from pkmn_tracker.services.errors import FetchError

log = logging.getLogger(__name__)

SNAPSHOT_URL = "https://github.com/PokemonTCG/pokemon-tcg-data/archive/refs/heads/master.zip"
USER_AGENT = "PokemonCardTracker/1.0"

# Seconds to wait before each retry; the number of entries is the retry count.
RETRY_DELAYS = (5, 10, 15)

# Per-attempt timeout. The archive is tens of megabytes.
TIMEOUT = 120

_TRANSIENT_EXCEPTIONS = (
    requests.exceptions.Timeout,
    requests.exceptions.ConnectionError,
    requests.exceptions.ChunkedEncodingError,
)


class _TransientStatus(Exception):
    """An HTTP status worth retrying (5xx, 429)."""

    def __init__(self, status_code: int):
        self.status_code = status_code
        super().__init__(f"HTTP {status_code}")


@dataclass
class Snapshot:
    """A downloaded snapshot with the validators it was served with."""
    content: bytes
    etag: str = ""
    last_modified: str = ""

    @property
    def fingerprint(self) -> str:
        return make_fingerprint(self.etag, self.last_modified)


class SnapshotSource:
    """HTTP access to the upstream snapshot with bounded retries."""

    def __init__(
        self,
        url: str = SNAPSHOT_URL,
        retry_delays: Sequence[float] = RETRY_DELAYS,
        timeout: float = TIMEOUT,
        session: Optional[requests.Session] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.url = url
        self.retry_delays = tuple(retry_delays)
        self.timeout = timeout
        self.sleep = sleep
        self.session = session or requests.Session()
        self.session.headers.update({"User-Agent": USER_AGENT})

    def _request_with_retry(self, method: str, **kwargs) -> requests.Response:
        """
        Make an HTTP request, retrying transient failures.

        Timeouts, connection resets, 5xx and 429 are retried after each delay in
        retry_delays. Other 4xx responses fail at once. Raises FetchError when
        the request cannot succeed.
        """
        attempts = len(self.retry_delays) + 1
        last_error: Optional[Exception] = None

        for attempt in range(attempts):
            try:
                response = self.session.request(method, self.url, timeout=self.timeout, **kwargs)
                if response.status_code >= 500 or response.status_code == 429:
                    raise _TransientStatus(response.status_code)
                response.raise_for_status()
                return response
            except (_TransientStatus,) + _TRANSIENT_EXCEPTIONS as e:
                last_error = e
            except requests.exceptions.RequestException as e:
                raise FetchError(self.url, attempt + 1, e) from e

            if attempt < len(self.retry_delays):
                wait = self.retry_delays[attempt]
                log.warning(
                    "%s %s attempt %d/%d failed (%s), retrying in %.0fs",
                    method, self.url, attempt + 1, attempts, last_error, wait,
                )
                self.sleep(wait)

        raise FetchError(self.url, attempts, last_error)

    def fetch(self) -> Snapshot:
        """Download the whole snapshot."""
        log.info("Downloading snapshot %s", self.url)
        t0 = time.time()
        response = self._request_with_retry("GET")
        snapshot = Snapshot(
            content=response.content,
            etag=response.headers.get("ETag", ""),
            last_modified=response.headers.get("Last-Modified", ""),
        )
        log.info(
            "Downloaded %.1f MB in %.1fs (ETag %s, Last-Modified %s)",
            len(snapshot.content) / (1024 * 1024),
            time.time() - t0,
            snapshot.etag or "-",
            snapshot.last_modified or "-",
        )
        return snapshot
