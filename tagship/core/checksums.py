"""Checksum Service: fetches published artifacts and computes SHA-256 digests.

Fetch failures and zero-byte bodies are treated as transient (upstream
uploads take a while to propagate) and retried with exponential backoff.
Once retries run out the last error is escalated as ``ResolutionError``.

Digests are recorded per service instance.  A pipeline run owns exactly one
instance, so nothing is cached across runs, and an artifact that hashes
differently when fetched again within the same run is a hard
``DigestMismatchError``.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable, Sequence
from concurrent.futures import ThreadPoolExecutor

from tagship.core.errors import (
    RETRYABLE_FETCH_ERRORS,
    DigestMismatchError,
    EmptyArtifactError,
    ResolutionError,
)
from tagship.core.fetch import Fetcher
from tagship.core.hasher import sha256_hex
from tagship.models.artifacts import Artifact

logger = logging.getLogger(__name__)


class ChecksumService:
    """Computes artifact digests with bounded retries.

    Parameters
    ----------
    fetcher:
        The ``Fetcher`` collaborator.
    retries:
        Retries after the first attempt; ``retries=3`` means at most four
        fetches per artifact.
    backoff_seconds:
        Delay before the first retry; doubled for each further retry.
    max_workers:
        Bound on concurrent fetches in ``checksum_all``.
    sleep:
        Injected for tests.
    """

    def __init__(
        self,
        fetcher: Fetcher,
        *,
        retries: int = 3,
        backoff_seconds: float = 2.0,
        max_workers: int = 8,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._fetcher = fetcher
        self.retries = max(0, retries)
        self.backoff_seconds = backoff_seconds
        self.max_workers = max(1, max_workers)
        self._sleep = sleep
        self._digests: dict[tuple[str, str], str] = {}
        self._lock = threading.Lock()

    @property
    def recorded(self) -> dict[tuple[str, str], str]:
        """Snapshot of digests computed so far, keyed by (name, url)."""
        with self._lock:
            return dict(self._digests)

    def checksum(self, artifact: Artifact) -> Artifact:
        """Fetch *artifact* and return a copy carrying its SHA-256 digest."""
        data = self._fetch_with_retry(artifact)
        digest = sha256_hex(data)
        key = (artifact.name, artifact.url)
        with self._lock:
            previous = self._digests.get(key)
            if previous is not None and previous != digest:
                raise DigestMismatchError(
                    f"Artifact {artifact.name!r} at {artifact.url} changed within the run: "
                    f"first fetch {previous}, refetch {digest}"
                )
            self._digests[key] = digest
        logger.info("Digest %s = %s (%d bytes)", artifact.name, digest, len(data))
        return artifact.with_digest(digest)

    def checksum_all(self, artifacts: Sequence[Artifact]) -> list[Artifact]:
        """Checksum *artifacts* concurrently, returning them in input order.

        All fetches run to completion; afterwards the first failure in
        input order is raised.
        """
        if not artifacts:
            return []
        workers = min(self.max_workers, len(artifacts))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="checksum") as executor:
            futures = [executor.submit(self.checksum, artifact) for artifact in artifacts]
            outcomes: list[Artifact | Exception] = []
            for future in futures:
                try:
                    outcomes.append(future.result())
                except Exception as exc:  # noqa: BLE001
                    outcomes.append(exc)

        for outcome in outcomes:
            if isinstance(outcome, Exception):
                raise outcome
        return [outcome for outcome in outcomes if isinstance(outcome, Artifact)]

    def _fetch_with_retry(self, artifact: Artifact) -> bytes:
        attempts = self.retries + 1
        attempt = 1
        while True:
            try:
                data = self._fetcher.get(artifact.url)
                if not data:
                    raise EmptyArtifactError(artifact.url)
                return data
            except RETRYABLE_FETCH_ERRORS as exc:
                if attempt >= attempts:
                    logger.error("Giving up on %s after %d attempt(s): %s", artifact.name, attempts, exc)
                    raise ResolutionError(artifact.name, exc, attempts=attempts) from exc
                delay = self.backoff_seconds * 2 ** (attempt - 1)
                logger.warning(
                    "Retrying %s in %.1fs (attempt %d/%d): %s",
                    artifact.name,
                    delay,
                    attempt + 1,
                    attempts,
                    exc,
                )
                self._sleep(delay)
                attempt += 1
