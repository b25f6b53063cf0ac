"""
Concurrent dependency fetcher.

Downloads dependency records on a fixed-size thread pool, verifying each
payload against its declared checksum. One record's failure never stops
the others; outcomes are returned in input order.
"""

from __future__ import annotations

import logging
import os
import tempfile
import threading
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from pathlib import Path

import httpx

from bindingtool.config import FetchConfig
from bindingtool.core.fingerprint import (
    CHUNK_SIZE,
    compute_file_digest,
    digests_match,
    new_hasher,
)
from bindingtool.core.models import DependencyRecord
from bindingtool.errors import (
    BindingToolError,
    CancelledError,
    ChecksumMismatchError,
    LocalIOError,
    NetworkError,
    NotFoundError,
    wrap_error,
)
from bindingtool.fetch.http import Deadline, create_client
from bindingtool.fetch.outcome import FetchOutcome

logger = logging.getLogger(__name__)

PARTIAL_SUFFIX = ".part"


class DependencyFetcher:
    """
    Fetches dependency artifacts with a bounded number of parallel downloads.

    When `cache_dir` is given, verified artifacts are kept there under
    `<digest>/<file name>` and reused on later runs if their checksum still
    matches. Records that share a file name never share a cache entry.
    Otherwise downloads go to temporary files that are removed once the
    checksum has been verified.
    """

    def __init__(
        self,
        config: FetchConfig | None = None,
        client: httpx.Client | None = None,
        *,
        cache_dir: Path | None = None,
    ):
        """
        Initialize the fetcher.

        Args:
            config: Fetch configuration; supplies the concurrency limit and
                the timeouts.
            client: Shared HTTP client. One is created from `config` (and
                closed by `close()`) when omitted.
            cache_dir: Optional directory to keep verified artifacts in.
        """
        self.config = config or FetchConfig()
        self._owns_client = client is None
        self.client = client if client is not None else create_client(self.config)
        self.cache_dir = Path(cache_dir) if cache_dir is not None else None
        self._cancelled = threading.Event()

    def close(self) -> None:
        """Close the HTTP client if this fetcher created it."""
        if self._owns_client:
            self.client.close()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def cancel(self) -> None:
        """
        Stop queued downloads and abort in-flight ones at the next chunk.

        A cancelled fetcher stays cancelled; create a new one for another batch.
        """
        self._cancelled.set()

    def fetch_all(self, records: list[DependencyRecord]) -> list[FetchOutcome]:
        """
        Fetch every record.

        Args:
            records: Dependency records to fetch.

        Returns:
            One outcome per record, in the same order as `records`.

        Raises:
            CancelledError: If the batch was cancelled; completed outcomes
                are discarded.
            LocalIOError: If the cache directory cannot be created.
        """
        if self.cancelled:
            raise CancelledError("fetcher was cancelled")
        if not records:
            return []

        if self.cache_dir is not None:
            try:
                self.cache_dir.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                raise LocalIOError(
                    f"cannot create dependency cache {self.cache_dir}: {e}"
                ) from e

        workers = min(self.config.max_simultaneous, len(records))
        logger.info("Fetching %d dependencies with %d workers", len(records), workers)

        outcomes: list[FetchOutcome | None] = [None] * len(records)
        executor = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="bt-fetch")
        try:
            futures: dict[Future[FetchOutcome], int] = {
                executor.submit(self.fetch_one, record): index
                for index, record in enumerate(records)
            }
            for future in as_completed(futures):
                outcomes[futures[future]] = future.result()
        except KeyboardInterrupt:
            logger.warning("Interrupted, abandoning downloads")
            self.cancel()
            raise
        finally:
            executor.shutdown(wait=True, cancel_futures=self.cancelled)

        if self.cancelled:
            raise CancelledError("dependency fetch was cancelled")

        return [outcome for outcome in outcomes if outcome is not None]

    def fetch_one(self, record: DependencyRecord) -> FetchOutcome:
        """
        Fetch and verify a single record.

        Never raises for expected failures; they become failure outcomes.
        """
        if self.cancelled:
            return FetchOutcome.failure(record, CancelledError("cancelled before start"))

        try:
            if record.is_local:
                return self._verify_local(record)

            dest = self.artifact_path(record)
            if dest is not None and dest.is_file():
                if digests_match(record.digest, compute_file_digest(dest, record.algorithm)):
                    logger.info("Using cached %s", dest)
                    return FetchOutcome.cached(record, dest)
                logger.info("Cached %s has a different checksum, downloading again", dest)

            return self._download(record, dest)

        except BindingToolError as e:
            logger.error("Download of %s failed: %s", record.uri, e.message)
            return FetchOutcome.failure(record, e)
        except (httpx.HTTPError, httpx.InvalidURL, ValueError, OSError) as e:
            error = wrap_error(e, f"download of {record.uri} failed", uri=record.uri)
            logger.error("%s", error.message)
            return FetchOutcome.failure(record, error)

    def artifact_path(self, record: DependencyRecord) -> Path | None:
        """Cache location for a record, or None without a cache directory."""
        if self.cache_dir is None:
            return None
        return self.cache_dir / record.digest / record.filename

    def _verify_local(self, record: DependencyRecord) -> FetchOutcome:
        path = record.local_path
        if not path.is_file():
            raise NotFoundError(f"local dependency not found: {path}")

        actual = compute_file_digest(path, record.algorithm)
        if not digests_match(record.digest, actual):
            raise _mismatch(record, actual)

        logger.debug("Verified local dependency %s", path)
        return FetchOutcome.success(record, path=path, size_bytes=path.stat().st_size)

    def _download(self, record: DependencyRecord, dest: Path | None) -> FetchOutcome:
        deadline = Deadline(self.config.request_timeout, url=record.uri)
        hasher = new_hasher(record.algorithm)
        size = 0

        fd, tmp_name = tempfile.mkstemp(
            prefix=".bt-", suffix=PARTIAL_SUFFIX, dir=self.cache_dir
        )
        tmp_path = Path(tmp_name)
        kept = False

        logger.info("Downloading %s from %s", record.label(), record.uri)
        try:
            with os.fdopen(fd, "wb") as fp, self.client.stream("GET", record.uri) as response:
                deadline.check()
                if response.is_error:
                    raise NetworkError(
                        f"download of {record.uri} failed: HTTP {response.status_code}",
                        context={"status": response.status_code},
                    )
                for chunk in response.iter_bytes(CHUNK_SIZE):
                    if self.cancelled:
                        raise CancelledError(f"download of {record.uri} cancelled")
                    deadline.check()
                    fp.write(chunk)
                    hasher.update(chunk)
                    size += len(chunk)

            actual = hasher.hexdigest()
            if not digests_match(record.digest, actual):
                raise _mismatch(record, actual)

            if dest is not None:
                dest.parent.mkdir(exist_ok=True)
                os.replace(tmp_path, dest)
                kept = True

            logger.debug("Verified %s (%d bytes)", record.uri, size)
            return FetchOutcome.success(record, path=dest, size_bytes=size)
        finally:
            if not kept:
                tmp_path.unlink(missing_ok=True)


def _mismatch(record: DependencyRecord, actual: str) -> ChecksumMismatchError:
    return ChecksumMismatchError(
        f"checksum mismatch for {record.uri}",
        hint="The artifact changed upstream or the manifest checksum is wrong.",
        context={"expected": record.digest, "actual": actual},
    )
