from __future__ import annotations

import asyncio
import enum
import logging
import threading
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from pathlib import Path

from s3manifest.core.errors import FetchFailed, ManifestError, UploadFailed
from s3manifest.core.interfaces import IManifestSink, IObjectListing
from s3manifest.core.mapping import map_object
from s3manifest.core.models import ListingPage, ManifestRow, RowBatch
from s3manifest.core.retry import RetryPolicy
from s3manifest.core.uri import parse_storage_uri
from s3manifest.progress import ProgressCounters

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]


# ---------------------------------------------------------------------------
# Domain configuration
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class BuildManifestConfig:
    """
    Domain-level configuration for the build-manifest use case.

    Free of infrastructure concerns (no endpoints, credentials or output paths).
    """

    source_uri: str
    delimiter: str = "/"
    row_group_size: int = 10_000
    page_size: int = 1_000


class PipelineState(enum.Enum):
    START = "start"
    LISTING = "listing"
    FLUSHING = "flushing"
    FINALIZING = "finalizing"
    DONE = "done"
    FAILED = "failed"


# ---------------------------------------------------------------------------
# Stats
# ---------------------------------------------------------------------------


@dataclass(kw_only=True)
class BuildStats:
    """Totals reported once the pipeline reaches DONE.

    `pages` counts pages consumed into the manifest; a prefetched page
    discarded on interrupt is not included.
    """

    state: PipelineState
    objects: int = 0
    bytes: int = 0
    pages: int = 0
    row_groups: int = 0
    skipped: int = 0
    interrupted: bool = False
    elapsed_s: float = 0.0
    output: Path | str | None = None


# ---------------------------------------------------------------------------
# Page fetcher
# ---------------------------------------------------------------------------


class PageFetcher:
    """One listing call per cursor, retried according to a `RetryPolicy`."""

    def __init__(
        self,
        listing: IObjectListing,
        *,
        retry_policy: RetryPolicy,
        counters: ProgressCounters,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._listing = listing
        self._policy = retry_policy
        self._counters = counters
        self._sleep = sleep

    async def fetch(self, bucket: str, prefix: str, cursor: str | None, page_size: int) -> ListingPage:
        attempt = 0
        while True:
            attempt += 1
            try:
                page = await self._listing.list_page(
                    bucket=bucket,
                    prefix=prefix,
                    cursor=cursor,
                    page_size=page_size,
                )
            except asyncio.CancelledError:
                raise
            except Exception as e:
                if not self._policy.is_retryable(e):
                    raise FetchFailed(
                        f"Listing s3://{bucket}/{prefix} failed: {e}",
                        last_error=e,
                        attempts=attempt,
                    ) from e
                if attempt >= self._policy.max_attempts:
                    raise FetchFailed(
                        f"Listing s3://{bucket}/{prefix} failed after {attempt} attempts: {e}",
                        last_error=e,
                        attempts=attempt,
                    ) from e
                delay = self._policy.delay_for(attempt)
                logger.warning(
                    "Error listing objects (attempt %d/%d), retrying in %.2fs: %s",
                    attempt,
                    self._policy.max_attempts,
                    delay,
                    e,
                )
                await self._sleep(delay)
                continue

            self._counters.add_page()
            return page


# ---------------------------------------------------------------------------
# Batch accumulator
# ---------------------------------------------------------------------------


class BatchAccumulator:
    """Buffer rows up to `row_group_size` and hand full batches to the sink."""

    def __init__(
        self,
        sink: IManifestSink,
        row_group_size: int,
        *,
        counters: ProgressCounters | None = None,
        on_flush: Callable[[bool], None] | None = None,
    ) -> None:
        if row_group_size < 1:
            raise ValueError("row_group_size must be >= 1")
        self.sink = sink
        self.row_group_size = row_group_size
        self._counters = counters
        self._on_flush = on_flush
        self._batch = RowBatch.empty()

    @property
    def pending(self) -> int:
        return len(self._batch)

    def add(self, row: ManifestRow) -> None:
        self._batch.append(row)
        if len(self._batch) >= self.row_group_size:
            self.flush()

    def flush(self) -> int:
        """Write the current batch as one row group; returns rows flushed (0 if empty)."""
        n = len(self._batch)
        if n == 0:
            return 0
        # Detach before writing so the handed-off batch is never touched again.
        batch, self._batch = self._batch, RowBatch.empty()
        if self._on_flush:
            self._on_flush(True)
        try:
            self.sink.write_batch(batch)
        finally:
            if self._on_flush:
                self._on_flush(False)
        if self._counters is not None:
            self._counters.add_row_group()
        return n


# ---------------------------------------------------------------------------
# Domain service – ManifestService
# ---------------------------------------------------------------------------


class ManifestService:
    """
    Pipeline driver: list → map → accumulate → write, then finalize.

    Depends only on abstract listing & sink interfaces. The next page is
    prefetched while the current one is mapped and written, never more
    than one page ahead.
    """

    def __init__(
        self,
        listing: IObjectListing,
        sink: IManifestSink,
        *,
        retry_policy: RetryPolicy | None = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._listing = listing
        self._sink = sink
        self._retry_policy = retry_policy or RetryPolicy()
        self._sleep = sleep
        self.state = PipelineState.START

    def _set_flushing(self, active: bool) -> None:
        self.state = PipelineState.FLUSHING if active else PipelineState.LISTING

    async def run(
        self,
        config: BuildManifestConfig,
        *,
        counters: ProgressCounters | None = None,
        stop: threading.Event | None = None,
    ) -> BuildStats:
        """
        Execute the pipeline until the listing is exhausted or `stop` is set.

        Parameters
        ----------
        config : BuildManifestConfig
            Source URI, delimiter, row-group and page sizes.
        counters : ProgressCounters | None
            Shared with a progress reporter; a private instance is used if omitted.
        stop : threading.Event | None
            Checked at page boundaries. Once set, no further pages are consumed
            and the rows already accumulated are finalized into a valid file.
        """
        counters = counters or ProgressCounters()
        stop = stop or threading.Event()
        stats = BuildStats(state=PipelineState.START)
        t0 = time.monotonic()
        self.state = PipelineState.START
        sink_opened = False

        try:
            # 1) START: validate the source and open the destination
            bucket, prefix = parse_storage_uri(config.source_uri)
            accumulator = BatchAccumulator(
                self._sink,
                config.row_group_size,
                counters=counters,
                on_flush=self._set_flushing,
            )
            await asyncio.to_thread(self._sink.open)
            sink_opened = True

            # 2) LISTING ⇄ FLUSHING
            self.state = PipelineState.LISTING
            fetcher = PageFetcher(
                self._listing,
                retry_policy=self._retry_policy,
                counters=counters,
                sleep=self._sleep,
            )
            stats.interrupted = await self._list_all(
                fetcher, accumulator, bucket, prefix, config, counters, stats, stop
            )

            # 3) FINALIZING
            self.state = PipelineState.FINALIZING
            await asyncio.to_thread(accumulator.flush)
            stats.output = await asyncio.to_thread(self._sink.close)
        except BaseException as e:
            failed_in = self.state
            self.state = PipelineState.FAILED
            stats.state = PipelineState.FAILED
            logger.debug("pipeline failed during %s: %s: %s", failed_in.value, type(e).__name__, e)
            # UploadFailed keeps its staged file for manual recovery
            if sink_opened and not isinstance(e, UploadFailed):
                await asyncio.to_thread(self._sink.abort)
            raise

        # 4) DONE
        self.state = PipelineState.DONE
        snap = counters.snapshot()
        stats.state = PipelineState.DONE
        stats.objects = snap.objects
        stats.bytes = snap.bytes
        stats.row_groups = snap.row_groups
        stats.elapsed_s = time.monotonic() - t0
        return stats

    async def _list_all(
        self,
        fetcher: PageFetcher,
        accumulator: BatchAccumulator,
        bucket: str,
        prefix: str,
        config: BuildManifestConfig,
        counters: ProgressCounters,
        stats: BuildStats,
        stop: threading.Event,
    ) -> bool:
        """Drive pagination with one page of look-ahead; returns True if interrupted."""
        pending: asyncio.Task[ListingPage] | None = asyncio.create_task(
            fetcher.fetch(bucket, prefix, None, config.page_size)
        )
        try:
            while pending is not None:
                page = await pending
                pending = None
                if page.is_truncated and page.next_cursor and not stop.is_set():
                    pending = asyncio.create_task(
                        fetcher.fetch(bucket, prefix, page.next_cursor, config.page_size)
                    )
                elif page.is_truncated and not page.next_cursor:
                    raise FetchFailed(f"Listing s3://{bucket}/{prefix} is truncated but has no continuation token")

                await asyncio.to_thread(
                    self._consume_page, page, accumulator, bucket, prefix, config.delimiter, counters, stats
                )

                if stop.is_set():
                    if pending is not None or page.is_truncated:
                        logger.warning("Interrupted: finalizing with %d objects listed", counters.snapshot().objects)
                        return True
                    return False
            return False
        finally:
            if pending is not None:
                pending.cancel()
                try:
                    await pending
                except (asyncio.CancelledError, ManifestError):
                    pass

    @staticmethod
    def _consume_page(
        page: ListingPage,
        accumulator: BatchAccumulator,
        bucket: str,
        prefix: str,
        delimiter: str,
        counters: ProgressCounters,
        stats: BuildStats,
    ) -> None:
        objects = 0
        nbytes = 0
        for obj in page.objects:
            # out-of-prefix entries are dropped before validation
            if prefix and isinstance(obj.key, str) and not obj.key.startswith(prefix):
                stats.skipped += 1
                logger.debug("skipping %r: outside prefix %r", obj.key, prefix)
                continue
            row = map_object(obj, bucket, delimiter)
            accumulator.add(row)
            objects += 1
            nbytes += row.size
        counters.add_objects(objects, nbytes)
        stats.pages += 1
