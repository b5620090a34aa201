"""Progress counters and a live rich display that observes them.

The pipeline only ever increments `ProgressCounters`; `ProgressReporter`
samples them on its own asyncio task, so a slow terminal never stalls
listing or writing.
"""

from __future__ import annotations

import asyncio
import logging
import threading
import time
from dataclasses import dataclass

from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn, TimeElapsedColumn

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CounterSnapshot:
    objects: int
    bytes: int
    pages: int
    row_groups: int
    elapsed_s: float

    @property
    def objects_per_s(self) -> float:
        return self.objects / self.elapsed_s if self.elapsed_s > 0 else 0.0

    @property
    def bytes_per_s(self) -> float:
        return self.bytes / self.elapsed_s if self.elapsed_s > 0 else 0.0


class ProgressCounters:
    """Running totals for one pipeline run; increments are atomic."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._t0 = time.monotonic()
        self._objects = 0
        self._bytes = 0
        self._pages = 0
        self._row_groups = 0

    def add_page(self) -> None:
        with self._lock:
            self._pages += 1

    def add_objects(self, count: int, nbytes: int) -> None:
        with self._lock:
            self._objects += count
            self._bytes += nbytes

    def add_row_group(self) -> None:
        with self._lock:
            self._row_groups += 1

    def snapshot(self) -> CounterSnapshot:
        with self._lock:
            return CounterSnapshot(
                objects=self._objects,
                bytes=self._bytes,
                pages=self._pages,
                row_groups=self._row_groups,
                elapsed_s=time.monotonic() - self._t0,
            )


def human_bytes(n: float) -> str:
    """Format a byte count with binary units (e.g. `1.5 MiB`)."""
    for unit in ("B", "KiB", "MiB", "GiB", "TiB"):
        if abs(n) < 1024 or unit == "TiB":
            return f"{n:.0f} {unit}" if unit == "B" else f"{n:.1f} {unit}"
        n /= 1024
    return f"{n:.1f} PiB"


class ProgressReporter:
    """Render objects/s, bytes/s and elapsed time while the pipeline runs.

    Usage::

        async with ProgressReporter(counters):
            await service.run(...)

    The reporter is best-effort: without an interactive terminal, or after
    any rendering error, it turns into a no-op.
    """

    def __init__(
        self,
        counters: ProgressCounters,
        *,
        console: Console | None = None,
        interval_s: float = 0.5,
        enabled: bool = True,
    ) -> None:
        self.counters = counters
        self.console = console or Console(stderr=True)
        self.interval_s = interval_s
        self.enabled = enabled and self.console.is_terminal
        self._progress: Progress | None = None
        self._task_id = None
        self._ticker: asyncio.Task[None] | None = None

    async def __aenter__(self) -> ProgressReporter:
        if self.enabled:
            try:
                self._progress = Progress(
                    SpinnerColumn(),
                    TextColumn("[bold]listing[/]"),
                    TimeElapsedColumn(),
                    TextColumn("{task.fields[objects]:,} objects"),
                    TextColumn("•"),
                    TextColumn("{task.fields[rate]}"),
                    TextColumn("•"),
                    TextColumn("{task.fields[pages]:,} pages"),
                    console=self.console,
                    transient=False,
                    expand=True,
                )
                self._progress.start()
                self._task_id = self._progress.add_task("objects", total=None, objects=0, rate="-", pages=0)
            except Exception as e:
                self._disable(e)
        if self.enabled:
            self._ticker = asyncio.create_task(self._run())
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        if self._ticker is not None:
            self._ticker.cancel()
            try:
                await self._ticker
            except asyncio.CancelledError:
                pass
            self._ticker = None
        if self.enabled:
            self.render()
        if self._progress is not None:
            try:
                self._progress.stop()
            except Exception as e:
                self._disable(e)
            self._progress = None

    async def _run(self) -> None:
        while self.enabled:
            await asyncio.sleep(self.interval_s)
            self.render()

    def render(self) -> None:
        """Draw the latest snapshot; earlier unrendered ticks are simply dropped."""
        if not self.enabled or self._progress is None:
            return
        snap = self.counters.snapshot()
        try:
            self._progress.update(
                self._task_id,
                objects=snap.objects,
                rate=f"{snap.objects_per_s:,.0f} obj/s • {human_bytes(snap.bytes_per_s)}/s",
                pages=snap.pages,
            )
        except Exception as e:
            self._disable(e)

    def _disable(self, err: BaseException) -> None:
        logger.debug("progress display disabled: %s: %s", type(err).__name__, err)
        self.enabled = False

    def summary(self) -> str:
        snap = self.counters.snapshot()
        return (
            f"{snap.objects:,} objects • {human_bytes(snap.bytes)} • "
            f"{snap.elapsed_s:.2f}s ({snap.objects_per_s:,.2f} objects/sec)"
        )
