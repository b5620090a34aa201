from __future__ import annotations

import threading
from datetime import datetime, timezone
from pathlib import Path

import pytest

from s3manifest.core.errors import TransientFetchError
from s3manifest.core.models import ListingPage, ObjectDescriptor, RowBatch

T0 = datetime(2024, 5, 1, 10, 20, 30, 123000, tzinfo=timezone.utc)


def make_pages(bucket_prefix: str, sizes: list[int]) -> list[ListingPage]:
    """Build a chained listing: `sizes[i]` objects on page i, cursors c1, c2, ..."""
    pages: list[ListingPage] = []
    n = 0
    for i, count in enumerate(sizes):
        objects = []
        for _ in range(count):
            objects.append(ObjectDescriptor(key=f"{bucket_prefix}obj-{n:03d}.bin", size=100 + n, last_modified=T0))
            n += 1
        last = i == len(sizes) - 1
        pages.append(ListingPage(objects=objects, next_cursor=None if last else f"c{i + 1}", is_truncated=not last))
    return pages


class FakeListing:
    """In-memory listing; `failures[cursor]` is a list of exceptions raised before success."""

    def __init__(self, pages: list[ListingPage], failures: dict[str | None, list[BaseException]] | None = None):
        self.by_cursor: dict[str | None, ListingPage] = {}
        cursor: str | None = None
        for page in pages:
            self.by_cursor[cursor] = page
            cursor = page.next_cursor
        self.failures = {k: list(v) for k, v in (failures or {}).items()}
        self.calls: list[tuple[str, str, str | None, int]] = []

    async def list_page(self, *, bucket: str, prefix: str, cursor: str | None, page_size: int) -> ListingPage:
        self.calls.append((bucket, prefix, cursor, page_size))
        pending = self.failures.get(cursor)
        if pending:
            raise pending.pop(0)
        return self.by_cursor[cursor]


class RecordingSink:
    """IManifestSink stub that records every batch it receives."""

    def __init__(self, on_write=None) -> None:
        self.batches: list[RowBatch] = []
        self.opened = False
        self.closed = False
        self.aborted = False
        self.on_write = on_write

    def open(self) -> None:
        self.opened = True

    def write_batch(self, batch: RowBatch) -> None:
        self.batches.append(batch)
        if self.on_write:
            self.on_write(batch)

    def close(self) -> str:
        self.closed = True
        return "memory://manifest"

    def abort(self) -> None:
        self.aborted = True

    @property
    def keys(self) -> list[str]:
        return [k for b in self.batches for k in b.key]


class FakeUploader:
    def __init__(self, *, bucket_error: Exception | None = None, upload_error: Exception | None = None):
        self.bucket_error = bucket_error
        self.upload_error = upload_error
        self.uploads: list[tuple[Path, str, str, bytes]] = []

    def check_bucket(self, bucket: str) -> None:
        if self.bucket_error:
            raise self.bucket_error

    def upload_file(self, path: Path, bucket: str, key: str) -> None:
        if self.upload_error:
            raise self.upload_error
        self.uploads.append((path, bucket, key, Path(path).read_bytes()))


@pytest.fixture
def no_sleep():
    delays: list[float] = []

    async def _sleep(delay: float) -> None:
        delays.append(delay)

    _sleep.delays = delays  # type: ignore[attr-defined]
    return _sleep


@pytest.fixture
def throttled():
    return lambda: TransientFetchError("SlowDown: please reduce your request rate")


@pytest.fixture
def stop_event() -> threading.Event:
    return threading.Event()
