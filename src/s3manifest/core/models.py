"""Core data models and the columnar row buffer.

This module defines:
- `ObjectDescriptor`: one object as returned by a listing page.
- `ListingPage`: one page of a paginated listing plus its continuation cursor.
- `ManifestRow`: the typed manifest row derived from a descriptor.
- `RowBatch`: append-only columnar buffer that becomes one Parquet row group.

Design notes
------------
- The Arrow schema is fixed; column order and types are a compatibility contract.
- Rows keep listing order; nothing is sorted before write.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

import pyarrow as pa

# === Manifest schema (Arrow) ===

MANIFEST_FIELDS: list[tuple[str, pa.DataType]] = [
    ("Bucket", pa.string()),
    ("Key", pa.string()),
    ("FileName", pa.string()),
    ("Size", pa.int64()),
    ("LastModified", pa.string()),
]

MANIFEST_SCHEMA = pa.schema([pa.field(n, t, nullable=False) for n, t in MANIFEST_FIELDS])


# === Listing records ===


@dataclass(slots=True, frozen=True)
class ObjectDescriptor:
    """Object metadata as listed by the storage service."""

    key: str
    size: int
    last_modified: datetime | str | None


@dataclass(slots=True, frozen=True)
class ListingPage:
    """A single page of listed objects."""

    objects: list[ObjectDescriptor] = field(default_factory=list)
    next_cursor: str | None = None
    is_truncated: bool = False


@dataclass(slots=True, frozen=True)
class ManifestRow:
    """One manifest row; `last_modified` is ISO-8601 UTC."""

    bucket: str
    key: str
    file_name: str
    size: int
    last_modified: str


# === Row buffer ===


@dataclass(slots=True)
class RowBatch:
    """Columnar buffer holding the rows of one future row group."""

    bucket: list[str] = field(default_factory=list)
    key: list[str] = field(default_factory=list)
    file_name: list[str] = field(default_factory=list)
    size: list[int] = field(default_factory=list)
    last_modified: list[str] = field(default_factory=list)

    @staticmethod
    def empty() -> RowBatch:
        """Return an empty buffer."""
        return RowBatch()

    def __len__(self) -> int:
        return len(self.key)

    def append(self, row: ManifestRow) -> None:
        self.bucket.append(row.bucket)
        self.key.append(row.key)
        self.file_name.append(row.file_name)
        self.size.append(row.size)
        self.last_modified.append(row.last_modified)

    def rows(self) -> list[ManifestRow]:
        """Materialize rows back out of the columns (in insertion order)."""
        return [
            ManifestRow(b, k, f, s, m)
            for b, k, f, s, m in zip(self.bucket, self.key, self.file_name, self.size, self.last_modified)
        ]

    def to_arrow_table(self) -> pa.Table:
        """Convert the buffer to an Arrow table with `MANIFEST_SCHEMA`."""
        arrays = [
            pa.array(self.bucket, type=pa.string()),
            pa.array(self.key, type=pa.string()),
            pa.array(self.file_name, type=pa.string()),
            pa.array(self.size, type=pa.int64()),
            pa.array(self.last_modified, type=pa.string()),
        ]
        return pa.Table.from_arrays(arrays, schema=MANIFEST_SCHEMA)
