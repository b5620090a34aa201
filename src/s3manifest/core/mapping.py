from __future__ import annotations

from datetime import datetime, timezone

from s3manifest.core.errors import MalformedDescriptor
from s3manifest.core.models import ManifestRow, ObjectDescriptor


def derive_file_name(key: str, delimiter: str) -> str:
    """Return the segment after the last `delimiter` (the whole key if absent).

    Directory markers (keys ending in the delimiter) yield an empty string.
    """
    if not delimiter:
        return key
    return key.rsplit(delimiter, 1)[-1]


def format_timestamp(value: datetime | str | None) -> str:
    """Normalize a listing timestamp to ISO-8601 UTC with millisecond precision."""
    if isinstance(value, str):
        try:
            value = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError as e:
            raise MalformedDescriptor(f"Unparseable LastModified {value!r}") from e
    if not isinstance(value, datetime):
        raise MalformedDescriptor(f"Missing or invalid LastModified: {value!r}")

    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    utc = value.astimezone(timezone.utc)
    return utc.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def map_object(obj: ObjectDescriptor, bucket: str, delimiter: str) -> ManifestRow:
    """Map a listed object into a manifest row, failing closed on bad input."""
    if not isinstance(obj.key, str) or not obj.key:
        raise MalformedDescriptor(f"Object without key in bucket {bucket!r}")
    # bool is an int subclass; a True/False size is still a contract violation
    if isinstance(obj.size, bool) or not isinstance(obj.size, int) or obj.size < 0:
        raise MalformedDescriptor(f"Invalid size {obj.size!r} for key {obj.key!r}")

    return ManifestRow(
        bucket=bucket,
        key=obj.key,
        file_name=derive_file_name(obj.key, delimiter),
        size=obj.size,
        last_modified=format_timestamp(obj.last_modified),
    )
