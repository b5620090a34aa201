"""Storage URI parsing for source prefixes and manifest destinations."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from urllib.parse import urlsplit

from s3manifest.core.errors import InvalidUri

S3_SCHEME = "s3"


@dataclass(frozen=True)
class OutputLocation:
    """Where the manifest ends up: a local path, or a bucket/key pair."""

    path: Path | None = None
    bucket: str | None = None
    key: str | None = None

    @property
    def is_remote(self) -> bool:
        return self.bucket is not None

    def __str__(self) -> str:
        if self.is_remote:
            return f"{S3_SCHEME}://{self.bucket}/{self.key}"
        return str(self.path)


def parse_storage_uri(uri: str, scheme: str = S3_SCHEME) -> tuple[str, str]:
    """Split `scheme://bucket/prefix` into `(bucket, prefix)`.

    The prefix is returned verbatim (no normalisation) and may be empty,
    meaning the whole bucket.
    """
    try:
        parts = urlsplit(uri)
    except ValueError as e:
        raise InvalidUri(f"Invalid URI {uri!r}: {e}") from e

    if parts.scheme != scheme:
        raise InvalidUri(f"Invalid URI scheme in {uri!r}. Must start with '{scheme}://'.")
    if parts.query or parts.fragment:
        raise InvalidUri(f"Invalid URI {uri!r}: query strings and fragments are not allowed")

    # netloc is the raw bucket segment; an empty one means "s3:///..." or "s3://".
    bucket = parts.netloc
    if not bucket:
        raise InvalidUri(f"Missing bucket name in {uri!r}")

    prefix = parts.path[1:] if parts.path.startswith("/") else parts.path
    return bucket, prefix


def parse_output_location(output: str) -> OutputLocation:
    """Return a remote location for `s3://` outputs, else a local path."""
    if output.startswith(f"{S3_SCHEME}://"):
        bucket, key = parse_storage_uri(output)
        if not key or key.endswith("/"):
            raise InvalidUri(f"Output URI {output!r} must name an object key, not a prefix")
        return OutputLocation(bucket=bucket, key=key)
    if not output:
        raise InvalidUri("Output path must not be empty")
    return OutputLocation(path=Path(output))
