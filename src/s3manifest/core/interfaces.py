from __future__ import annotations

from pathlib import Path
from typing import Protocol, runtime_checkable

from s3manifest.core.models import ListingPage, RowBatch


# ---------------------------------------------------------------------------
# IObjectListing
# ---------------------------------------------------------------------------

@runtime_checkable
class IObjectListing(Protocol):
    """
    Abstract provider of paginated object listings.

    Domain expectations:
    - It returns ListingPage objects already mapped into internal models.
    - It hides the underlying SDK (boto3, another S3 client, a fake).
    - Transient failures are raised as TransientFetchError; anything else is
      treated as permanent by the fetcher.
    """

    async def list_page(
        self,
        *,
        bucket: str,
        prefix: str,
        cursor: str | None,
        page_size: int,
    ) -> ListingPage:
        """
        Return one page of objects under `prefix`, continuing from `cursor`.

        Implementations:
        - boto3 ListObjectsV2 (`S3ObjectStore`)
        - In-memory listing for testing
        """
        ...


# ---------------------------------------------------------------------------
# IManifestSink
# ---------------------------------------------------------------------------

@runtime_checkable
class IManifestSink(Protocol):
    """
    Abstract sink for manifest row groups.

    Domain expectations:
    - `write_batch` receives ownership of the batch; the caller never reuses it.
    - Output only becomes valid on `close`; `abort` must leave nothing that
      looks like a finished manifest.
    """

    def open(self) -> None:
        ...

    def write_batch(self, batch: RowBatch) -> None:
        """Append one batch as one row group."""
        ...

    def close(self) -> Path | str:
        """Finalize the manifest and return where it ended up."""
        ...

    def abort(self) -> None:
        """Discard partial output after a fatal error."""
        ...


# ---------------------------------------------------------------------------
# IObjectUploader
# ---------------------------------------------------------------------------

@runtime_checkable
class IObjectUploader(Protocol):
    """Destination side of a remote manifest: single-object uploads."""

    def check_bucket(self, bucket: str) -> None:
        """Raise if the bucket is missing or not accessible."""
        ...

    def upload_file(self, path: Path, bucket: str, key: str) -> None:
        ...
