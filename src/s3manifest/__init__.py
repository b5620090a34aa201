from __future__ import annotations

from .core.errors import (
    DestinationUnavailable,
    FetchFailed,
    InvalidUri,
    MalformedDescriptor,
    ManifestError,
    TransientFetchError,
    UploadFailed,
    WriteFailed,
)
from .core.models import MANIFEST_SCHEMA, ManifestRow, ObjectDescriptor
from .core.retry import RetryPolicy
from .core.uri import parse_output_location, parse_storage_uri

__all__ = [
    "parse_storage_uri",
    "parse_output_location",
    "RetryPolicy",
    "MANIFEST_SCHEMA",
    "ManifestRow",
    "ObjectDescriptor",
    "ManifestError",
    "InvalidUri",
    "TransientFetchError",
    "FetchFailed",
    "MalformedDescriptor",
    "DestinationUnavailable",
    "WriteFailed",
    "UploadFailed",
]
