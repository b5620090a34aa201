"""boto3-backed listing and upload client for S3 and S3-compatible services.

This module provides:
- `make_s3_client`: build a boto3 client from an endpoint and optional static keys
- `S3ObjectStore`: `IObjectListing` + `IObjectUploader` on top of that client
- `classify_error`: map botocore failures to transient/permanent

Blocking SDK calls are pushed to a worker thread so the event loop stays free
for the prefetch of the next page.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from pathlib import Path
from typing import Any

import boto3
from botocore.config import Config
from botocore.exceptions import (
    BotoCoreError,
    ClientError,
    ConnectionError as BotoConnectionError,
    ConnectTimeoutError,
    EndpointConnectionError,
    ReadTimeoutError,
)

from s3manifest.core.config import S3ClientConfig
from s3manifest.core.errors import TransientFetchError
from s3manifest.core.models import ListingPage, ObjectDescriptor

TRANSIENT_ERROR_CODES = frozenset(
    {
        "Throttling",
        "ThrottlingException",
        "ThrottledException",
        "RequestThrottled",
        "RequestThrottledException",
        "SlowDown",
        "TooManyRequestsException",
        "RequestLimitExceeded",
        "ProvisionedThroughputExceededException",
        "RequestTimeout",
        "RequestTimeoutException",
        "InternalError",
        "ServiceUnavailable",
    }
)

_TRANSIENT_BOTO_ERRORS = (BotoConnectionError, ConnectTimeoutError, EndpointConnectionError, ReadTimeoutError)


def make_s3_client(config: S3ClientConfig, client_factory: Callable[..., Any] | None = None) -> Any:
    """Create an S3 client; falls back to the default credential chain without static keys."""
    factory = client_factory or boto3.client
    kwargs: dict[str, Any] = {
        "endpoint_url": config.endpoint_url,
        "config": Config(
            signature_version="s3v4",
            retries={"max_attempts": config.max_attempts, "mode": "standard"},
        ),
    }
    if config.has_static_credentials:
        kwargs["aws_access_key_id"] = config.access_key
        kwargs["aws_secret_access_key"] = config.secret_key
    return factory("s3", **kwargs)


def classify_error(exc: BaseException) -> bool:
    """Return True for failures worth retrying (throttling, 5xx, timeouts)."""
    if isinstance(exc, ClientError):
        error = exc.response.get("Error", {})
        code = str(error.get("Code", ""))
        status = exc.response.get("ResponseMetadata", {}).get("HTTPStatusCode") or 0
        return code in TRANSIENT_ERROR_CODES or int(status) >= 500 or int(status) == 429
    return isinstance(exc, _TRANSIENT_BOTO_ERRORS)


def _descriptor(entry: dict[str, Any]) -> ObjectDescriptor:
    return ObjectDescriptor(
        key=entry.get("Key"),
        size=entry.get("Size"),
        last_modified=entry.get("LastModified"),
    )


class S3ObjectStore:
    """Listing and upload adapter around a boto3 S3 client."""

    def __init__(self, client: Any) -> None:
        self.client = client

    @classmethod
    def from_config(cls, config: S3ClientConfig, client_factory: Callable[..., Any] | None = None) -> S3ObjectStore:
        return cls(make_s3_client(config, client_factory))

    # ---------- IObjectListing ----------

    async def list_page(
        self,
        *,
        bucket: str,
        prefix: str,
        cursor: str | None,
        page_size: int,
    ) -> ListingPage:
        return await asyncio.to_thread(self.list_page_sync, bucket, prefix, cursor, page_size)

    def list_page_sync(self, bucket: str, prefix: str, cursor: str | None, page_size: int) -> ListingPage:
        """Run one ListObjectsV2 call and map the response."""
        params: dict[str, Any] = {"Bucket": bucket, "MaxKeys": page_size}
        if prefix:
            params["Prefix"] = prefix
        if cursor:
            params["ContinuationToken"] = cursor

        try:
            response = self.client.list_objects_v2(**params)
        except (BotoCoreError, ClientError) as e:
            if classify_error(e):
                raise TransientFetchError(f"{type(e).__name__}: {e}") from e
            raise

        return ListingPage(
            objects=[_descriptor(entry) for entry in response.get("Contents", [])],
            next_cursor=response.get("NextContinuationToken"),
            is_truncated=bool(response.get("IsTruncated", False)),
        )

    # ---------- IObjectUploader ----------

    def check_bucket(self, bucket: str) -> None:
        self.client.head_bucket(Bucket=bucket)

    def upload_file(self, path: Path, bucket: str, key: str) -> None:
        # upload_file switches to multipart for large manifests and retries per the client config
        self.client.upload_file(str(path), bucket, key)
