from __future__ import annotations

from dataclasses import dataclass

DEFAULT_OUTPUT = "manifest.parquet"
DEFAULT_ROW_GROUP_SIZE = 10_000
# S3 never returns more than 1,000 keys per ListObjectsV2 page.
MAX_PAGE_SIZE = 1_000


@dataclass(frozen=True)
class S3ClientConfig:
    """Endpoint and static credentials for one side (source or destination)."""

    endpoint_url: str | None = None
    access_key: str | None = None
    secret_key: str | None = None
    max_attempts: int = 1

    @property
    def has_static_credentials(self) -> bool:
        return bool(self.access_key and self.secret_key)


@dataclass(frozen=True)
class ManifestConfig:
    """Configuration for the manifest generator (CLI)."""

    source_uri: str
    output: str = DEFAULT_OUTPUT
    source_endpoint: str | None = None
    dest_endpoint: str | None = None
    source_access_key: str | None = None
    source_secret_key: str | None = None
    dest_access_key: str | None = None
    dest_secret_key: str | None = None
    delimiter: str = "/"
    row_group_size: int = DEFAULT_ROW_GROUP_SIZE
    page_size: int = MAX_PAGE_SIZE
    max_attempts: int = 5
    codec: str = "zstd"
    progress: bool = True

    def source_client(self) -> S3ClientConfig:
        # Listing retries are owned by PageFetcher, so the SDK makes a single attempt.
        return S3ClientConfig(
            endpoint_url=self.source_endpoint,
            access_key=self.source_access_key,
            secret_key=self.source_secret_key,
            max_attempts=1,
        )

    def dest_client(self) -> S3ClientConfig:
        return S3ClientConfig(
            endpoint_url=self.dest_endpoint,
            access_key=self.dest_access_key,
            secret_key=self.dest_secret_key,
            max_attempts=self.max_attempts,
        )
