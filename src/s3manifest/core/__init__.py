"""Core data models, configuration, errors and the pipeline use case.

This package provides:
- Data models (ObjectDescriptor, ListingPage, ManifestRow, RowBatch)
- Configuration classes (ManifestConfig, S3ClientConfig)
- Error taxonomy rooted at ManifestError
"""

from s3manifest.core.config import ManifestConfig, S3ClientConfig
from s3manifest.core.models import ListingPage, ManifestRow, ObjectDescriptor, RowBatch

__all__ = [
    "ManifestConfig",
    "S3ClientConfig",
    "ListingPage",
    "ManifestRow",
    "ObjectDescriptor",
    "RowBatch",
]
