"""Storage components for writing the Parquet manifest.

This package provides:
- ParquetManifestWriter: row-group streaming writer with atomic finalize and staged upload
"""

from s3manifest.storage.writer import ParquetManifestWriter

__all__ = [
    "ParquetManifestWriter",
]
