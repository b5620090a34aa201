"""Orchestration for building a manifest from a live S3 listing.

This package provides:
- build_manifest: wires boto3, the Parquet writer and the progress display
- run_build_manifest: interface-only entry point used by tests and embedders
"""

from s3manifest.orchestration.orchestrator import build_manifest, run_build_manifest

__all__ = [
    "build_manifest",
    "run_build_manifest",
]
