"""Manifest orchestrator: list → map → batch → write a Parquet manifest.

This module provides two layers:

1) `run_build_manifest(...)`:
   - Pure application-layer use case.
   - Depends ONLY on interfaces (IObjectListing, IManifestSink).
   - Does NOT instantiate boto3 clients or writers.

2) `build_manifest(...)` (convenience wrapper):
   - Wires concrete implementations (S3ObjectStore, ParquetManifestWriter,
     ProgressReporter) for typical CLI / script usage.
   - Calls `run_build_manifest(...)` under the hood.
"""

from __future__ import annotations

import asyncio
import threading
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from rich.console import Console

from s3manifest.clients.s3 import S3ObjectStore
from s3manifest.core.config import MAX_PAGE_SIZE, ManifestConfig
from s3manifest.core.interfaces import IManifestSink, IObjectListing
from s3manifest.core.retry import RetryPolicy
from s3manifest.core.uri import OutputLocation, parse_output_location, parse_storage_uri
from s3manifest.core.use_cases.build_manifest import (
    BuildManifestConfig,
    BuildStats,
    ManifestService,
)
from s3manifest.progress import ProgressCounters, ProgressReporter
from s3manifest.storage.writer import ParquetManifestWriter


# ---------------------------------------------------------------------------
# Output DTO
# ---------------------------------------------------------------------------


@dataclass(kw_only=True)
class BuildManifestOutput:
    """High-level output of the orchestrator."""
    stats: BuildStats
    destination: OutputLocation
    summary: str


# ---------------------------------------------------------------------------
# 1) Pure application use case (no concrete instantiation)
# ---------------------------------------------------------------------------


async def run_build_manifest(
    *,
    config: ManifestConfig,
    listing: IObjectListing,
    sink: IManifestSink,
    counters: ProgressCounters | None = None,
    stop: threading.Event | None = None,
    sleep: Callable[[float], Any] = asyncio.sleep,
) -> BuildStats:
    """Translate CLI-level config into the domain config and run the service."""
    domain_config = BuildManifestConfig(
        source_uri=config.source_uri,
        delimiter=config.delimiter,
        row_group_size=config.row_group_size,
        page_size=min(config.page_size, MAX_PAGE_SIZE),
    )
    service = ManifestService(
        listing=listing,
        sink=sink,
        retry_policy=RetryPolicy(max_attempts=config.max_attempts),
        sleep=sleep,
    )
    return await service.run(domain_config, counters=counters, stop=stop)


# ---------------------------------------------------------------------------
# 2) Concrete wiring for the CLI
# ---------------------------------------------------------------------------


async def build_manifest(
    config: ManifestConfig,
    *,
    stop: threading.Event | None = None,
    console: Console | None = None,
    client_factory: Callable[..., Any] | None = None,
) -> BuildManifestOutput:
    """Build boto3 clients and the Parquet writer, then run the pipeline with a live display."""
    # Fail on bad input before any client is created
    parse_storage_uri(config.source_uri)
    destination = parse_output_location(config.output)

    source = S3ObjectStore.from_config(config.source_client(), client_factory)
    uploader = S3ObjectStore.from_config(config.dest_client(), client_factory) if destination.is_remote else None
    sink = ParquetManifestWriter(destination, uploader=uploader, codec=config.codec)

    counters = ProgressCounters()
    reporter = ProgressReporter(counters, console=console, enabled=config.progress)
    async with reporter:
        stats = await run_build_manifest(
            config=config,
            listing=source,
            sink=sink,
            counters=counters,
            stop=stop,
        )

    return BuildManifestOutput(stats=stats, destination=destination, summary=reporter.summary())
