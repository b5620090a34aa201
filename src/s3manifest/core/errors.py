"""Error taxonomy for the manifest pipeline.

Every fatal condition derives from `ManifestError` so the CLI can map the
whole family to a single non-zero exit.
"""

from __future__ import annotations

from pathlib import Path


class ManifestError(Exception):
    """Base class for all pipeline errors."""


class InvalidUri(ManifestError, ValueError):
    """Source or destination URI could not be parsed."""


class TransientFetchError(ManifestError):
    """A listing call failed in a way that is worth retrying (throttling, 5xx, timeouts)."""


class FetchFailed(ManifestError):
    """Listing failed permanently: retries exhausted or a non-retryable API error."""

    def __init__(self, message: str, *, last_error: BaseException | None = None, attempts: int = 0) -> None:
        super().__init__(message)
        self.last_error = last_error
        self.attempts = attempts


class MalformedDescriptor(ManifestError, ValueError):
    """A listed object is missing a key, size or timestamp."""


class DestinationUnavailable(ManifestError):
    """Output path or bucket cannot be written to."""


class WriteFailed(ManifestError):
    """A row group could not be serialized."""


class UploadFailed(ManifestError):
    """The finalized manifest could not be uploaded; the staged copy is kept."""

    def __init__(self, message: str, *, staged_path: Path | None = None) -> None:
        super().__init__(message)
        self.staged_path = staged_path
