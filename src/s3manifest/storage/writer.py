from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path

import pyarrow as pa
import pyarrow.parquet as pq

from s3manifest.core.errors import DestinationUnavailable, UploadFailed, WriteFailed
from s3manifest.core.interfaces import IManifestSink, IObjectUploader
from s3manifest.core.models import MANIFEST_SCHEMA, RowBatch
from s3manifest.core.uri import OutputLocation

logger = logging.getLogger(__name__)


class ParquetManifestWriter(IManifestSink):
    """
    Streaming Parquet manifest writer: one `write_batch` call, one row group.

    Output is never written in place:
    - local destinations go to `<path>.tmp` and are renamed on `close`;
    - remote destinations are staged in a temp file and uploaded as a single
      object on `close`. If the upload fails the staged file is kept.
    """

    def __init__(
        self,
        destination: OutputLocation,
        *,
        uploader: IObjectUploader | None = None,
        codec: str = "zstd",
        staging_dir: Path | None = None,
    ) -> None:
        if destination.is_remote and uploader is None:
            raise ValueError("a remote destination needs an uploader")
        self.destination = destination
        self.uploader = uploader
        self.codec = codec
        self.staging_dir = staging_dir

        self._writer: pq.ParquetWriter | None = None
        self._tmp_path: Path | None = None
        self.rows_written = 0
        self.row_groups = 0

    # ---------- lifecycle ----------

    def open(self) -> None:
        if self.destination.is_remote:
            self._tmp_path = self._open_staging()
        else:
            self._tmp_path = self._open_local()

        try:
            self._writer = pq.ParquetWriter(str(self._tmp_path), MANIFEST_SCHEMA, compression=self.codec)
        except (OSError, pa.ArrowException) as e:
            self._remove_tmp()
            raise DestinationUnavailable(f"Cannot create {self._tmp_path}: {e}") from e

    def _open_local(self) -> Path:
        assert self.destination.path is not None
        path = self.destination.path
        parent = path.parent
        if not parent.is_dir():
            raise DestinationUnavailable(f"Output directory {parent} does not exist")
        if not os.access(parent, os.W_OK):
            raise DestinationUnavailable(f"Output directory {parent} is not writable")
        if path.is_dir():
            raise DestinationUnavailable(f"Output path {path} is a directory")
        return path.with_name(path.name + ".tmp")

    def _open_staging(self) -> Path:
        assert self.uploader is not None and self.destination.bucket is not None
        try:
            self.uploader.check_bucket(self.destination.bucket)
        except Exception as e:
            raise DestinationUnavailable(f"Destination bucket {self.destination.bucket!r} is not accessible: {e}") from e
        try:
            fd, name = tempfile.mkstemp(prefix="s3manifest-", suffix=".parquet", dir=self.staging_dir)
        except OSError as e:
            raise DestinationUnavailable(f"Cannot create staging file: {e}") from e
        os.close(fd)
        return Path(name)

    # ---------- core API ----------

    def write_batch(self, batch: RowBatch) -> None:
        """Append `batch` as one row group."""
        if self._writer is None:
            raise WriteFailed("writer is not open")
        n = len(batch)
        if n == 0:
            return
        try:
            self._writer.write_table(batch.to_arrow_table(), row_group_size=n)
        except (OSError, pa.ArrowException) as e:
            raise WriteFailed(f"Failed to write row group {self.row_groups}: {e}") from e
        self.rows_written += n
        self.row_groups += 1
        logger.debug("row group %d written (rows=%d)", self.row_groups - 1, n)

    def close(self) -> Path | str:
        """Finalize the footer and move the manifest to its destination."""
        if self._writer is None or self._tmp_path is None:
            raise WriteFailed("writer is not open")
        try:
            self._writer.close()
        except (OSError, pa.ArrowException) as e:
            raise WriteFailed(f"Failed to finalize manifest: {e}") from e
        finally:
            self._writer = None

        if not self.destination.is_remote:
            assert self.destination.path is not None
            try:
                os.replace(self._tmp_path, self.destination.path)
            except OSError as e:
                raise WriteFailed(f"Failed to move manifest into place at {self.destination.path}: {e}") from e
            self._tmp_path = None
            logger.info(
                "💾 wrote → %s  (rows=%d, row_groups=%d)",
                self.destination.path,
                self.rows_written,
                self.row_groups,
            )
            return self.destination.path

        return self._upload()

    def _upload(self) -> str:
        assert self.uploader is not None and self._tmp_path is not None
        staged = self._tmp_path
        bucket, key = self.destination.bucket, self.destination.key
        try:
            self.uploader.upload_file(staged, bucket, key)
        except Exception as e:
            logger.error("Upload to %s failed; staged manifest kept at %s", self.destination, staged)
            raise UploadFailed(
                f"Failed to upload manifest to {self.destination}: {e} (staged copy: {staged})",
                staged_path=staged,
            ) from e
        self._remove_tmp()
        logger.info(
            "☁️  uploaded → %s  (rows=%d, row_groups=%d)",
            self.destination,
            self.rows_written,
            self.row_groups,
        )
        return str(self.destination)

    def abort(self) -> None:
        """Drop partial output; nothing that looks finished is left behind."""
        if self._writer is not None:
            try:
                self._writer.close()
            except (OSError, pa.ArrowException) as e:
                logger.debug("ignoring error while aborting writer: %s", e)
            self._writer = None
        self._remove_tmp()

    def _remove_tmp(self) -> None:
        if self._tmp_path is None:
            return
        try:
            self._tmp_path.unlink(missing_ok=True)
        except OSError as e:
            logger.warning("Could not remove temporary file %s: %s", self._tmp_path, e)
        self._tmp_path = None
