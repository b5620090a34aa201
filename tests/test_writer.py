import os

import pyarrow as pa
import pyarrow.parquet as pq
import pytest
from conftest import FakeUploader

from s3manifest.core.errors import DestinationUnavailable, UploadFailed, WriteFailed
from s3manifest.core.models import MANIFEST_SCHEMA, ManifestRow, RowBatch
from s3manifest.core.uri import OutputLocation
from s3manifest.storage.writer import ParquetManifestWriter


def _batch(start: int, n: int) -> RowBatch:
    batch = RowBatch.empty()
    for i in range(start, start + n):
        batch.append(ManifestRow("bucket", f"p/{i}.txt", f"{i}.txt", i * 10, "2024-05-01T00:00:00.000Z"))
    return batch


def test_schema_is_fixed() -> None:
    assert MANIFEST_SCHEMA.names == ["Bucket", "Key", "FileName", "Size", "LastModified"]
    assert MANIFEST_SCHEMA.field("Size").type == pa.int64()
    assert MANIFEST_SCHEMA.field("LastModified").type == pa.string()


def test_one_batch_one_row_group(tmp_path) -> None:
    out = tmp_path / "m.parquet"
    writer = ParquetManifestWriter(OutputLocation(path=out))
    writer.open()
    writer.write_batch(_batch(0, 3))
    writer.write_batch(_batch(3, 3))
    writer.write_batch(_batch(6, 1))
    writer.write_batch(RowBatch.empty())

    assert not out.exists()
    assert writer.close() == out

    pf = pq.ParquetFile(out)
    assert pf.schema_arrow == MANIFEST_SCHEMA
    assert [pf.metadata.row_group(i).num_rows for i in range(pf.metadata.num_row_groups)] == [3, 3, 1]
    assert pf.read().column("Size").to_pylist() == [i * 10 for i in range(7)]


def test_empty_manifest_is_valid(tmp_path) -> None:
    out = tmp_path / "empty.parquet"
    writer = ParquetManifestWriter(OutputLocation(path=out))
    writer.open()
    writer.close()

    table = pq.read_table(out)
    assert table.num_rows == 0
    assert table.schema == MANIFEST_SCHEMA


def test_abort_leaves_nothing(tmp_path) -> None:
    writer = ParquetManifestWriter(OutputLocation(path=tmp_path / "m.parquet"))
    writer.open()
    writer.write_batch(_batch(0, 2))
    writer.abort()

    assert list(tmp_path.iterdir()) == []


def test_missing_directory_is_unavailable(tmp_path) -> None:
    writer = ParquetManifestWriter(OutputLocation(path=tmp_path / "nope" / "m.parquet"))
    with pytest.raises(DestinationUnavailable):
        writer.open()


@pytest.mark.skipif(hasattr(os, "geteuid") and os.geteuid() == 0, reason="root ignores directory permissions")
def test_read_only_directory_is_unavailable(tmp_path) -> None:
    ro = tmp_path / "ro"
    ro.mkdir()
    ro.chmod(0o500)
    try:
        with pytest.raises(DestinationUnavailable):
            ParquetManifestWriter(OutputLocation(path=ro / "m.parquet")).open()
    finally:
        ro.chmod(0o700)


def test_write_before_open_fails(tmp_path) -> None:
    writer = ParquetManifestWriter(OutputLocation(path=tmp_path / "m.parquet"))
    with pytest.raises(WriteFailed):
        writer.write_batch(_batch(0, 1))


def test_remote_destination_uploads_and_cleans_staging(tmp_path) -> None:
    uploader = FakeUploader()
    writer = ParquetManifestWriter(
        OutputLocation(bucket="dest", key="manifests/m.parquet"),
        uploader=uploader,
        staging_dir=tmp_path,
    )
    writer.open()
    writer.write_batch(_batch(0, 2))

    assert writer.close() == "s3://dest/manifests/m.parquet"
    assert len(uploader.uploads) == 1
    staged, bucket, key, body = uploader.uploads[0]
    assert (bucket, key) == ("dest", "manifests/m.parquet")
    assert body[:4] == b"PAR1"
    assert not staged.exists()


def test_upload_failure_keeps_staged_file(tmp_path) -> None:
    writer = ParquetManifestWriter(
        OutputLocation(bucket="dest", key="m.parquet"),
        uploader=FakeUploader(upload_error=ConnectionError("reset by peer")),
        staging_dir=tmp_path,
    )
    writer.open()
    writer.write_batch(_batch(0, 2))

    with pytest.raises(UploadFailed) as exc_info:
        writer.close()

    staged = exc_info.value.staged_path
    assert staged is not None and staged.exists()
    assert pq.read_table(staged).num_rows == 2


def test_inaccessible_bucket_is_unavailable(tmp_path) -> None:
    writer = ParquetManifestWriter(
        OutputLocation(bucket="dest", key="m.parquet"),
        uploader=FakeUploader(bucket_error=PermissionError("403")),
        staging_dir=tmp_path,
    )
    with pytest.raises(DestinationUnavailable):
        writer.open()
    assert list(tmp_path.iterdir()) == []


def test_remote_destination_requires_uploader() -> None:
    with pytest.raises(ValueError):
        ParquetManifestWriter(OutputLocation(bucket="dest", key="m.parquet"))
