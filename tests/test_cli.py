import signal
import threading
from pathlib import Path
from unittest.mock import AsyncMock, patch

from click.testing import CliRunner

from s3manifest.cli import cli, interrupt_handler
from s3manifest.core.errors import FetchFailed
from s3manifest.core.uri import OutputLocation
from s3manifest.core.use_cases.build_manifest import BuildStats, PipelineState
from s3manifest.orchestration.orchestrator import BuildManifestOutput


def _output(interrupted: bool = False) -> BuildManifestOutput:
    return BuildManifestOutput(
        stats=BuildStats(
            state=PipelineState.DONE,
            objects=5,
            pages=3,
            row_groups=3,
            interrupted=interrupted,
            output=Path("manifest.parquet"),
        ),
        destination=OutputLocation(path=Path("manifest.parquet")),
        summary="5 objects • 500 B • 0.10s (50.00 objects/sec)",
    )


def test_generate_success() -> None:
    mock = AsyncMock(return_value=_output())
    with patch("s3manifest.orchestration.orchestrator.build_manifest", mock):
        result = CliRunner().invoke(
            cli,
            ["generate", "s3://bucket/prefix", "-o", "out.parquet", "-d", "|", "--row-group-size", "2", "--no-progress"],
        )

    assert result.exit_code == 0, result.output
    assert "done" in result.output
    config = mock.call_args.args[0]
    assert config.source_uri == "s3://bucket/prefix"
    assert config.output == "out.parquet"
    assert config.delimiter == "|"
    assert config.row_group_size == 2
    assert config.progress is False


def test_generate_reads_credentials_from_env() -> None:
    mock = AsyncMock(return_value=_output())
    env = {"S3MANIFEST_SOURCE_ACCESS_KEY": "AK", "S3MANIFEST_SOURCE_SECRET_KEY": "SK"}
    with patch("s3manifest.orchestration.orchestrator.build_manifest", mock):
        result = CliRunner().invoke(cli, ["generate", "s3://bucket/"], env=env)

    assert result.exit_code == 0, result.output
    config = mock.call_args.args[0]
    assert (config.source_access_key, config.source_secret_key) == ("AK", "SK")
    assert config.output == "manifest.parquet"


def test_generate_reports_interrupt() -> None:
    with patch("s3manifest.orchestration.orchestrator.build_manifest", AsyncMock(return_value=_output(True))):
        result = CliRunner().invoke(cli, ["generate", "s3://bucket/prefix"])

    assert result.exit_code == 0
    assert "interrupted" in result.output


def test_generate_failure_exits_non_zero() -> None:
    failing = AsyncMock(side_effect=FetchFailed("Listing s3://bucket/prefix failed after 5 attempts"))
    with patch("s3manifest.orchestration.orchestrator.build_manifest", failing):
        result = CliRunner().invoke(cli, ["generate", "s3://bucket/prefix"])

    assert result.exit_code == 1
    assert "failed after 5 attempts" in result.output


def test_generate_requires_key_pairs() -> None:
    result = CliRunner().invoke(cli, ["generate", "s3://bucket/", "--source-access-key", "AK"], env={})
    assert result.exit_code == 2


def test_generate_rejects_oversized_pages() -> None:
    result = CliRunner().invoke(cli, ["generate", "s3://bucket/", "--page-size", "5000"])
    assert result.exit_code == 2


class _RecordingLoop:
    def __init__(self) -> None:
        self.removed: list[int] = []

    def remove_signal_handler(self, sig: int) -> bool:
        self.removed.append(sig)
        return True


def test_first_interrupt_stops_and_restores_default_handler() -> None:
    stop = threading.Event()
    loop = _RecordingLoop()

    interrupt_handler(stop, loop)()

    assert stop.is_set()
    # with the loop handler gone, a second Ctrl-C raises KeyboardInterrupt
    assert loop.removed == [signal.SIGINT]
