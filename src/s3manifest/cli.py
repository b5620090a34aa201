import asyncio
import signal
import threading
from collections.abc import Callable

import click
from rich.console import Console

from s3manifest.core.config import DEFAULT_OUTPUT, DEFAULT_ROW_GROUP_SIZE, MAX_PAGE_SIZE, ManifestConfig
from s3manifest.core.errors import ManifestError
from s3manifest.logs import configure_logging

console = Console()
err_console = Console(stderr=True)


def interrupt_handler(stop: threading.Event, loop: asyncio.AbstractEventLoop) -> Callable[[], None]:
    """First Ctrl-C finalizes at the next page boundary; the default handler takes the second."""

    def _on_sigint() -> None:
        stop.set()
        loop.remove_signal_handler(signal.SIGINT)
        err_console.print("[yellow]stopping[/]: finishing the current page (Ctrl-C again to abort)")

    return _on_sigint


@click.group()
def cli() -> None:
    """s3manifest — Parquet inventory of the objects under an S3 prefix."""


@cli.command("generate")
@click.argument("source_uri")
@click.option("-o", "--output", default=DEFAULT_OUTPUT, show_default=True, help="Local path or s3:// URI for the manifest")
@click.option("--source-endpoint", envvar="S3MANIFEST_SOURCE_ENDPOINT", default=None, help="Custom endpoint for the source bucket")
@click.option("--dest-endpoint", envvar="S3MANIFEST_DEST_ENDPOINT", default=None, help="Custom endpoint for the destination bucket")
@click.option("--source-access-key", envvar="S3MANIFEST_SOURCE_ACCESS_KEY", default=None, help="Access key ID for the source bucket")
@click.option("--source-secret-key", envvar="S3MANIFEST_SOURCE_SECRET_KEY", default=None, help="Secret access key for the source bucket")
@click.option("--dest-access-key", envvar="S3MANIFEST_DEST_ACCESS_KEY", default=None, help="Access key ID for the destination bucket")
@click.option("--dest-secret-key", envvar="S3MANIFEST_DEST_SECRET_KEY", default=None, help="Secret access key for the destination bucket")
@click.option("-d", "--delimiter", default="/", show_default=True, help="Delimiter used to derive FileName from the key")
@click.option("--row-group-size", type=click.IntRange(min=1), default=DEFAULT_ROW_GROUP_SIZE, show_default=True)
@click.option("--page-size", type=click.IntRange(1, MAX_PAGE_SIZE), default=MAX_PAGE_SIZE, show_default=True, help="Keys per listing request")
@click.option("--max-attempts", type=click.IntRange(min=1), default=5, show_default=True, help="Attempts per listing request")
@click.option("--codec", type=click.Choice(["zstd", "snappy", "gzip", "none"]), default="zstd", show_default=True)
@click.option("--progress/--no-progress", default=True, show_default=True, help="Live progress display")
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default="INFO",
    show_default=True,
)
def generate_cmd(
    source_uri: str,
    output: str,
    source_endpoint: str | None,
    dest_endpoint: str | None,
    source_access_key: str | None,
    source_secret_key: str | None,
    dest_access_key: str | None,
    dest_secret_key: str | None,
    delimiter: str,
    row_group_size: int,
    page_size: int,
    max_attempts: int,
    codec: str,
    progress: bool,
    log_level: str,
) -> None:
    """Generate a Parquet manifest for every object under SOURCE_URI (s3://bucket/prefix)."""
    configure_logging(log_level, console=err_console)

    if bool(source_access_key) != bool(source_secret_key):
        raise click.UsageError("--source-access-key and --source-secret-key must be given together")
    if bool(dest_access_key) != bool(dest_secret_key):
        raise click.UsageError("--dest-access-key and --dest-secret-key must be given together")

    config = ManifestConfig(
        source_uri=source_uri,
        output=output,
        source_endpoint=source_endpoint,
        dest_endpoint=dest_endpoint,
        source_access_key=source_access_key,
        source_secret_key=source_secret_key,
        dest_access_key=dest_access_key,
        dest_secret_key=dest_secret_key,
        delimiter=delimiter,
        row_group_size=row_group_size,
        page_size=page_size,
        max_attempts=max_attempts,
        codec=codec,
        progress=progress,
    )

    from s3manifest.orchestration.orchestrator import build_manifest

    async def run() -> None:
        stop = threading.Event()
        loop = asyncio.get_running_loop()
        try:
            loop.add_signal_handler(signal.SIGINT, interrupt_handler(stop, loop))
        except (NotImplementedError, RuntimeError):
            # no loop signal handlers here (e.g. Windows); Ctrl-C aborts instead
            pass

        try:
            result = await build_manifest(config, stop=stop, console=err_console)
        finally:
            try:
                loop.remove_signal_handler(signal.SIGINT)
            except (NotImplementedError, RuntimeError):
                pass

        stats = result.stats
        if stats.interrupted:
            console.print(f"[yellow]interrupted[/]: manifest holds the {stats.objects:,} objects listed before the stop")
        console.print(f"[bold]done[/]: {result.summary}")
        console.print(
            f"[bold]summary[/]: "
            f"[green]objects[/]={stats.objects}  "
            f"row_groups={stats.row_groups}  "
            f"pages={stats.pages}  "
            f"[yellow]skipped[/]={stats.skipped}  "
            f"→ {stats.output}"
        )

    try:
        asyncio.run(run())
    except ManifestError as e:
        raise click.ClickException(str(e)) from e


if __name__ == "__main__":
    cli()
