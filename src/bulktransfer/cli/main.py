"""CLI interface for bulk object transfers."""

import logging
import re
import sys
from pathlib import Path

import click
from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.prompt import Confirm
from rich.table import Table

from ..core.api import BulkTransferAPI
from ..core.models import S3Config, TransferConfig
from ..core.s3_client import S3RemoteStore
from ..core.slicing import SlicingAlgorithm

# Set up logging
logging.basicConfig(
    level=logging.INFO,
    format="[%(asctime)s] %(levelname)s: %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger(__name__)

# Rich console for pretty output
console = Console()

_SIZE_UNITS = {"": 1, "K": 1024, "M": 1024**2, "G": 1024**3, "T": 1024**4}


def parse_size(value: str) -> int:
    """Parse sizes such as ``1048576``, ``100M``, ``100MiB`` or ``5G``."""
    match = re.fullmatch(r"\s*(\d+)\s*([KMGT]?)(?:i?B)?\s*", value, re.IGNORECASE)
    if not match:
        raise click.BadParameter(f"Invalid size: {value}")
    number, unit = match.groups()
    return int(number) * _SIZE_UNITS[unit.upper()]


def format_size(size: int) -> str:
    if size < 1024 * 1024:
        return f"{size / 1024:.1f} KB"
    elif size < 1024 * 1024 * 1024:
        return f"{size / (1024 * 1024):.1f} MB"
    return f"{size / (1024 * 1024 * 1024):.1f} GB"


def make_api(ctx, parallel: bool = True, **overrides) -> BulkTransferAPI:
    """Build the API from the global S3 options and per-command overrides."""
    store = S3RemoteStore(ctx.obj["s3_config"])
    config = TransferConfig.from_env(**overrides)
    return BulkTransferAPI(store, config, parallel=parallel)


@click.group()
@click.option("--endpoint-url", envvar="BULKTRANSFER_S3_ENDPOINT_URL", help="S3 endpoint URL")
@click.option("--region", envvar="BULKTRANSFER_S3_REGION", help="S3 region")
@click.option("--access-key", envvar="BULKTRANSFER_S3_ACCESS_KEY", help="S3 access key")
@click.option("--secret-key", envvar="BULKTRANSFER_S3_SECRET_KEY", help="S3 secret key")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging")
@click.pass_context
def cli(ctx, endpoint_url, region, access_key, secret_key, verbose):
    """Bulk Transfer CLI - Multipart uploads and bulk deletes."""
    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    ctx.ensure_object(dict)
    ctx.obj["s3_config"] = S3Config(
        access_key=access_key,
        secret_key=secret_key,
        region=region,
        endpoint_url=endpoint_url,
    )


@cli.command()
@click.argument("size")
def plan(size):
    """Show how a payload of SIZE bytes would be split into parts."""
    try:
        total = parse_size(size)
        algorithm = SlicingAlgorithm.from_config(TransferConfig.from_env())
        api_plan = algorithm.calculate(total)

        table = Table(title=f"Slicing plan for {format_size(total)}")
        table.add_column("Field", style="cyan")
        table.add_column("Value", style="green")
        table.add_row("Total size", str(api_plan.total_size))
        table.add_row("Chunk size", f"{api_plan.chunk_size} ({format_size(api_plan.chunk_size)})")
        table.add_row("Full parts", str(api_plan.part_count))
        table.add_row("Remainder", f"{api_plan.remainder} ({format_size(api_plan.remainder)})")
        table.add_row(
            "Parts uploaded",
            str(api_plan.effective_parts) if api_plan.is_multipart else "1 (single request)",
        )
        console.print(table)

    except Exception as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)


@cli.command()
@click.argument("local_path", type=click.Path(exists=True, dir_okay=False))
@click.argument("container")
@click.option("--key", help="Object key (default: same as local filename)")
@click.option("--parallel-degree", type=int, default=None, help="Parts uploaded concurrently")
@click.option("--sequential", is_flag=True, help="Upload one part at a time")
@click.pass_context
def upload(ctx, local_path, container, key, parallel_degree, sequential):
    """Upload a file to a container."""
    try:
        if not key:
            key = Path(local_path).name

        console.print(
            f"Uploading [cyan]{local_path}[/cyan] to [green]{container}/{key}[/green]"
        )
        with make_api(ctx, parallel=not sequential, parallel_degree=parallel_degree) as api:
            with Progress(
                SpinnerColumn(),
                TextColumn("[progress.description]{task.description}"),
                console=console,
                transient=True,
            ) as progress:
                progress.add_task(description="Uploading...", total=None)
                etag = api.upload_file(local_path, container, key)
        console.print(f"[green]✓[/green] Upload completed successfully! ETag: {etag}")

    except Exception as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)


@cli.command()
@click.argument("container")
@click.option("--prefix", default="", help="Only delete keys starting with this prefix")
@click.option("--yes", "-y", is_flag=True, help="Do not ask for confirmation")
@click.pass_context
def delete(ctx, container, prefix, yes):
    """Delete every object in a container (or under a prefix)."""
    try:
        target = f"{container}/{prefix}" if prefix else container
        if not yes and not Confirm.ask(f"Delete all objects in [red]{target}[/red]?"):
            console.print("[yellow]Cancelled.[/yellow]")
            return

        with make_api(ctx) as api:
            deleted = api.delete_prefix(container, prefix)
        console.print(f"[green]✓[/green] Deleted {deleted} objects from {target}")

    except Exception as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)


@cli.command("cleanup-uploads")
@click.argument("container")
@click.option("--max-age-hours", type=int, default=24, show_default=True,
              help="Abort uploads started longer ago than this")
@click.pass_context
def cleanup_uploads(ctx, container, max_age_hours):
    """Abort abandoned multipart uploads in a container."""
    try:
        with make_api(ctx) as api:
            cleaned = api.cleanup_abandoned_uploads(container, max_age_hours)
        console.print(f"[green]✓[/green] Cleaned up {cleaned} abandoned uploads")

    except Exception as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)


def main():
    """Main entry point."""
    cli()
