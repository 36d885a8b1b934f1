"""
CLI commands for managing the local image cache.

Provides ``presscache cache warm`` for pre-downloading source images with
rate limiting and dry-run mode, ``cache status`` for statistics and
``cache purge`` for an administrative clear.
"""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TextColumn,
    TimeElapsedColumn,
)
from rich.table import Table

from presscache.container import container
from presscache.models.cache import WarmResult
from presscache.models.enums import ContentTier
from presscache.services.attachments import extract_candidate_urls
from presscache.services.image_cache import ImageCacheService

console = Console()

# Valid --tier values
_VALID_TIERS = {t.value for t in ContentTier}

app = typer.Typer(
    name="cache",
    help="Manage the local image cache.",
    no_args_is_help=True,
)


def _build_cache_service() -> ImageCacheService:
    """Return the image cache service configured from application settings.

    Returns
    -------
    ImageCacheService
        Configured image cache service.
    """
    return container.image_cache_service


def format_size(size_bytes: int) -> str:
    """Convert bytes to human-readable format."""
    if size_bytes < 1024:
        return f"{size_bytes} B"
    elif size_bytes < 1024 * 1024:
        return f"{size_bytes / 1024:.1f} KB"
    elif size_bytes < 1024 * 1024 * 1024:
        return f"{size_bytes / (1024 * 1024):.1f} MB"
    else:
        return f"{size_bytes / (1024 * 1024 * 1024):.1f} GB"


def _read_url_file(path: Path) -> list[str]:
    """Read one URL per line, ignoring blank lines and ``#`` comments."""
    urls = []
    for line in path.read_text(encoding="utf-8").splitlines():
        line = line.strip()
        if line and not line.startswith("#"):
            urls.append(line)
    return urls


def _read_records_file(path: Path) -> list[str]:
    """Extract image URLs from a JSON export of content-source records.

    Accepts a list of records or an object with a ``records`` list. Every
    field value of every record is scanned for attachments.
    """
    data = json.loads(path.read_text(encoding="utf-8"))
    records = data.get("records", []) if isinstance(data, dict) else data
    urls: list[str] = []
    for record in records:
        if not isinstance(record, dict):
            continue
        fields = record.get("fields", record)
        urls.extend(extract_candidate_urls(list(fields.values())))
    return list(dict.fromkeys(urls))


@app.command(name="warm")
def warm(
    urls: Optional[list[str]] = typer.Argument(
        None,
        help="Source image URLs to warm",
    ),
    file: Optional[Path] = typer.Option(
        None,
        "--file",
        "-f",
        help="Text file with one source URL per line",
        exists=True,
        dir_okay=False,
    ),
    records: Optional[Path] = typer.Option(
        None,
        "--records",
        "-r",
        help="JSON export of content-source records to extract images from",
        exists=True,
        dir_okay=False,
    ),
    tier: str = typer.Option(
        "stable",
        "--tier",
        "-t",
        help="Content tier used to decide whether a cached copy is fresh",
    ),
    limit: Optional[int] = typer.Option(
        None,
        "--limit",
        "-l",
        help="Maximum number of images to download",
    ),
    delay: float = typer.Option(
        0.5,
        "--delay",
        "-d",
        help="Seconds between requests",
        min=0.0,
    ),
    dry_run: bool = typer.Option(
        False,
        "--dry-run",
        help="Preview mode: show counts without downloading",
    ),
) -> None:
    """
    Pre-download source images that are not cached or are stale.

    The command is implicitly resumable: when re-run after interruption it
    skips images that are already cached and fresh.

    Examples:
        presscache cache warm https://example.com/a.jpg
        presscache cache warm --file urls.txt --tier important
        presscache cache warm --records articles.json --limit 100
        presscache cache warm --file urls.txt --dry-run
    """
    # Validate --tier
    if tier not in _VALID_TIERS:
        console.print(
            f'[red]Error: Invalid --tier "{tier}". '
            f"Must be one of: {', '.join(sorted(_VALID_TIERS))}[/red]"
        )
        raise typer.Exit(code=2)

    # Validate --limit
    if limit is not None and limit <= 0:
        console.print("[red]Error: --limit must be a positive integer[/red]")
        raise typer.Exit(code=2)

    source_urls = list(urls or [])
    try:
        if file is not None:
            source_urls.extend(_read_url_file(file))
        if records is not None:
            source_urls.extend(_read_records_file(records))
    except (OSError, json.JSONDecodeError) as e:
        console.print(f"[red]Error: Could not read input: {e}[/red]")
        raise typer.Exit(code=2)

    if not source_urls:
        console.print("[red]Error: No URLs given (use arguments, --file or --records)[/red]")
        raise typer.Exit(code=2)

    try:
        asyncio.run(
            _warm_async(
                urls=source_urls,
                tier=tier,
                limit=limit,
                delay=delay,
                dry_run=dry_run,
            )
        )
    except KeyboardInterrupt:
        console.print("\n[yellow]Cache warming interrupted by user[/yellow]")
        raise typer.Exit(code=130)


async def _warm_async(
    *,
    urls: list[str],
    tier: str,
    limit: int | None,
    delay: float,
    dry_run: bool,
) -> None:
    """Async implementation of the cache warm command.

    Parameters
    ----------
    urls : list[str]
        Source URLs to warm.
    tier : str
        Content tier for freshness decisions.
    limit : int | None
        Maximum number of images to download.
    delay : float
        Seconds to sleep between downloads.
    dry_run : bool
        If ``True``, only report counts without downloading.
    """
    service = _build_cache_service()

    if dry_run:
        console.print("[yellow]Dry run - no images will be downloaded.[/yellow]\n")
        console.print("[cyan]Scanning source images...[/cyan]")
    else:
        console.print("[cyan]Warming source images...[/cyan]")

    downloaded_count = 0
    skipped_count = 0
    failed_count = 0

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        MofNCompleteColumn(),
        TimeElapsedColumn(),
        console=console,
    ) as progress:
        task = progress.add_task("Images", total=len(set(urls)))

        def warm_callback(url: str, status: str) -> None:
            nonlocal downloaded_count, skipped_count, failed_count
            if status == "downloaded" or status == "dry_run":
                downloaded_count += 1
            elif status == "skipped" or status == "limit_reached":
                skipped_count += 1
            elif status.startswith("failed"):
                failed_count += 1
                progress.console.print(f"  [red]Failed[/red] {url[:100]} ({status[7:]})")

            progress.update(
                task,
                advance=1,
                description=(
                    f"Images ({downloaded_count} "
                    f"{'to download' if dry_run else 'downloaded'}, "
                    f"{skipped_count} cached)"
                ),
            )

        result = await service.warm(
            urls,
            tier,
            delay=delay,
            limit=limit,
            dry_run=dry_run,
            progress_callback=warm_callback,
        )

        progress.update(task, total=result.total, completed=result.total)

    _display_summary(result=result, dry_run=dry_run)

    # Exit code: 0 = success, 1 = partial/errors
    if result.failed > 0:
        raise typer.Exit(code=1)


def _display_summary(*, result: WarmResult, dry_run: bool) -> None:
    """Display a summary table of warming results.

    Parameters
    ----------
    result : WarmResult
        Result of the warm operation.
    dry_run : bool
        Whether this was a dry-run operation.
    """
    console.print()

    table = Table(title="Cache Warm Summary")
    dl_label = "To Download" if dry_run else "Downloaded"
    table.add_column(dl_label, style="green", justify="right")
    table.add_column("Cached", style="blue", justify="right")
    table.add_column("Failed", style="red", justify="right")
    table.add_column("Total", style="bold", justify="right")
    table.add_row(
        str(result.downloaded),
        str(result.skipped),
        str(result.failed),
        str(result.total),
    )

    console.print(table)


@app.command(name="status")
def status() -> None:
    """
    Display cache statistics.

    Shows counts of cached, missing and orphaned files, total size, and
    fetch ages.

    Examples:
        presscache cache status
    """
    try:
        asyncio.run(_status_async())
    except KeyboardInterrupt:
        console.print("\n[yellow]Status check interrupted by user[/yellow]")
        raise typer.Exit(code=130)


async def _status_async() -> None:
    """Async implementation of the cache status command."""
    service = _build_cache_service()
    stats = await service.get_stats()

    table = Table(title="Image Cache Status")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green", justify="right")

    table.add_row("Cached entries", f"{stats.entry_count:,}")
    table.add_row("Mapped but missing", f"{stats.missing_count:,}")
    table.add_row("Orphaned files", f"{stats.orphan_count:,}")
    table.add_row("[bold]Total size[/bold]", f"[bold]{format_size(stats.total_size_bytes)}[/bold]")

    console.print()
    console.print(table)
    console.print()

    console.print(f"  Cache directory: {service.store.directory}")
    if stats.oldest_fetch is not None:
        console.print(f"  Oldest fetch:    {stats.oldest_fetch.strftime('%Y-%m-%d %H:%M')}")
    if stats.newest_fetch is not None:
        console.print(f"  Newest fetch:    {stats.newest_fetch.strftime('%Y-%m-%d %H:%M')}")
    console.print()


@app.command(name="purge")
def purge(
    yes: bool = typer.Option(
        False,
        "--yes",
        "-y",
        "--force",
        help="Skip confirmation prompt",
    ),
) -> None:
    """
    Delete every cached image and clear the URL mappings.

    Images whose upstream URLs have expired cannot be re-downloaded, so the
    command asks for confirmation unless --yes is given.

    Examples:
        presscache cache purge
        presscache cache purge --yes
    """
    try:
        asyncio.run(_purge_async(yes=yes))
    except KeyboardInterrupt:
        console.print("\n[yellow]Purge interrupted by user[/yellow]")
        raise typer.Exit(code=130)


async def _purge_async(*, yes: bool) -> None:
    """Async implementation of the cache purge command.

    Parameters
    ----------
    yes : bool
        If ``True``, skip confirmation prompt.
    """
    service = _build_cache_service()

    if not yes:
        console.print(
            f"\n[yellow]Warning: {len(service.mapping)} cached image(s) will be "
            "deleted. Images whose source URLs have expired CANNOT be "
            "re-downloaded.[/yellow]\n"
        )
        confirmation = typer.confirm(
            "Are you sure you want to purge all cached images?",
            default=False,
        )
        if not confirmation:
            console.print("[yellow]Purge cancelled by user[/yellow]")
            raise typer.Exit(code=1)

    bytes_freed = await service.purge()

    console.print()
    console.print(f"[green]Purge complete: freed {format_size(bytes_freed)}[/green]")
    console.print()
