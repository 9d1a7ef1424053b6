"""
Command-line interface for rustnews.

Usage:
    python -m rustnews import             # Run one import pass
    python -m rustnews posts --hours 48   # Show the recent feed
    python -m rustnews serve              # Start the server (with scheduler)
    python -m rustnews worker             # Run the scheduler without the server
    python -m rustnews sources            # List the compiled-in feeds
    python -m rustnews stats              # Show database statistics
    python -m rustnews config             # Show current configuration
"""

import asyncio
from datetime import datetime, timedelta, timezone

import click
from rich.console import Console
from rich.table import Table
from rich.panel import Panel

from .config import get_settings
from .db import Database
from .errors import StorageError
from .importer import FeedImporter
from .logging_conf import setup_logging, get_logger
from .reader import Reader
from .server import run_server
from .sources import Fetcher, get_source, list_sources

console = Console()
logger = get_logger(__name__)


def _open_database() -> Database:
    settings = get_settings()
    db = Database(settings.effective_database_url)
    db.create_tables()
    return db


@click.group()
@click.option("--debug", is_flag=True, help="Enable debug logging")
def cli(debug: bool):
    """Rust news feed aggregator CLI."""
    settings = get_settings()
    level = "DEBUG" if debug else settings.log_level
    setup_logging(level=level, json_output=settings.log_json)


@cli.command("import")
@click.option(
    "--source", "-s", "source_urls", multiple=True,
    help="Import only this registered feed URL (repeatable)",
)
def import_cmd(source_urls: tuple[str, ...]):
    """
    Run one import pass over every source.

    Examples:
      python -m rustnews import
      python -m rustnews import -s https://lib.rs/atom.xml
      python -m rustnews --debug import
    """
    sources = list_sources()
    if source_urls:
        sources = []
        for url in source_urls:
            source = get_source(url)
            if source is None:
                raise click.BadParameter(f"Unknown source: {url}", param_hint="--source")
            sources.append(source)

    console.print(Panel("[bold green]Starting Import Pass[/bold green]"))

    settings = get_settings()
    db = _open_database()
    importer = FeedImporter(
        db,
        Fetcher(timeout=settings.fetch_timeout, user_agent=settings.user_agent),
        max_concurrent=settings.max_concurrent_fetches,
    )

    try:
        report = asyncio.run(importer.import_all(sources))
    finally:
        db.dispose()

    table = Table(title="Import Results")
    table.add_column("Source", style="cyan")
    table.add_column("Entries", justify="right")
    table.add_column("Inserted", style="green", justify="right")
    table.add_column("Duplicates", justify="right")
    table.add_column("Undated", justify="right")

    for result in report.results:
        table.add_row(
            result.source,
            str(result.entries),
            str(result.inserted),
            str(result.duplicates),
            str(result.undated),
        )

    console.print(table)

    if report.failures:
        console.print("[red]Failed sources:[/red]")
        for url, error in report.failures.items():
            console.print(f"  - {url}: {error}")

    console.print(
        f"\nInserted {report.inserted} posts; "
        f"{report.succeeded} sources succeeded, {report.failed} failed"
    )


@cli.command()
@click.option("--hours", "-h", type=int, help="Recency window in hours")
@click.option("--limit", "-n", type=int, help="Maximum posts to show")
def posts(hours: int, limit: int):
    """Show the recent feed, newest first."""
    settings = get_settings()
    hours = hours or settings.recency_hours

    db = _open_database()
    try:
        rows = Reader(db).recent(window=timedelta(hours=hours), limit=limit)
    except StorageError as e:
        console.print(f"[bold red]Error: {e}[/bold red]")
        raise click.Abort()
    finally:
        db.dispose()

    if not rows:
        console.print(f"[yellow]No posts in the last {hours}h[/yellow]")
        return

    table = Table(title=f"Last {hours}h")
    table.add_column("Age", style="magenta", justify="right")
    table.add_column("Title", style="bold")
    table.add_column("Source", style="cyan")
    table.add_column("Link")

    for row in rows:
        table.add_row(row.age, row.title, row.source_name, row.link)

    console.print(table)


@cli.command()
@click.option("--host", help="Host to bind to")
@click.option("--port", "-p", type=int, help="Port to bind to")
@click.option("--no-scheduler", is_flag=True, help="Serve reads only, do not import")
def serve(host: str, port: int, no_scheduler: bool):
    """Start the HTTP server."""
    console.print(Panel("[bold blue]Starting Server[/bold blue]"))

    settings = get_settings()
    with_scheduler = settings.enable_scheduler and not no_scheduler

    console.print(f"Host: {host or settings.host}")
    console.print(f"Port: {port or settings.port}")
    console.print(f"Scheduler: {'Enabled' if with_scheduler else 'Disabled'}")
    console.print()

    run_server(host=host, port=port, with_scheduler=with_scheduler)


@cli.command()
def worker():
    """Run the import scheduler without the HTTP server."""
    from .scheduler import run_scheduler_sync

    console.print(Panel("[bold yellow]Starting Import Worker[/bold yellow]"))
    run_scheduler_sync()


@cli.command()
def sources():
    """List the compiled-in feed sources."""
    table = Table(title="Feed Sources")
    table.add_column("Name", style="cyan")
    table.add_column("Format", style="yellow")
    table.add_column("URL")

    for source in list_sources():
        table.add_row(source.display_name, source.format.value, source.url)

    console.print(table)


@cli.command()
def stats():
    """Show database statistics."""
    db = _open_database()
    try:
        db_stats = db.get_stats()
    except StorageError as e:
        console.print(f"[bold red]Error: {e}[/bold red]")
        raise click.Abort()
    finally:
        db.dispose()

    table = Table(title="Database Statistics")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green")

    table.add_row("Total Posts", str(db_stats["total_posts"]))
    for source, count in sorted(db_stats["by_source"].items()):
        table.add_row(f"  {source}", str(count))

    newest = db_stats["newest_created_at"]
    table.add_row(
        "Newest Post",
        datetime.fromtimestamp(newest, tz=timezone.utc).isoformat() if newest else "-",
    )

    console.print(table)


@cli.command()
def config():
    """Show current configuration."""
    settings = get_settings()

    console.print(Panel("[bold blue]Current Configuration[/bold blue]"))

    console.print("\n[cyan]Database:[/cyan]")
    console.print(f"  database_url:  {settings.database_url or '-'}")
    console.print(f"  database_path: {settings.database_path}")

    console.print("\n[cyan]Import:[/cyan]")
    console.print(f"  import_interval_minutes: {settings.import_interval_minutes}")
    console.print(f"  fetch_timeout:           {settings.fetch_timeout}")
    console.print(f"  max_concurrent_fetches:  {settings.max_concurrent_fetches}")
    console.print(f"  user_agent:              {settings.user_agent}")

    console.print("\n[cyan]Reader:[/cyan]")
    console.print(f"  recency_hours: {settings.recency_hours}")

    console.print("\n[cyan]Server:[/cyan]")
    console.print(f"  host:             {settings.host}")
    console.print(f"  port:             {settings.port}")
    console.print(f"  enable_scheduler: {settings.enable_scheduler}")


def main():
    """Main entry point."""
    cli()


if __name__ == "__main__":
    main()
