#!/usr/bin/env python3
"""
CoreHeadlines - Headline Digest Pipeline
=======================================

Main application entry point with CLI interface for running and maintenance.

Usage:
    python main.py --help                    # Show all commands
    python main.py check-config              # Validate configuration
    python main.py init-db                   # Initialize database
    python main.py run                       # Run one ingestion cycle
    python main.py test-feed hackernews      # Fetch and parse one feed
    python main.py feeds                     # List configured feeds
    python main.py purge                     # Delete expired publication records
"""

import sys
import asyncio
import logging
from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

# Add project root to Python path
sys.path.insert(0, str(Path(__file__).parent))

from coreheadlines.config.feeds import FEEDS, get_feed
from coreheadlines.config.settings import get_settings
from coreheadlines.database.connection import DatabaseConnection
from coreheadlines.database.schema import DatabaseSchema
from coreheadlines.ingestion.feed_fetcher import FeedFetcher
from coreheadlines.ingestion.feed_parser import FeedParser
from coreheadlines.processing.pipeline import HeadlinesPipeline
from coreheadlines.storage.publication_store import PublicationStore
from coreheadlines.utils.logging import configure_application_logging
from coreheadlines.utils.exceptions import (
    ConfigurationError,
    CoreHeadlinesError,
    DeliveryError,
    StoreWriteError,
)

console = Console()
logger = logging.getLogger(__name__)


def _configure_logging(settings, debug: bool) -> None:
    configure_application_logging(
        log_level="DEBUG" if debug else settings.get_effective_log_level(),
        log_file=settings.logging.file_path,
        enable_console=settings.logging.console_logging,
        structured_logging=settings.logging.structured_logging,
        max_file_size=settings.logging.max_file_size_mb * 1024 * 1024,
        backup_count=settings.logging.backup_count,
    )


@click.group(invoke_without_command=True)
@click.option('--debug', is_flag=True, help='Enable debug mode')
@click.pass_context
def cli(ctx, debug):
    """CoreHeadlines - consolidated headline digest from syndication feeds."""
    ctx.ensure_object(dict)
    ctx.obj['debug'] = debug

    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


@cli.command()
@click.pass_context
def run(ctx):
    """Run one ingestion cycle and deliver the digest."""
    try:
        settings = get_settings()
        settings.delivery.validate_delivery()
    except ConfigurationError as e:
        console.print(f"[bold red]❌ Configuration error: {e}[/bold red]")
        sys.exit(1)

    _configure_logging(settings, ctx.obj.get('debug', False))

    schema = DatabaseSchema(settings.storage.path)
    schema.create_tables()
    db = DatabaseConnection(settings.storage.path, pool_size=settings.storage.pool_size)

    async def _run():
        async with HeadlinesPipeline.from_settings(settings, db) as pipeline:
            return await pipeline.run()

    try:
        result = asyncio.run(_run())
    except (ConfigurationError, DeliveryError, StoreWriteError) as e:
        logger.error(f"Run failed: {e}")
        console.print(f"[bold red]❌ Run failed: {e}[/bold red]")
        sys.exit(1)
    finally:
        db.close_all_connections()

    console.print(
        f"[bold green]✅ Run {result.run_id} finished:[/bold green] "
        f"{result.successful_feeds}/{len(result.feed_results)} feeds, "
        f"{len(result.articles)} new articles, "
        f"{'delivered' if result.delivered else 'nothing delivered'} "
        f"in {result.duration_seconds:.1f}s"
    )


@cli.command()
def check_config():
    """Validate configuration and environment variables."""
    console.print("[bold blue]🔧 Checking CoreHeadlines Configuration[/bold blue]")

    try:
        settings = get_settings()
    except ConfigurationError as e:
        console.print(f"[bold red]❌ Configuration error: {e}[/bold red]")
        sys.exit(1)

    table = Table(title="Configuration Status")
    table.add_column("Component", style="cyan")
    table.add_column("Status", style="green")
    table.add_column("Details")

    checks = [
        ("Storage", _check_storage_config),
        ("Logging", _check_logging_config),
        ("Fetching", _check_fetch_config),
        ("Delivery", _check_delivery_config),
        ("Economics", _check_economics_config),
    ]

    all_passed = True
    for name, check_func in checks:
        status, details = check_func(settings)
        table.add_row(name, "✅ Valid" if status else "❌ Invalid", details)
        if not status:
            all_passed = False

    console.print(table)

    if all_passed:
        console.print("[bold green]✅ All configuration checks passed![/bold green]")
    else:
        console.print("[bold red]❌ Configuration validation failed[/bold red]")
        sys.exit(1)


@cli.command()
def init_db():
    """Initialize database with schema."""
    console.print("[bold blue]🗄️ Initializing CoreHeadlines Database[/bold blue]")

    try:
        settings = get_settings()
        schema = DatabaseSchema(settings.storage.path)
        schema.create_tables()

        if not schema.verify_schema():
            console.print("[bold red]❌ Database schema verification failed[/bold red]")
            sys.exit(1)

        db = DatabaseConnection(settings.storage.path, pool_size=1)
        try:
            info = db.get_database_info()
        finally:
            db.close_all_connections()

        console.print("[bold green]✅ Database initialized successfully![/bold green]")

        info_table = Table(title="Database Information")
        info_table.add_column("Property", style="cyan")
        info_table.add_column("Value", style="green")
        info_table.add_row("Database Path", settings.storage.path)
        info_table.add_row("Size", f"{info['database_size_mb']:.2f} MB")
        info_table.add_row("Publication Records", str(info['published_records']))
        console.print(info_table)

    except CoreHeadlinesError as e:
        console.print(f"[bold red]❌ Database initialization error: {e}[/bold red]")
        sys.exit(1)


@cli.command()
@click.argument('header')
@click.pass_context
def test_feed(ctx, header):
    """Fetch and parse one configured feed without delivering anything."""
    feed = get_feed(header)
    if feed is None:
        console.print(f"[bold red]❌ No configured feed with header '{header}'[/bold red]")
        sys.exit(1)

    settings = get_settings()
    _configure_logging(settings, ctx.obj.get('debug', False))

    async def _fetch_and_parse():
        async with FeedFetcher(settings.fetch) as fetcher:
            body = await fetcher.fetch(feed)
        return FeedParser().parse(body, feed)

    try:
        articles = asyncio.run(_fetch_and_parse())
    except CoreHeadlinesError as e:
        console.print(f"[bold red]❌ {feed.header}: {e}[/bold red]")
        sys.exit(1)

    table = Table(title=f"{feed.header} ({feed.dialect.value})")
    table.add_column("#", style="dim")
    table.add_column("Title", style="cyan")
    table.add_column("Link")
    for index, article in enumerate(articles, start=1):
        table.add_row(str(index), article.title, article.link)

    console.print(table)
    console.print(f"[bold green]✅ {len(articles)} articles parsed[/bold green]")


@cli.command()
def feeds():
    """List configured feeds."""
    table = Table(title="Configured Feeds")
    table.add_column("Header", style="cyan")
    table.add_column("Dialect")
    table.add_column("Agent")
    table.add_column("Topic")
    table.add_column("URL")

    for feed in FEEDS:
        table.add_row(feed.header, feed.dialect.value, feed.agent.value, feed.topic or "", feed.url)

    console.print(table)


@cli.command()
def purge():
    """Delete expired publication records."""
    console.print("[bold blue]🧹 Purging expired publication records[/bold blue]")

    try:
        settings = get_settings()
        DatabaseSchema(settings.storage.path).create_tables()
        db = DatabaseConnection(settings.storage.path, pool_size=1)
        try:
            deleted = PublicationStore(db).purge_expired()
        finally:
            db.close_all_connections()
    except CoreHeadlinesError as e:
        console.print(f"[bold red]❌ Purge failed: {e}[/bold red]")
        sys.exit(1)

    console.print(f"[bold green]✅ Deleted {deleted} expired records[/bold green]")


# Helper functions for configuration checks
def _check_storage_config(settings) -> tuple:
    return True, f"Path: {settings.storage.path}, batch size: {settings.storage.batch_size}"


def _check_logging_config(settings) -> tuple:
    return True, f"Level: {settings.logging.level.value}, Console: {settings.logging.console_logging}"


def _check_fetch_config(settings) -> tuple:
    if not settings.fetch.contact_email:
        return False, "Contact email not set (COREHEADLINES_FETCH__CONTACT_EMAIL)"
    return True, f"{len(FEEDS)} feeds, timeout {settings.fetch.request_timeout:.0f}s"


def _check_delivery_config(settings) -> tuple:
    missing = settings.delivery.missing_fields()
    if missing:
        return False, f"Missing: {', '.join(missing)}"
    return True, f"{settings.delivery.smtp_host}:{settings.delivery.smtp_port} -> {settings.delivery.to_address}"


def _check_economics_config(settings) -> tuple:
    if not settings.economics.enabled:
        return True, "Disabled"
    if not settings.economics.fred_api_key:
        return True, "Eurostat only (no FRED API key)"
    return True, "FRED and Eurostat"


if __name__ == "__main__":
    try:
        cli()
    except KeyboardInterrupt:
        console.print("\n[yellow]👋 CoreHeadlines interrupted by user[/yellow]")
        sys.exit(130)
