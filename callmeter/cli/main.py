"""
CLI interface for CallMeter.

Provides command-line access to the usage store.
"""

import logging
import sys
from typing import List, Optional

import typer
from rich.console import Console
from rich.table import Table

from callmeter import __version__
from callmeter.config.loader import StoreConfig, load_store_config
from callmeter.demo.seed_demo_data import seed_demo_logs
from callmeter.storage.addresses import LOGS_URI
from callmeter.storage.db import get_connection, get_schema_version
from callmeter.storage.errors import UnrecognizedAddress
from callmeter.storage.provider import DataProvider, get_provider, reset_provider

app = typer.Typer()
console = Console()

EXIT_CODE_PASS = 0
EXIT_CODE_FAIL = 1


def _setup_logging(level: int) -> None:
    logging.basicConfig(
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        level=level,
        stream=sys.stderr,
    )


def _config(ctx: typer.Context) -> StoreConfig:
    return ctx.obj if isinstance(ctx.obj, StoreConfig) else StoreConfig()


def _provider(ctx: typer.Context) -> DataProvider:
    config = _config(ctx)
    return get_provider(config.db_path, config.schema_version)


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    config_path: Optional[str] = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to YAML store configuration"
    ),
    db_path: Optional[str] = typer.Option(
        None,
        "--db",
        help="Database file (overrides the configuration)"
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable debug logging"
    )
):
    """CallMeter usage store CLI."""
    try:
        config = load_store_config(config_path) if config_path else StoreConfig()
        if db_path:
            config = StoreConfig(
                db_path=db_path,
                schema_version=config.schema_version,
                log_level=config.log_level
            )
    except Exception as e:
        console.print(f"[red]Error loading configuration:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)

    _setup_logging(logging.DEBUG if verbose else config.logging_level)
    # Each invocation starts from a fresh provider bound to this config
    reset_provider()
    ctx.obj = config

    if ctx.invoked_subcommand is None:
        console.print("CallMeter - Use --help to see available commands")


@app.command()
def init(ctx: typer.Context):
    """Create the database, or upgrade it to the configured version."""
    try:
        provider = _provider(ctx)
        provider.helper.open().close()
        console.print(f"[green]✓[/] Database ready at {provider.db_path}")
        sys.exit(EXIT_CODE_PASS)
    except Exception as e:
        console.print(f"[red]Error initializing database:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)


@app.command()
def about(ctx: typer.Context):
    """Show version and database information."""
    config = _config(ctx)
    console.print(f"[bold]CallMeter[/bold] {__version__}")
    console.print(f"Database: {config.db_path}")
    conn = get_connection(config.db_path)
    try:
        on_disk = get_schema_version(conn)
    finally:
        conn.close()
    console.print(f"Schema version: {on_disk} (expected {config.schema_version})")


@app.command("type")
def mime_type(
    ctx: typer.Context,
    address: str = typer.Argument(..., help="Address such as logs or plans/3")
):
    """Print the MIME type of an address."""
    try:
        console.print(_provider(ctx).get_type(address))
    except UnrecognizedAddress as e:
        console.print(f"[red]Error:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)


@app.command()
def query(
    ctx: typer.Context,
    address: str = typer.Argument(..., help="Address such as logs or plans/3"),
    fields: Optional[List[str]] = typer.Option(
        None,
        "--field",
        "-f",
        help="Column to return; repeat for several"
    ),
    where: Optional[str] = typer.Option(
        None,
        "--where",
        "-w",
        help="SQL filter expression with ? placeholders"
    ),
    args: Optional[List[str]] = typer.Option(
        None,
        "--arg",
        "-a",
        help="Value bound to the next placeholder"
    ),
    order: Optional[str] = typer.Option(
        None,
        "--order",
        "-o",
        help="SQL ORDER BY clause"
    )
):
    """Query a table and print the rows."""
    try:
        with _provider(ctx).query(address, fields, where, args, order) as cursor:
            _display_cursor(address, cursor)
    except Exception as e:
        console.print(f"[red]Error:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)


@app.command("delete-logs")
def delete_logs(
    ctx: typer.Context,
    where: Optional[str] = typer.Option(
        None,
        "--where",
        "-w",
        help="SQL filter expression; deletes every log if omitted"
    ),
    args: Optional[List[str]] = typer.Option(
        None,
        "--arg",
        "-a",
        help="Value bound to the next placeholder"
    )
):
    """Delete log entries."""
    try:
        deleted = _provider(ctx).delete(LOGS_URI, where, args)
        console.print(f"[green]✓[/] Deleted {deleted} log entries")
    except Exception as e:
        console.print(f"[red]Error:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)


@app.command("seed-demo")
def seed_demo(ctx: typer.Context):
    """Insert demo log entries."""
    provider = _provider(ctx)
    try:
        count = seed_demo_logs(provider.db_path, provider.notifier, provider.helper.version)
        console.print(f"[green]✓[/] Inserted {count} demo log entries")
    except Exception as e:
        console.print(f"[red]Error:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)


def _display_cursor(address: str, cursor) -> None:
    """Render query results as a table."""
    if not len(cursor):
        console.print(f"\n[dim]No rows found for {address}.[/]")
        return

    table = Table(title=address)
    for column in cursor.columns:
        table.add_column(column)
    for row in cursor:
        table.add_row(*("" if value is None else str(value) for value in row))
    console.print(table)


if __name__ == "__main__":
    app()
