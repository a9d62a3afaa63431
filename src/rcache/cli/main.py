"""
CLI for the cache.

Commands:
    rcache config - Show current configuration
    rcache health - Check the backing store over an isolated connection
    rcache get NAMESPACE KEY_JSON - Show a cached value
    rcache remove NAMESPACE KEY_JSON - Evict a cached value
    rcache version - Print version
"""

from __future__ import annotations

import asyncio
from typing import Annotated, Any

import orjson
import typer
from rich.console import Console
from rich.table import Table

from rcache import __version__
from rcache.cache import AsyncCache
from rcache.config import Settings, clear_settings_cache, get_settings
from rcache.connection import ConnectionManager
from rcache.exceptions import CacheError, RCacheError
from rcache.logging import setup_logging

app = typer.Typer(
    name="rcache",
    help="Inspect and manage the read-through cache",
    no_args_is_help=True,
)

console = Console()
error_console = Console(stderr=True)


def _get_settings_safe() -> Settings | None:
    """Get settings, returning None if configuration is invalid."""
    try:
        clear_settings_cache()
        return get_settings()
    except ValueError:
        return None


def _require_settings() -> Settings:
    settings = _get_settings_safe()
    if settings is None:
        error_console.print(
            "[red]Error:[/red] Configuration is invalid. "
            "Run 'rcache config' to see what's wrong."
        )
        raise typer.Exit(1)
    setup_logging(settings.LOG_LEVEL, settings.LOG_FILE)
    return settings


def _parse_key(key_json: str) -> Any:
    try:
        return orjson.loads(key_json)
    except orjson.JSONDecodeError:
        error_console.print(f"[red]Error:[/red] KEY must be JSON, got {key_json!r}")
        raise typer.Exit(2)


async def _with_cache(settings: Settings, namespace: str, action: str, key: Any) -> Any:
    connection = ConnectionManager(settings)
    try:
        cache = await AsyncCache.new(namespace, settings.default_ttl).build(connection)
        if action == "get":
            return await cache.get(key)
        return await cache.remove(key)
    finally:
        await connection.close()


def _run_cache_command(namespace: str, key_json: str, action: str) -> None:
    settings = _require_settings()
    key = _parse_key(key_json)

    try:
        value = asyncio.run(_with_cache(settings, namespace, action, key))
    except RCacheError:
        error_console.print(f"[red]Error:[/red] Failed to {action} cache entry.")
        raise typer.Exit(1)

    if value is None:
        console.print("[dim]not cached[/dim]")
        return
    console.print_json(orjson.dumps(value).decode("utf-8"))


@app.command()
def config() -> None:
    """Show current configuration with the store password redacted."""
    console.print()
    console.print("[bold]Cache Configuration[/bold]")
    console.print()

    settings = _get_settings_safe()

    if settings is None:
        error_console.print("[red]Configuration is invalid.[/red]")
        error_console.print()
        error_console.print(
            "STORE_URL must start with memory://, sqlite://, http:// or https://"
        )
        error_console.print("Create a .env file or set environment variables.")
        raise typer.Exit(1)

    table = Table(title="Settings", show_header=True)
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")

    for key, value in settings.redacted_display().items():
        display_value = str(value) if value is not None else "[dim]not set[/dim]"
        table.add_row(key, display_value)

    console.print(table)
    console.print()


@app.command()
def health() -> None:
    """Connect to the backing store and print its version."""
    settings = _require_settings()
    connection = ConnectionManager(settings)

    try:
        store_version = asyncio.run(connection.health())
    except CacheError:
        error_console.print(
            f"[red]Unhealthy:[/red] could not reach the store at {settings.STORE_URL}"
        )
        raise typer.Exit(1)

    console.print(f"[green]Healthy:[/green] {store_version}")


@app.command()
def get(
    namespace: Annotated[str, typer.Argument(help="Cache namespace")],
    key_json: Annotated[str, typer.Argument(help='Cache key as JSON, e.g. \'"user-42"\'')],
) -> None:
    """Show the live value cached under a key."""
    _run_cache_command(namespace, key_json, "get")


@app.command()
def remove(
    namespace: Annotated[str, typer.Argument(help="Cache namespace")],
    key_json: Annotated[str, typer.Argument(help="Cache key as JSON")],
) -> None:
    """Evict a key and show the value it held."""
    _run_cache_command(namespace, key_json, "remove")


@app.command()
def version() -> None:
    """Print the version number."""
    console.print(f"rcache version {__version__}")


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
