"""
CLI for the asset cache.

Commands:
    assetcache fetch KEY URL - Resolve KEY, downloading from URL on a miss
    assetcache path KEY - Show where KEY is (or would be) cached
    assetcache wipe - Delete every cached file
    assetcache evict - Delete files older than N days
    assetcache config - Show current configuration
    assetcache version - Print version
"""

from __future__ import annotations

import asyncio
from datetime import timedelta
from typing import Annotated, Optional

import typer
from rich.console import Console
from rich.table import Table

from assetcache import __version__
from assetcache.cache.registry import build_registry
from assetcache.config import Settings, load_settings
from assetcache.exceptions import ConfigurationError
from assetcache.logging import setup_logging
from assetcache.storage.local import LocalStorage
from assetcache.types import MaintenanceResult

app = typer.Typer(
    name="assetcache",
    help="Local disk cache for remote assets keyed by stable identifiers",
    no_args_is_help=True,
)

console = Console()
error_console = Console(stderr=True)

ExtensionOption = Annotated[
    str,
    typer.Option("--ext", "-e", help="File extension including the dot, e.g. .jpg"),
]


def _load_settings() -> Settings:
    """Load settings or exit with a readable error."""
    try:
        settings = load_settings()
    except ConfigurationError as e:
        error_console.print(f"[red]Error:[/red] Configuration is invalid: {e}")
        raise typer.Exit(1)
    setup_logging(settings.LOG_LEVEL)
    return settings


def _storage_for(settings: Settings) -> LocalStorage:
    return LocalStorage(
        settings.BASE_DIR,
        timeout=settings.DOWNLOAD_TIMEOUT_SECONDS,
        max_attempts=settings.DOWNLOAD_MAX_ATTEMPTS,
    )


def _print_result(title: str, result: MaintenanceResult) -> None:
    table = Table(title=title, show_header=True)
    table.add_column("Deleted", style="green")
    table.add_column("Failed", style="red")
    table.add_column("Skipped", style="yellow")
    table.add_row(str(result.deleted), str(result.failed), str(result.skipped))
    console.print(table)
    for error in result.errors:
        error_console.print(f"[yellow]Warning:[/yellow] {error}")


@app.command()
def fetch(
    key: Annotated[str, typer.Argument(help="Stable logical key of the asset")],
    url: Annotated[str, typer.Argument(help="URL to download from on a cache miss")],
    ext: ExtensionOption = "",
) -> None:
    """Resolve KEY to a cached file, downloading from URL if it is missing."""
    settings = _load_settings()

    async def _run() -> str | None:
        async with _storage_for(settings) as storage:
            registry = build_registry(settings, storage)
            return await registry.get_entry(key).resolve_path(ext, lambda: url)

    path = asyncio.run(_run())
    if path is None:
        error_console.print(f"[red]Error:[/red] Could not cache {key}")
        raise typer.Exit(1)
    typer.echo(path)


@app.command()
def path(
    key: Annotated[str, typer.Argument(help="Stable logical key of the asset")],
    ext: ExtensionOption = "",
) -> None:
    """Show the deterministic cache path for KEY and whether it is cached."""
    settings = _load_settings()

    async def _run() -> tuple[str, bool]:
        async with _storage_for(settings) as storage:
            registry = build_registry(settings, storage)
            file_path = registry.deterministic_path(key, ext)
            return registry.format_path(file_path), await registry.file_exists(file_path)

    formatted, cached = asyncio.run(_run())
    typer.echo(formatted)
    status = "[green]cached[/green]" if cached else "[dim]not cached[/dim]"
    error_console.print(status)


@app.command()
def wipe(
    yes: Annotated[
        bool,
        typer.Option("--yes", "-y", help="Do not ask for confirmation"),
    ] = False,
) -> None:
    """Delete every cached file and recreate the empty cache directory."""
    settings = _load_settings()
    if not yes:
        typer.confirm(f"Delete everything under {settings.storage_dir}?", abort=True)

    async def _run() -> MaintenanceResult:
        async with _storage_for(settings) as storage:
            return await build_registry(settings, storage).wipe_all()

    _print_result("Wipe", asyncio.run(_run()))


@app.command()
def evict(
    days: Annotated[
        Optional[int],
        typer.Option("--days", "-d", min=0, help="Evict files older than this many days"),
    ] = None,
) -> None:
    """Delete cached files not modified within the last N days."""
    settings = _load_settings()
    max_age_days = days if days is not None else settings.DEFAULT_MAX_AGE_DAYS

    async def _run() -> MaintenanceResult:
        async with _storage_for(settings) as storage:
            registry = build_registry(settings, storage)
            return await registry.evict_older_than_age(timedelta(days=max_age_days))

    _print_result(f"Evict (older than {max_age_days} days)", asyncio.run(_run()))


@app.command()
def config() -> None:
    """Show current configuration."""
    settings = _load_settings()

    table = Table(title="Settings", show_header=True)
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")

    for key, value in settings.redacted_display().items():
        display_value = str(value) if value is not None else "[dim]not set[/dim]"
        table.add_row(key, display_value)

    console.print(table)
    console.print(f"[bold]Storage directory:[/bold] {settings.storage_dir}", soft_wrap=True)


@app.command()
def version() -> None:
    """Print the version number."""
    console.print(f"assetcache version {__version__}")


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
