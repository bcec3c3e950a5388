"""
TenderWatch CLI - Main entry point.

Scrapes the tender listings of the RGUKT campus websites, keeps them
cached and serves them over HTTP.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Optional

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.panel import Panel
from rich.traceback import install as install_rich_traceback

from tenderwatch import __app_name__, __version__

from .utils import ConfigOption, err_console, load_config_or_exit

# Load environment variables from .env (if present)
load_dotenv()

install_rich_traceback(show_locals=False, width=120)

console = Console()

app = typer.Typer(
    name=__app_name__,
    help="Tender scraper and cache for the RGUKT campus websites",
    rich_markup_mode="rich",
    no_args_is_help=True,
    pretty_exceptions_show_locals=False,
)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"[bold cyan]{__app_name__}[/bold cyan] version [green]{__version__}[/green]")
        raise typer.Exit()


@app.callback()
def main(
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        "-v",
        help="Show version and exit",
        callback=version_callback,
        is_eager=True,
    ),
) -> None:
    """TenderWatch - RGUKT tender scraper and cache."""
    pass


# =============================================================================
# Import and register subcommand modules
# =============================================================================

from .commands import schedule, scrape, serve, sources  # noqa: E402

app.add_typer(sources.app, name="sources", help="Inspect source configurations")
app.add_typer(scrape.app, name="scrape", help="Run one-shot scrapes")
app.add_typer(schedule.app, name="schedule", help="Run the scrape orchestrator")
app.add_typer(serve.app, name="serve", help="Serve the HTTP API")


# =============================================================================
# Init Command
# =============================================================================


@app.command()
def init(
    force: bool = typer.Option(
        False,
        "--force",
        "-f",
        help="Overwrite existing configuration",
    ),
) -> None:
    """Initialize TenderWatch directories and configuration.

    Creates required directories and a default configuration file, and
    creates the cache table when the SQL cache backend is configured.
    """
    from rich.progress import Progress, SpinnerColumn, TextColumn

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=console,
        transient=True,
    ) as progress:
        task = progress.add_task("Creating directories...", total=None)

        for dir_path in (Path("configs/sources"), Path("data"), Path("logs")):
            dir_path.mkdir(parents=True, exist_ok=True)

        progress.update(task, description="Creating default configuration...")

        app_config_path = Path("configs/app.yaml")
        if not app_config_path.exists() or force:
            _create_default_app_config(app_config_path)

        progress.update(task, description="Initializing cache...")

        config = load_config_or_exit(app_config_path)
        from tenderwatch.core.cache import build_cache_store

        async def _init_cache() -> None:
            store = await build_cache_store(config.cache)
            await store.close()

        asyncio.run(_init_cache())

        progress.update(task, description="Done!")

    console.print()
    console.print(Panel.fit(
        "[bold green]OK - TenderWatch initialized successfully![/bold green]\n\n"
        "Created:\n"
        "  - [cyan]configs/app.yaml[/cyan] - Application configuration\n"
        "  - [cyan]configs/sources/[/cyan] - Per-source overrides\n"
        "  - [cyan]data/[/cyan] - Cache database storage\n"
        "  - [cyan]logs/[/cyan] - Log files\n\n"
        "Next steps:\n"
        "  1. List sources: [yellow]tenderwatch sources list[/yellow]\n"
        "  2. Test a source: [yellow]tenderwatch scrape run --source basar[/yellow]\n"
        "  3. Serve the API: [yellow]tenderwatch serve[/yellow]",
        title="[bold]Initialization Complete[/bold]",
        border_style="green",
    ))


def _create_default_app_config(path: Path) -> None:
    """Create default app.yaml configuration."""
    default_config = """\
# TenderWatch Configuration
# Built-in sources are always loaded; entries under `sources` or files in
# `sources_dir` are merged over them by id.

sources_dir: configs/sources

logging:
  level: INFO
  file: logs/tenderwatch.log
  json_format: true
  rich_console: true

http:
  timeout_seconds: 15
  max_attempts: 3
  min_wait_seconds: 1
  max_wait_seconds: 30

cache:
  backend: sql
  database_url: ${TENDERWATCH_DATABASE_URL:-sqlite:///data/tenderwatch.db}
  ttl_seconds: 900
  fallback_ttl_seconds: 60

scheduler:
  autostart: true
  run_on_start: true
  min_interval_seconds: 300
  failure_backoff_base_minutes: 30
  failure_backoff_max_minutes: 240

query:
  stale_while_revalidate: true
  refresh_cooldown_seconds: 120

api:
  host: 127.0.0.1
  port: 8000

# sources:
#   - id: sklm
#     enabled: false
"""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(default_config, encoding="utf-8")


# =============================================================================
# Status Command
# =============================================================================


@app.command()
def status(config_path: Optional[Path] = ConfigOption) -> None:
    """Show configured sources and what the cache holds for each."""
    from rich.table import Table

    from tenderwatch.core.cache import build_cache_store, cache_key_for
    from tenderwatch.core.models import utcnow

    config = load_config_or_exit(config_path)

    async def _entries() -> dict:
        store = await build_cache_store(config.cache)
        try:
            return {
                source.id: await store.get(cache_key_for(source.id), allow_stale=True)
                for source in config.sources
            }
        finally:
            await store.close()

    try:
        entries = asyncio.run(_entries())
    except Exception as e:
        err_console.print(f"[red]Cannot open cache:[/red] {e}")
        err_console.print("[dim]Run[/dim] tenderwatch init [dim]first?[/dim]")
        raise typer.Exit(1)

    now = utcnow()
    table = Table(title="Cache", show_header=True, header_style="bold magenta")
    table.add_column("Source", style="cyan")
    table.add_column("Enabled", justify="center")
    table.add_column("Tenders", justify="right")
    table.add_column("Fetched")
    table.add_column("State", justify="center")

    for source in sorted(config.sources, key=lambda s: (s.priority, s.id)):
        entry = entries.get(source.id)
        if entry is None:
            table.add_row(source.id, "yes" if source.enabled else "no", "-", "Never", "[dim]empty[/dim]")
            continue
        if entry.is_fallback:
            state = "[yellow]fallback[/yellow]"
        elif entry.is_expired(now):
            state = "[red]stale[/red]"
        else:
            state = "[green]fresh[/green]"
        table.add_row(
            source.id,
            "yes" if source.enabled else "no",
            str(len(entry.data)),
            entry.fetched_at.strftime("%Y-%m-%d %H:%M"),
            state,
        )

    console.print()
    console.print(table)


# =============================================================================
# Entry Point
# =============================================================================


def run() -> None:
    """Run the CLI application."""
    app()


if __name__ == "__main__":
    run()
