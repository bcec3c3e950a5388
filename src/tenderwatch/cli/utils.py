"""
Helpers shared by CLI commands.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from tenderwatch.core.config import AppConfig, ConfigError, load_app_config
from tenderwatch.core.logging import setup_logging
from tenderwatch.core.models import SourceJobState, TenderRecord

err_console = Console(stderr=True)

ConfigOption = typer.Option(
    None,
    "--config",
    "-c",
    help="Path to app.yaml (default: $TENDERWATCH_CONFIG or configs/app.yaml)",
)


def load_config_or_exit(config_path: Optional[Path], log_level: Optional[str] = None) -> AppConfig:
    """Load configuration and set up logging, exiting with code 1 on errors."""
    try:
        config = load_app_config(config_path)
    except ConfigError as e:
        err_console.print(f"[red]Error loading configuration:[/red] {e}")
        if e.details:
            err_console.print(f"[dim]{e.details}[/dim]")
        raise typer.Exit(1)

    setup_logging(
        level=log_level or config.logging.level,
        log_file=config.logging.file,
        json_format=config.logging.json_format,
        rich_console=config.logging.rich_console,
    )
    return config


def resolve_source_ids(config: AppConfig, source: Optional[str], all_sources: bool) -> list[str]:
    """Validate --source/--all and return the source ids to act on."""
    if not source and not all_sources:
        err_console.print("[red]Specify --source <id> or --all[/red]")
        err_console.print(f"[dim]Available sources: {', '.join(s.id for s in config.sources)}[/dim]")
        raise typer.Exit(1)

    if source and all_sources:
        err_console.print("[red]Cannot specify both --source and --all[/red]")
        raise typer.Exit(1)

    if all_sources:
        return [s.id for s in sorted(config.enabled_sources, key=lambda s: s.priority)]

    if config.get_source(source) is None:
        err_console.print(f"[red]Unknown source:[/red] {source}")
        err_console.print(f"[dim]Available sources: {', '.join(s.id for s in config.sources)}[/dim]")
        raise typer.Exit(1)
    return [source]


def _fmt_time(value) -> str:
    return value.strftime("%Y-%m-%d %H:%M:%S") if value else "[dim]-[/dim]"


def job_status_table(statuses: dict[str, SourceJobState]) -> Table:
    """Rich table of orchestrator job states."""
    table = Table(title="Scrape Jobs", show_header=True, header_style="bold magenta")
    table.add_column("Source", style="cyan")
    table.add_column("Status", justify="center")
    table.add_column("Tenders", justify="right")
    table.add_column("OK", justify="right")
    table.add_column("Errors", justify="right")
    table.add_column("Last Run")
    table.add_column("Next Run")
    table.add_column("Last Error", max_width=50)

    styles = {"succeeded": "green", "failed": "red", "running": "yellow", "idle": "dim"}

    for state in sorted(statuses.values(), key=lambda s: (s.priority, s.source_id)):
        style = styles.get(state.status.value, "default")
        table.add_row(
            state.source_id,
            f"[{style}]{state.status.value}[/{style}]",
            str(state.last_record_count) if state.last_record_count is not None else "-",
            str(state.success_count),
            str(state.error_count),
            _fmt_time(state.last_run_at),
            _fmt_time(state.next_scheduled_run_at),
            state.last_error or "",
        )
    return table


def tender_table(title: str, records: list[TenderRecord], limit: int) -> Table:
    """Rich table previewing scraped tenders."""
    table = Table(title=title, show_header=True, header_style="bold magenta")
    table.add_column("#", justify="right", style="dim")
    table.add_column("Name", style="cyan", max_width=60)
    table.add_column("Posted")
    table.add_column("Closing")
    table.add_column("Links", justify="right")

    for index, record in enumerate(records[:limit], start=1):
        table.add_row(
            str(index),
            record.name,
            record.posted_date or "[dim]-[/dim]",
            record.closing_date or "[dim]-[/dim]",
            str(len(record.download_links)),
        )
    return table
