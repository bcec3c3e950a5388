"""
Source inspection commands.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer
import yaml
from rich.console import Console
from rich.syntax import Syntax
from rich.table import Table

from ..utils import ConfigOption, err_console, load_config_or_exit

console = Console()

app = typer.Typer(
    help="Inspect tender source configurations",
    no_args_is_help=True,
)


@app.command("list")
def list_sources(
    config_path: Optional[Path] = ConfigOption,
    include_disabled: bool = typer.Option(
        True,
        "--include-disabled/--enabled-only",
        help="Show disabled sources too",
    ),
) -> None:
    """List configured tender sources."""
    config = load_config_or_exit(config_path)

    table = Table(title="Tender Sources", show_header=True, header_style="bold magenta")
    table.add_column("ID", style="cyan")
    table.add_column("Name")
    table.add_column("Strategy")
    table.add_column("Interval", justify="right")
    table.add_column("Priority", justify="right")
    table.add_column("Enabled", justify="center")
    table.add_column("Listing URL", style="dim")

    for source in sorted(config.sources, key=lambda s: (s.priority, s.id)):
        if not include_disabled and not source.enabled:
            continue
        strategy = source.strategy.kind
        if source.enumeration is not None:
            strategy += " (enumerating)"
        table.add_row(
            source.id,
            source.name,
            strategy,
            f"{source.scrape_interval_minutes}m",
            str(source.priority),
            "[green]yes[/green]" if source.enabled else "[red]no[/red]",
            source.listing_url,
        )

    console.print(table)


@app.command("show")
def show_source(
    source_id: str = typer.Argument(..., help="Source id"),
    config_path: Optional[Path] = ConfigOption,
) -> None:
    """Print the effective configuration of one source as YAML."""
    config = load_config_or_exit(config_path)
    source = config.get_source(source_id)
    if source is None:
        err_console.print(f"[red]Unknown source:[/red] {source_id}")
        raise typer.Exit(1)

    text = yaml.safe_dump(source.model_dump(mode="json"), sort_keys=False, allow_unicode=True)
    console.print(Syntax(text, "yaml", theme="ansi_dark"))
