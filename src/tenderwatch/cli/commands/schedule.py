"""
Orchestrator commands.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console

from ..utils import ConfigOption, job_status_table, load_config_or_exit, resolve_source_ids

console = Console()

app = typer.Typer(
    help="Run the scrape orchestrator",
    no_args_is_help=True,
)


@app.command("start")
def start_scheduler(
    config_path: Optional[Path] = ConfigOption,
    status_every: int = typer.Option(
        300,
        "--status-every",
        help="Print the job table every N seconds (0 disables)",
    ),
) -> None:
    """Run the orchestrator in the foreground until interrupted."""
    config = load_config_or_exit(config_path)

    from tenderwatch.core.services import build_services

    async def _run() -> None:
        services = await build_services(config)
        services.orchestrator.start()
        console.print("[green]Scheduler running.[/green] Press Ctrl+C to stop.")
        try:
            while True:
                await asyncio.sleep(status_every or 3600)
                if status_every:
                    console.print(job_status_table(services.orchestrator.get_job_statuses()))
        finally:
            console.print("[yellow]Stopping scheduler, waiting for in-flight runs...[/yellow]")
            await services.aclose()

    try:
        asyncio.run(_run())
    except KeyboardInterrupt:
        console.print("[dim]Scheduler stopped.[/dim]")


@app.command("run-now")
def run_now(
    source: Optional[str] = typer.Option(
        None,
        "--source",
        "-s",
        help="Source id to run",
    ),
    all_sources: bool = typer.Option(
        False,
        "--all",
        "-a",
        help="Run all enabled sources",
    ),
    config_path: Optional[Path] = ConfigOption,
) -> None:
    """Force an immediate run and store the results in the cache."""
    config = load_config_or_exit(config_path)
    source_ids = resolve_source_ids(config, source, all_sources)

    from tenderwatch.core.services import build_services

    async def _run() -> dict[str, bool]:
        services = await build_services(config)
        try:
            if all_sources:
                executed = await services.orchestrator.force_run_all()
            else:
                executed = {source_ids[0]: await services.orchestrator.force_run(source_ids[0])}
            console.print(job_status_table(services.orchestrator.get_job_statuses()))
            return executed
        finally:
            await services.aclose()

    executed = asyncio.run(_run())
    skipped = [source_id for source_id, ran in executed.items() if not ran]
    if skipped:
        console.print(f"[yellow]Not started:[/yellow] {', '.join(skipped)}")
