"""
One-shot scrape commands.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Optional

import orjson
import typer
from rich.console import Console

from ..utils import ConfigOption, err_console, load_config_or_exit, resolve_source_ids, tender_table

console = Console()

app = typer.Typer(
    help="Run scrapes without the scheduler or cache",
    no_args_is_help=True,
)


@app.command("run")
def run_scrape(
    source: Optional[str] = typer.Option(
        None,
        "--source",
        "-s",
        help="Source id to scrape",
    ),
    all_sources: bool = typer.Option(
        False,
        "--all",
        "-a",
        help="Scrape all enabled sources",
    ),
    preview: int = typer.Option(
        10,
        "--preview",
        "-n",
        help="Number of tenders to show per source",
    ),
    output: Optional[Path] = typer.Option(
        None,
        "--output",
        "-o",
        help="Write all scraped tenders to this JSON file",
    ),
    config_path: Optional[Path] = ConfigOption,
) -> None:
    """Scrape one or more sources and print the results.

    Examples:
        tenderwatch scrape run --source basar
        tenderwatch scrape run --all --preview 5
        tenderwatch scrape run -s nuzvidu -o nuzvidu.json
    """
    config = load_config_or_exit(config_path)
    source_ids = resolve_source_ids(config, source, all_sources)

    from tenderwatch.core.adapters import ScrapeError, create_adapter
    from tenderwatch.core.backends import HttpBackend

    async def _scrape() -> dict[str, list]:
        results: dict[str, list] = {}
        async with HttpBackend(config.http) as backend:
            for source_id in source_ids:
                adapter = create_adapter(config.get_source(source_id), backend)
                with console.status(f"Scraping {adapter.name}..."):
                    try:
                        records = await adapter.scrape()
                    except ScrapeError as e:
                        err_console.print(f"[red]{source_id} failed ({e.kind}):[/red] {e.cause}")
                        continue
                results[source_id] = records
                console.print(tender_table(f"{adapter.name} - {len(records)} tenders", records, preview))
        return results

    results = asyncio.run(_scrape())

    if output is not None:
        payload = {
            source_id: [record.to_dict() for record in records]
            for source_id, records in results.items()
        }
        output.write_bytes(orjson.dumps(payload, option=orjson.OPT_INDENT_2))
        console.print(f"[green]Wrote {sum(len(r) for r in results.values())} tenders to {output}[/green]")

    if len(results) < len(source_ids):
        raise typer.Exit(1)
