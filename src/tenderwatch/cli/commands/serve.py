"""
API server command.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer

from ..utils import ConfigOption, load_config_or_exit

app = typer.Typer(help="Serve the HTTP API")


@app.callback(invoke_without_command=True)
def serve(
    host: Optional[str] = typer.Option(None, "--host", help="Bind address (default: api.host)"),
    port: Optional[int] = typer.Option(None, "--port", "-p", help="Port (default: api.port)"),
    no_scheduler: bool = typer.Option(
        False,
        "--no-scheduler",
        help="Do not start the scrape timers on boot",
    ),
    config_path: Optional[Path] = ConfigOption,
) -> None:
    """Serve tender data and the admin API with uvicorn."""
    import uvicorn

    from tenderwatch.api import create_app

    config = load_config_or_exit(config_path)
    if no_scheduler:
        config.scheduler.autostart = False

    uvicorn.run(
        create_app(config),
        host=host or config.api.host,
        port=port or config.api.port,
        log_config=None,
    )
