"""Command line entry point (``sprintflow``).

Usage:
    sprintflow serve --port 8000
    sprintflow sync-knowledge
    sprintflow project history <project-id> --user owner-1
    sprintflow sprint transition <sprint-id> AWAITING_APPROVAL --user owner-1
    sprintflow sprint approve <sprint-id> --user owner-1 --notes "Go"

Every command reads the same TOML configuration as the API server; see
``sprintflow.config.find_config_file`` for the search order.
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated, Optional

import typer

from sprintflow.cli import project as project_cli
from sprintflow.cli import sprint as sprint_cli
from sprintflow.cli.runtime import configure, console, get_config, run_with_services
from sprintflow.config import load_config
from sprintflow.logging import setup_logging

app = typer.Typer(
    name="sprintflow",
    help="Sprintflow: sprint lifecycle orchestration",
    no_args_is_help=True,
)
app.add_typer(project_cli.app, name="project", help="Manage projects")
app.add_typer(sprint_cli.app, name="sprint", help="Move, approve and reject sprints")


@app.callback()
def main_callback(
    config_path: Annotated[
        Optional[Path],
        typer.Option(
            "--config",
            "-c",
            help="Path to configuration file (TOML format)",
            exists=True,
            dir_okay=False,
            readable=True,
        ),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Log at DEBUG in console format"),
    ] = False,
) -> None:
    """Load configuration and set up logging before any command runs."""
    try:
        config = load_config(config_path)
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[red]Error loading configuration:[/red] {e}")
        raise typer.Exit(code=1)

    if verbose:
        config.logging.level = "DEBUG"
        config.logging.format = "console"
    setup_logging(config.logging)
    configure(config)


@app.command()
def serve(
    host: Annotated[
        Optional[str],
        typer.Option("--host", "-h", help="Interface to bind (default from config)"),
    ] = None,
    port: Annotated[
        Optional[int],
        typer.Option("--port", "-p", help="Port to listen on (default from config)"),
    ] = None,
) -> None:
    """Run the HTTP API under uvicorn."""
    import uvicorn

    from sprintflow.web.app import create_app

    config = get_config()
    bind = (host or config.web.host, port or config.web.port)

    console.print(f"[bold cyan]Sprintflow API[/bold cyan] on http://{bind[0]}:{bind[1]}")
    uvicorn.run(
        create_app(config),
        host=bind[0],
        port=bind[1],
        log_level=config.logging.level.lower(),
    )


@app.command("sync-knowledge")
def sync_knowledge() -> None:
    """Regenerate the knowledge base markdown files now."""
    if not get_config().knowledge.enabled:
        console.print("[yellow]Knowledge sync is disabled in configuration[/yellow]")
        return

    try:
        result = run_with_services(lambda services: services.knowledge.sync())
    except OSError as e:
        console.print(f"[red]Knowledge sync failed:[/red] {e}")
        raise typer.Exit(code=1)

    console.print(
        f"[green]Synced {result.project_count} projects "
        f"into {len(result.files_written)} files[/green]"
    )
    for path in result.files_written:
        console.print(f"  [dim]{path}[/dim]")


if __name__ == "__main__":
    app()
