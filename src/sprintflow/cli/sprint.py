"""Sprint CLI commands: manual status changes and the approval gate."""

from __future__ import annotations

from typing import Annotated, Optional
from uuid import UUID

import typer
from rich.console import Console
from rich.panel import Panel

from sprintflow.cli.runtime import UserOption, run_with_services
from sprintflow.database.models.sprint import SprintStatus

app = typer.Typer(help="Sprint status and approval commands")
console = Console()


@app.command()
def approve(
    sprint_id: Annotated[UUID, typer.Argument(help="Sprint ID")],
    user: UserOption,
    notes: Annotated[
        Optional[str],
        typer.Option("--notes", "-n", help="Approval notes for the Implementer"),
    ] = None,
) -> None:
    """Approve a sprint awaiting approval and start it."""
    result = run_with_services(
        lambda services: services.sprint_gate.approve(sprint_id, user, notes)
    )
    event_line = (
        "[green]sent[/green]" if result.event_sent else "[yellow]not delivered[/yellow]"
    )
    console.print(
        Panel(
            f"[bold]Sprint:[/bold] {result.sprint_name}\n"
            f"[bold]Status:[/bold] {result.status.value}\n"
            f"[bold]Event:[/bold] {event_line}",
            title="Sprint Approved",
            border_style="green",
        )
    )


@app.command()
def reject(
    sprint_id: Annotated[UUID, typer.Argument(help="Sprint ID")],
    user: UserOption,
    reason: Annotated[
        Optional[str],
        typer.Option("--reason", "-r", help="Why the sprint is going back to planning"),
    ] = None,
) -> None:
    """Reject a sprint awaiting approval; it returns to PLANNED."""
    result = run_with_services(
        lambda services: services.sprint_gate.reject(sprint_id, user, reason)
    )
    console.print(
        Panel(
            f"[bold]Sprint:[/bold] {result.sprint_name}\n"
            f"[bold]Status:[/bold] {result.status.value}",
            title="Sprint Rejected",
            border_style="yellow",
        )
    )


@app.command()
def transition(
    sprint_id: Annotated[UUID, typer.Argument(help="Sprint ID")],
    target: Annotated[SprintStatus, typer.Argument(help="Target status")],
    user: UserOption,
    expected: Annotated[
        Optional[SprintStatus],
        typer.Option("--expected", "-e", help="Status you expect the sprint to be in"),
    ] = None,
) -> None:
    """Move a sprint to a new status, e.g. REVIEW or AWAITING_APPROVAL."""
    sprint = run_with_services(
        lambda services: services.lifecycle.change_sprint_status(
            sprint_id, user, target, expected
        )
    )
    console.print(
        Panel(
            f"[bold]Sprint:[/bold] {sprint.display_name}\n"
            f"[bold]Status:[/bold] {sprint.status.value}",
            title="Sprint Status Changed",
            border_style="green",
        )
    )
