"""Shared state and helpers for CLI commands.

The root callback in ``sprintflow.main`` loads the configuration once and
hands it to ``configure``; commands then run their async work through
``run_with_services``, which builds and closes a service container per
invocation.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import Annotated, TypeVar

import typer
from rich.console import Console

from sprintflow.config import SprintflowConfig
from sprintflow.orchestrator.errors import SprintflowError
from sprintflow.services import Services

T = TypeVar("T")

console = Console()

UserOption = Annotated[
    str,
    typer.Option("--user", "-u", envvar="SPRINTFLOW_USER", help="Acting user id"),
]

_config: SprintflowConfig | None = None


def configure(config: SprintflowConfig) -> None:
    global _config
    _config = config


def get_config() -> SprintflowConfig:
    """Return the configuration loaded by the root callback.

    Raises:
        RuntimeError: If no command callback has run yet
    """
    if _config is None:
        raise RuntimeError("CLI configuration not loaded. Call configure() first.")
    return _config


def run_with_services(operation: Callable[[Services], Awaitable[T]]) -> T:
    """Run one async operation against a fresh service container.

    Sprintflow errors are printed with their code and exit with status 1.
    """
    config = get_config()

    async def _run() -> T:
        services = Services.create(config)
        try:
            return await operation(services)
        finally:
            await services.close()

    try:
        return asyncio.run(_run())
    except SprintflowError as e:
        console.print(f"[red]{e.code}:[/red] {e.message}")
        raise typer.Exit(code=1)
