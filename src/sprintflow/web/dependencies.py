"""FastAPI dependencies shared by the routers."""

from __future__ import annotations

from typing import Any

from fastapi import Header, Request

from sprintflow.orchestrator.errors import UnauthorizedError
from sprintflow.services import Services


def get_services(request: Request) -> Services:
    """Dependency that retrieves the service container from app state."""
    return request.app.state.services  # type: ignore[no-any-return]


def get_user_id(
    x_user_id: str | None = Header(default=None, alias="X-User-ID"),
) -> str:
    """Return the authenticated caller set by the upstream auth proxy.

    Raises:
        UnauthorizedError: If the header is missing or blank.
    """
    if x_user_id is None or not x_user_id.strip():
        raise UnauthorizedError()
    return x_user_id.strip()


def ok(data: Any) -> dict[str, Any]:
    """Wrap a payload in the success envelope."""
    return {"success": True, "data": data}
