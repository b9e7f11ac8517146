"""Project access checks.

A caller may act on a project when they own it or are its assigned
implementer. Authentication itself happens upstream; only the user id
reaches this module.
"""

from __future__ import annotations

from sprintflow.database.models.project import Project
from sprintflow.orchestrator.errors import ForbiddenError


def can_access_project(project: Project, user_id: str) -> bool:
    """Return True if ``user_id`` owns or implements ``project``."""
    if not user_id:
        return False
    return user_id == project.owner_id or (
        project.implementer_id is not None and user_id == project.implementer_id
    )


def ensure_project_access(project: Project, user_id: str) -> None:
    """Raise ForbiddenError unless ``user_id`` may act on ``project``."""
    if not can_access_project(project, user_id):
        raise ForbiddenError()
