"""Reinitiate recovery path.

When an external AI worker stalls, the owner can re-send the event that
started it without touching any state: ``project/kicked_off`` for a
project, ``sprint/approved`` for a sprint. Both operations are read-only
from the state machine's point of view. They write no status and no
history, so repeating them is always safe.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import date
from typing import TYPE_CHECKING
from uuid import UUID

import structlog
from pydantic import BaseModel

from sprintflow.database.models.artifact import ArtifactType
from sprintflow.database.models.base import utcnow
from sprintflow.database.models.project import ProjectStatus
from sprintflow.database.models.sprint import Sprint, SprintStatus
from sprintflow.database.queries.artifact import get_first_artifact
from sprintflow.database.queries.project import get_project
from sprintflow.database.queries.sprint import list_sprints
from sprintflow.integrations.events import EventName
from sprintflow.logging import bind_workflow_context
from sprintflow.orchestrator.access import ensure_project_access
from sprintflow.orchestrator.errors import NotFoundError, PreconditionFailedError
from sprintflow.orchestrator.handover import build_sprint_handoff
from sprintflow.orchestrator.sprint_gate import (
    gather_handoff_input,
    load_sprint_context,
    sprint_approved_payload,
)

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from sprintflow.orchestrator.side_effects import SideEffects

logger = structlog.get_logger(__name__)

REINITIABLE_PROJECT_STATUSES = (ProjectStatus.IN_PROGRESS, ProjectStatus.ACTIVE)


class ReinitiateResult(BaseModel):
    """Outcome of a reinitiate request.

    Attributes:
        project_id: Project the event was about.
        sprint_id: Sprint the event was about.
        sprint_number: Its number.
        event_name: Event re-sent.
        event_sent: Whether the event bus accepted it.
    """

    project_id: UUID
    sprint_id: UUID
    sprint_number: int
    event_name: str
    event_sent: bool


def select_active_sprint(sprints: list[Sprint]) -> Sprint | None:
    """Pick the sprint a reinitiated project resumes.

    The first IN_PROGRESS sprint, else the first not yet completed,
    else the first sprint.
    """
    for sprint in sprints:
        if sprint.status == SprintStatus.IN_PROGRESS:
            return sprint
    for sprint in sprints:
        if sprint.status != SprintStatus.COMPLETED:
            return sprint
    return sprints[0] if sprints else None


class RecoveryService:
    """Re-sends the events that drive external role workers."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        side_effects: SideEffects,
        clock: Callable[[], date] | None = None,
    ) -> None:
        self.session_factory = session_factory
        self.side_effects = side_effects
        self.clock = clock or (lambda: utcnow().date())
        self.logger = logger.bind(component="RecoveryService")

    async def reinitiate_project(self, project_id: UUID, user_id: str) -> ReinitiateResult:
        """Re-emit ``project/kicked_off`` for an in-progress project.

        Args:
            project_id: Project to reinitiate.
            user_id: Authenticated caller.

        Returns:
            ReinitiateResult; ``event_sent`` is False if delivery failed.

        Raises:
            NotFoundError: If the project does not exist.
            ForbiddenError: If the caller may not act on the project.
            PreconditionFailedError: If the project is not IN_PROGRESS or
                ACTIVE, has no sprints, or was never kicked off.
        """
        async with self.session_factory() as db_session:
            project = await get_project(db_session, project_id)
            if project is None:
                raise NotFoundError("Project", str(project_id))
            ensure_project_access(project, user_id)
            bind_workflow_context(str(project.id))

            if project.status not in REINITIABLE_PROJECT_STATUSES:
                raise PreconditionFailedError(
                    f"Project status is {project.status.value}. "
                    "Only IN_PROGRESS or ACTIVE projects can be reinitiated."
                )

            sprint = select_active_sprint(await list_sprints(db_session, project.id))
            if sprint is None:
                raise PreconditionFailedError("No sprints found for this project")

            handoff = await get_first_artifact(db_session, project.id, ArtifactType.HANDOFF)
            if handoff is None:
                raise PreconditionFailedError(
                    "No handoff document found. Project may not have been properly kicked off."
                )

        event_sent = await self.side_effects.emit(
            EventName.PROJECT_KICKED_OFF.value,
            {
                "project_id": str(project.id),
                "project_name": project.name,
                "project_slug": project.slug,
                "sprint_id": str(sprint.id),
                "sprint_number": sprint.number,
                "sprint_name": sprint.display_name,
                "handoff_content": handoff.content,
                "implementer_id": project.implementer_id,
                "reinitiated": True,
            },
        )
        self.logger.info(
            "project_reinitiated",
            sprint_id=str(sprint.id),
            event_sent=event_sent,
        )

        return ReinitiateResult(
            project_id=project.id,
            sprint_id=sprint.id,
            sprint_number=sprint.number,
            event_name=EventName.PROJECT_KICKED_OFF.value,
            event_sent=event_sent,
        )

    async def reinitiate_sprint(self, sprint_id: UUID, user_id: str) -> ReinitiateResult:
        """Re-emit ``sprint/approved`` for a sprint in progress.

        The sprint's stored ``handoff_content`` is sent when present;
        otherwise the sprint handoff is rebuilt from the plan documents.

        Raises:
            NotFoundError: If the sprint does not exist.
            ForbiddenError: If the caller may not act on the project.
            PreconditionFailedError: If the sprint is not IN_PROGRESS.
        """
        async with self.session_factory() as db_session:
            sprint, project = await load_sprint_context(db_session, sprint_id, user_id)
            if sprint.status != SprintStatus.IN_PROGRESS:
                raise PreconditionFailedError(
                    f"Sprint is not in progress. Current status: {sprint.status.value}"
                )
            handoff_input = await gather_handoff_input(db_session, project, sprint)

        content = sprint.handoff_content or build_sprint_handoff(handoff_input, self.clock())

        payload = sprint_approved_payload(project, sprint, handoff_input, content)
        payload["reinitiated"] = True
        event_sent = await self.side_effects.emit(EventName.SPRINT_APPROVED.value, payload)
        self.logger.info(
            "sprint_reinitiated",
            sprint_number=sprint.number,
            rebuilt_handoff=sprint.handoff_content is None,
            event_sent=event_sent,
        )

        return ReinitiateResult(
            project_id=project.id,
            sprint_id=sprint.id,
            sprint_number=sprint.number,
            event_name=EventName.SPRINT_APPROVED.value,
            event_sent=event_sent,
        )
