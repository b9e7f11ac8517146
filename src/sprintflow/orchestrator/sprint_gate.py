"""Sprint approval gate.

The human-in-the-loop checkpoint between sprints. A sprint waiting in
AWAITING_APPROVAL is either approved (started, with a fresh sprint
handoff for the Implementer) or rejected (re-queued as PLANNED for
re-planning). Both moves go through the transition executor, so each
writes exactly one history row and loses cleanly to a concurrent writer.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import date, datetime
from typing import TYPE_CHECKING, Any
from uuid import UUID

import structlog
from pydantic import BaseModel

from sprintflow.database.models.artifact import ArtifactType
from sprintflow.database.models.base import utcnow
from sprintflow.database.models.project import Project
from sprintflow.database.models.sprint import Sprint, SprintStatus
from sprintflow.database.queries.artifact import get_first_artifact, get_latest_artifact
from sprintflow.database.queries.project import get_project
from sprintflow.database.queries.sprint import get_sprint, get_sprint_by_number
from sprintflow.integrations.events import EventName
from sprintflow.logging import bind_workflow_context
from sprintflow.orchestrator.access import ensure_project_access
from sprintflow.orchestrator.errors import InvalidTransitionError, NotFoundError
from sprintflow.orchestrator.handover import SprintHandoffInput, build_sprint_handoff

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from sprintflow.orchestrator.side_effects import SideEffects
    from sprintflow.orchestrator.state_machine import TransitionExecutor

logger = structlog.get_logger(__name__)


class SprintDecisionResult(BaseModel):
    """Outcome of an approval or rejection.

    Attributes:
        sprint_id: Sprint acted on.
        sprint_number: Its number.
        sprint_name: Its display name.
        status: Status after the decision.
        started_at: Start stamp, set on approval.
        event_sent: Whether the follow-up event was delivered; None when it
            was sent in the background.
    """

    sprint_id: UUID
    sprint_number: int
    sprint_name: str
    status: SprintStatus
    started_at: datetime | None = None
    event_sent: bool | None = None


# ---------------------------------------------------------------------------
# Shared helpers (also used by the reinitiate path)
# ---------------------------------------------------------------------------


async def load_sprint_context(
    db_session: AsyncSession,
    sprint_id: UUID,
    user_id: str,
) -> tuple[Sprint, Project]:
    """Load a sprint with its project and check access.

    Raises:
        NotFoundError: If the sprint or its project is missing.
        ForbiddenError: If the caller may not act on the project.
    """
    sprint = await get_sprint(db_session, sprint_id)
    if sprint is None:
        raise NotFoundError("Sprint", str(sprint_id))
    project = await get_project(db_session, sprint.project_id)
    if project is None:
        raise NotFoundError("Project", str(sprint.project_id))
    ensure_project_access(project, user_id)
    bind_workflow_context(str(project.id), str(sprint.id))
    return sprint, project


async def gather_handoff_input(
    db_session: AsyncSession,
    project: Project,
    sprint: Sprint,
    approval_notes: str | None = None,
) -> SprintHandoffInput:
    """Collect the plan documents and prior review for a sprint handoff."""
    backlog = await get_latest_artifact(db_session, project.id, ArtifactType.BACKLOG)
    architecture = await get_latest_artifact(db_session, project.id, ArtifactType.ARCHITECTURE)
    original = await get_first_artifact(db_session, project.id, ArtifactType.HANDOFF)

    previous_review = ""
    if sprint.number > 1:
        previous = await get_sprint_by_number(db_session, project.id, sprint.number - 1)
        if previous is not None and previous.review_summary:
            previous_review = previous.review_summary

    return SprintHandoffInput(
        project_name=project.name,
        sprint_number=sprint.number,
        sprint_name=sprint.name,
        sprint_goal=sprint.goal,
        backlog=backlog.content if backlog else "",
        architecture=architecture.content if architecture else "",
        original_handoff=original.content if original else "",
        previous_review=previous_review,
        approval_notes=approval_notes or "",
    )


def sprint_approved_payload(
    project: Project,
    sprint: Sprint,
    handoff: SprintHandoffInput,
    handoff_content: str,
    approval_notes: str | None = None,
) -> dict[str, Any]:
    """Build the ``sprint/approved`` event data."""
    return {
        "project_id": str(project.id),
        "project_name": project.name,
        "project_slug": project.slug,
        "sprint_id": str(sprint.id),
        "sprint_number": sprint.number,
        "sprint_name": sprint.display_name,
        "sprint_goal": sprint.goal,
        "approval_notes": approval_notes,
        "previous_sprint_review": handoff.previous_review or None,
        "handoff_content": handoff_content,
        "backlog_content": handoff.backlog or None,
        "architecture_content": handoff.architecture or None,
    }


# ---------------------------------------------------------------------------
# Gate
# ---------------------------------------------------------------------------


class SprintApprovalGate:
    """Approves or rejects sprints waiting for the owner."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        executor: TransitionExecutor,
        side_effects: SideEffects,
        clock: Callable[[], date] | None = None,
    ) -> None:
        self.session_factory = session_factory
        self.executor = executor
        self.side_effects = side_effects
        self.clock = clock or (lambda: utcnow().date())
        self.logger = logger.bind(component="SprintApprovalGate")

    async def approve(
        self,
        sprint_id: UUID,
        user_id: str,
        approval_notes: str | None = None,
    ) -> SprintDecisionResult:
        """Start a sprint that is awaiting approval.

        Moves the sprint AWAITING_APPROVAL -> IN_PROGRESS (stamping
        ``started_at``), stores a freshly built sprint handoff in
        ``handoff_content`` and, after commit, emits ``sprint/approved``.

        Args:
            sprint_id: Sprint to approve.
            user_id: Authenticated caller.
            approval_notes: Optional notes passed on to the Implementer.

        Returns:
            SprintDecisionResult with ``event_sent`` reporting delivery.

        Raises:
            NotFoundError: If the sprint does not exist.
            ForbiddenError: If the caller may not act on the project.
            InvalidTransitionError: If the sprint is not awaiting approval.
            ConflictError: If a concurrent decision won.
        """
        async with self.session_factory() as db_session:
            sprint, project = await load_sprint_context(db_session, sprint_id, user_id)
            if sprint.status != SprintStatus.AWAITING_APPROVAL:
                raise InvalidTransitionError(
                    sprint.status, SprintStatus.IN_PROGRESS, f"sprint {sprint_id}"
                )

            handoff = await gather_handoff_input(db_session, project, sprint, approval_notes)
            content = build_sprint_handoff(handoff, self.clock())

            sprint = await self.executor.apply_sprint_transition(
                db_session,
                sprint.id,
                SprintStatus.AWAITING_APPROVAL,
                SprintStatus.IN_PROGRESS,
                user_id,
                handoff_content=content,
            )
            await db_session.commit()

        self.logger.info(
            "sprint_approved",
            sprint_number=sprint.number,
            approved_by=user_id,
        )

        event_sent = await self.side_effects.emit(
            EventName.SPRINT_APPROVED.value,
            sprint_approved_payload(project, sprint, handoff, content, approval_notes),
        )
        self.side_effects.trigger_sync()

        return SprintDecisionResult(
            sprint_id=sprint.id,
            sprint_number=sprint.number,
            sprint_name=sprint.display_name,
            status=sprint.status,
            started_at=sprint.started_at,
            event_sent=event_sent,
        )

    async def reject(
        self,
        sprint_id: UUID,
        user_id: str,
        reason: str | None = None,
    ) -> SprintDecisionResult:
        """Send a sprint awaiting approval back to PLANNED.

        No other sprint is touched. A ``sprint/rejected`` notice is sent in
        the background after commit.

        Raises:
            NotFoundError: If the sprint does not exist.
            ForbiddenError: If the caller may not act on the project.
            InvalidTransitionError: If the sprint is not awaiting approval.
            ConflictError: If a concurrent decision won.
        """
        async with self.session_factory() as db_session:
            sprint, project = await load_sprint_context(db_session, sprint_id, user_id)
            if sprint.status != SprintStatus.AWAITING_APPROVAL:
                raise InvalidTransitionError(
                    sprint.status, SprintStatus.PLANNED, f"sprint {sprint_id}"
                )

            sprint = await self.executor.apply_sprint_transition(
                db_session,
                sprint.id,
                SprintStatus.AWAITING_APPROVAL,
                SprintStatus.PLANNED,
                user_id,
            )
            await db_session.commit()

        self.logger.info(
            "sprint_rejected",
            sprint_number=sprint.number,
            rejected_by=user_id,
        )

        self.side_effects.emit_detached(
            EventName.SPRINT_REJECTED.value,
            {
                "project_id": str(project.id),
                "project_name": project.name,
                "sprint_id": str(sprint.id),
                "sprint_number": sprint.number,
                "sprint_name": sprint.display_name,
                "rejection_reason": reason,
            },
        )
        self.side_effects.trigger_sync()

        return SprintDecisionResult(
            sprint_id=sprint.id,
            sprint_number=sprint.number,
            sprint_name=sprint.display_name,
            status=sprint.status,
            started_at=sprint.started_at,
        )
