"""Workflow transition protocol.

Hands a sprint from one role to the next (Implementer -> Reviewer -> QA ->
PM) and applies the secondary effects of the move:

1. Load the project and check the caller may act on it.
2. Validate the workflow edge against the status registry and check the
   sprint sits in the status ``from_status`` maps to.
3. Build (or accept) the handoff document and mirror it to disk. Mirroring
   is best effort.
4-7. In one transaction: check the sprint still sits in the status
   ``from_status`` maps to, append the HANDOFF artifact, append the audit
   entry, swap the sprint to its mapped status and, when the sprint
   completes, either start the next sprint or complete the project.
8. Return a structured result.

Any unexpected failure inside steps 4-7 rolls the whole unit back and is
reported as InternalError. Expected errors (conflicts, missing sprint)
keep their own code.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import date
from typing import TYPE_CHECKING
from uuid import UUID

import structlog
from pydantic import BaseModel, Field

from sprintflow.database.models.artifact import ArtifactType
from sprintflow.database.models.base import utcnow
from sprintflow.database.models.conversation import WORKFLOW_TRANSITION
from sprintflow.database.models.project import Project
from sprintflow.database.models.sprint import Sprint, SprintStatus
from sprintflow.database.queries.artifact import create_artifact
from sprintflow.database.queries.conversation import create_conversation
from sprintflow.database.queries.project import get_project
from sprintflow.database.queries.sprint import (
    compare_and_set_sprint_status,
    get_sprint,
)
from sprintflow.logging import bind_workflow_context
from sprintflow.orchestrator.access import ensure_project_access
from sprintflow.orchestrator.errors import (
    ConflictError,
    InternalError,
    InvalidTransitionError,
    NotFoundError,
    SprintflowError,
)
from sprintflow.orchestrator.handover import build_role_handoff, handoff_filename
from sprintflow.orchestrator.status_registry import (
    WorkflowRole,
    WorkflowStatus,
    is_legal_workflow_transition,
    sprint_status_for,
)

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from sprintflow.integrations.file_mirror import HandoffMirror
    from sprintflow.orchestrator.side_effects import SideEffects
    from sprintflow.orchestrator.state_machine import TransitionExecutor

logger = structlog.get_logger(__name__)

SUMMARY_MAX_LENGTH = 5000
HANDOFF_MAX_LENGTH = 50000

# Sprints the role cycle never moves; the owner has to act first
OUTSIDE_WORKFLOW_STATUSES = frozenset(
    {SprintStatus.PLANNED, SprintStatus.BLOCKED, SprintStatus.AWAITING_APPROVAL}
)


# ---------------------------------------------------------------------------
# Request / result models
# ---------------------------------------------------------------------------


class WorkflowTransitionRequest(BaseModel):
    """A role-to-role hand-off request.

    Attributes:
        project_id: Project the sprint belongs to.
        sprint_id: Sprint being handed off.
        from_status: Workflow status the caller is leaving.
        to_status: Workflow status the caller is entering.
        from_role: Role handing off.
        to_role: Role receiving the work.
        decision: Decision tag, e.g. APPROVE or REQUEST_CHANGES.
        summary: Summary of the work, 1-5000 characters.
        handoff_content: Pre-built handoff document, up to 50000 characters.
    """

    project_id: UUID
    sprint_id: UUID
    from_status: WorkflowStatus
    to_status: WorkflowStatus
    from_role: WorkflowRole
    to_role: WorkflowRole
    decision: str = Field(min_length=1, max_length=100)
    summary: str = Field(min_length=1, max_length=SUMMARY_MAX_LENGTH)
    handoff_content: str | None = Field(default=None, max_length=HANDOFF_MAX_LENGTH)


class TransitionEndpoint(BaseModel):
    """One side of a hand-off."""

    status: WorkflowStatus
    role: WorkflowRole


class TransitionSummary(BaseModel):
    """The hand-off that was applied."""

    source: TransitionEndpoint
    target: TransitionEndpoint
    decision: str


class HandoffReference(BaseModel):
    """Where the handoff document ended up.

    Attributes:
        artifact_id: Id of the stored HANDOFF artifact.
        filename: Handoff filename.
        stored: Whether the artifact was persisted.
        mirrored: Whether the file mirror write succeeded.
    """

    artifact_id: UUID
    filename: str
    stored: bool = True
    mirrored: bool = False


class WorkflowTransitionResult(BaseModel):
    """Outcome of a workflow transition.

    Attributes:
        transition: The applied hand-off.
        handoff: Stored handoff reference.
        sprint_status: Sprint status after the call.
        next_sprint_id: Sprint started automatically, if any.
        project_completed: True if this completed the last sprint.
    """

    transition: TransitionSummary
    handoff: HandoffReference
    sprint_status: SprintStatus
    next_sprint_id: UUID | None = None
    project_completed: bool = False


# ---------------------------------------------------------------------------
# Protocol
# ---------------------------------------------------------------------------


class WorkflowTransitionProtocol:
    """Coordinates a workflow hand-off end to end."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        executor: TransitionExecutor,
        side_effects: SideEffects,
        mirror: HandoffMirror | None = None,
        clock: Callable[[], date] | None = None,
    ) -> None:
        self.session_factory = session_factory
        self.executor = executor
        self.side_effects = side_effects
        self.mirror = mirror
        self.clock = clock or (lambda: utcnow().date())
        self.logger = logger.bind(component="WorkflowTransitionProtocol")

    async def transition(
        self,
        request: WorkflowTransitionRequest,
        user_id: str,
    ) -> WorkflowTransitionResult:
        """Apply a workflow hand-off.

        Args:
            request: Validated transition request.
            user_id: Authenticated caller.

        Returns:
            WorkflowTransitionResult describing every effect applied.

        Raises:
            NotFoundError: If the project or sprint does not exist.
            ForbiddenError: If the caller may not act on the project.
            InvalidTransitionError: If the workflow edge is illegal, the
                sprint is PLANNED, BLOCKED or awaiting approval, or the
                sprint or project is already terminal.
            ConflictError: If the sprint is no longer in the status
                ``from_status`` maps to.
            InternalError: If persisting the hand-off failed.
        """
        bind_workflow_context(str(request.project_id), str(request.sprint_id))

        async with self.session_factory() as db_session:
            project = await get_project(db_session, request.project_id)
        if project is None:
            raise NotFoundError("Project", str(request.project_id))
        ensure_project_access(project, user_id)

        if not is_legal_workflow_transition(request.from_status, request.to_status):
            raise InvalidTransitionError(request.from_status, request.to_status)

        expected = sprint_status_for(request.from_status)
        target = sprint_status_for(request.to_status)
        async with self.session_factory() as db_session:
            sprint = await self._load_sprint(db_session, project, request.sprint_id)
        self._check_sprint(sprint, expected, target)

        today = self.clock()
        filename = handoff_filename(request.from_role, request.to_role)
        content = request.handoff_content or build_role_handoff(
            from_role=request.from_role,
            to_role=request.to_role,
            project_name=project.name,
            sprint_label=str(request.sprint_id),
            decision=request.decision,
            summary=request.summary,
            today=today,
        )

        mirrored = False
        if self.mirror is not None:
            mirrored = await self.mirror.write(project.slug, filename, content)

        try:
            async with self.session_factory() as db_session:
                result = await self._persist(
                    db_session, project, request, user_id, filename, content, today
                )
                await db_session.commit()
        except SprintflowError:
            raise
        except Exception as e:
            self.logger.exception(
                "workflow_transition_failed",
                from_status=request.from_status.value,
                to_status=request.to_status.value,
            )
            raise InternalError("Failed to process workflow transition") from e

        result.handoff.mirrored = mirrored
        self.logger.info(
            "workflow_transition",
            from_status=request.from_status.value,
            to_status=request.to_status.value,
            from_role=request.from_role.value,
            to_role=request.to_role.value,
            decision=request.decision,
            sprint_status=result.sprint_status.value,
            next_sprint_id=str(result.next_sprint_id) if result.next_sprint_id else None,
            project_completed=result.project_completed,
        )
        self.side_effects.trigger_sync()
        return result

    async def _persist(
        self,
        db_session: AsyncSession,
        project: Project,
        request: WorkflowTransitionRequest,
        user_id: str,
        filename: str,
        content: str,
        today: date,
    ) -> WorkflowTransitionResult:
        sprint = await self._load_sprint(db_session, project, request.sprint_id)
        expected = sprint_status_for(request.from_status)
        target = sprint_status_for(request.to_status)
        self._check_sprint(sprint, expected, target)

        artifact = await create_artifact(
            db_session,
            project.id,
            ArtifactType.HANDOFF,
            filename,
            content,
            version=1,
        )
        await create_conversation(
            db_session,
            project.id,
            role=request.from_role.value,
            entry_type=WORKFLOW_TRANSITION,
            input={
                "from_status": request.from_status.value,
                "to_status": request.to_status.value,
                "from_role": request.from_role.value,
                "to_role": request.to_role.value,
                "decision": request.decision,
            },
            output={
                "summary": request.summary,
                "handoff_filename": filename,
                "date": today.isoformat(),
            },
        )

        sprint = await self._move_sprint(db_session, sprint, expected, target, user_id)

        next_sprint_id: UUID | None = None
        project_completed = False
        if target == SprintStatus.COMPLETED:
            next_sprint_id, project_completed = await self.executor.apply_sprint_completion(
                db_session, sprint, user_id
            )

        return WorkflowTransitionResult(
            transition=TransitionSummary(
                source=TransitionEndpoint(status=request.from_status, role=request.from_role),
                target=TransitionEndpoint(status=request.to_status, role=request.to_role),
                decision=request.decision,
            ),
            handoff=HandoffReference(artifact_id=artifact.id, filename=filename),
            sprint_status=sprint.status,
            next_sprint_id=next_sprint_id,
            project_completed=project_completed,
        )

    @staticmethod
    async def _load_sprint(
        db_session: AsyncSession,
        project: Project,
        sprint_id: UUID,
    ) -> Sprint:
        sprint = await get_sprint(db_session, sprint_id)
        if sprint is None or sprint.project_id != project.id:
            raise NotFoundError("Sprint", str(sprint_id))
        return sprint

    def _check_sprint(
        self,
        sprint: Sprint,
        expected: SprintStatus,
        target: SprintStatus,
    ) -> None:
        """Refuse the hand-off unless the sprint sits where ``from_status`` says.

        Raises:
            ConflictError: A second completion, or the sprint moved since
                the caller read it.
            InvalidTransitionError: The sprint is terminal, or outside the
                role cycle (PLANNED, BLOCKED or in the approval gate).
        """
        current = sprint.status
        if current == SprintStatus.COMPLETED:
            if target == SprintStatus.COMPLETED:
                raise ConflictError("Sprint", str(sprint.id), expected)
            raise InvalidTransitionError(current, target, f"sprint {sprint.id}")
        if current in OUTSIDE_WORKFLOW_STATUSES:
            raise InvalidTransitionError(current, target, f"sprint {sprint.id}")
        if current != expected:
            self.logger.info(
                "workflow_transition_conflict",
                sprint_status=current.value,
                expected=expected.value,
            )
            raise ConflictError("Sprint", str(sprint.id), expected)

    async def _move_sprint(
        self,
        db_session: AsyncSession,
        sprint: Sprint,
        expected: SprintStatus,
        target: SprintStatus,
        user_id: str,
    ) -> Sprint:
        """Swap the sprint from ``expected`` to its mapped ``target``.

        When both map to the same status (REVIEW -> REVIEW) the swap is
        guarded by ``updated_at`` instead and writes no history row.
        """
        if expected != target:
            return await self.executor.apply_sprint_transition(
                db_session,
                sprint.id,
                expected,
                target,
                user_id,
                enforce_registry=False,
            )

        swapped = await compare_and_set_sprint_status(
            db_session,
            sprint.id,
            expected,
            target,
            expected_updated_at=sprint.updated_at,
            updated_at=utcnow(),
        )
        if not swapped:
            raise ConflictError("Sprint", str(sprint.id), expected)
        return await get_sprint(db_session, sprint.id)  # type: ignore[return-value]
