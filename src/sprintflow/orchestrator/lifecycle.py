"""Project lifecycle operations.

Covers everything a project goes through before and around the sprint
workflow: creation at intake, recording the generated plan, the owner's
plan decision, kickoff into Sprint 1, status reports, manual sprint
status changes and history.

Kickoff is a lifecycle effect rather than a requested status change: it
bypasses the project graph in ``status_registry`` but still writes with
compare-and-swap and still appends history.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import TYPE_CHECKING, Any
from uuid import UUID

import structlog
from pydantic import BaseModel, Field
from sqlalchemy.exc import IntegrityError

from sprintflow.database.models.artifact import Artifact, ArtifactType
from sprintflow.database.models.base import utcnow
from sprintflow.database.models.history import ProjectStatusHistory
from sprintflow.database.models.project import ApprovalStatus, Project, ProjectStatus
from sprintflow.database.models.sprint import Sprint, SprintStatus
from sprintflow.database.queries.artifact import (
    create_artifact,
    get_first_artifact,
    get_latest_artifact,
    list_artifacts,
)
from sprintflow.database.queries.history import list_project_history
from sprintflow.database.queries.project import (
    create_project as insert_project,
)
from sprintflow.database.queries.project import (
    get_project,
    update_project_fields,
)
from sprintflow.database.queries.sprint import (
    create_sprints,
    get_sprint,
    get_sprint_by_number,
    list_sprints,
    update_sprint_fields,
)
from sprintflow.integrations.events import EventName
from sprintflow.logging import bind_workflow_context
from sprintflow.orchestrator.access import ensure_project_access
from sprintflow.orchestrator.errors import (
    AlreadyExistsError,
    InvalidTransitionError,
    NotFoundError,
    PreconditionFailedError,
    ValidationError,
)
from sprintflow.orchestrator.handover import KICKOFF_HANDOFF_FILENAME, build_kickoff_handoff
from sprintflow.orchestrator.sprint_gate import load_sprint_context
from sprintflow.orchestrator.status_registry import TERMINAL_PROJECT_STATUSES

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from sprintflow.orchestrator.side_effects import SideEffects
    from sprintflow.orchestrator.state_machine import TransitionExecutor

logger = structlog.get_logger(__name__)

BACKLOG_FILENAME = "BACKLOG.md"
ARCHITECTURE_FILENAME = "ARCHITECTURE.md"


class PlanDecision(str, Enum):
    """Owner decision on a generated plan."""

    APPROVE = "approve"
    REVISION = "revision"
    REJECT = "reject"


PLAN_DECISION_STATUS: dict[PlanDecision, ApprovalStatus] = {
    PlanDecision.APPROVE: ApprovalStatus.APPROVED,
    PlanDecision.REVISION: ApprovalStatus.REVISION_REQUESTED,
    PlanDecision.REJECT: ApprovalStatus.REJECTED,
}


class SprintPlan(BaseModel):
    """One planned sprint in a recorded plan."""

    name: str | None = Field(default=None, max_length=200)
    goal: str | None = Field(default=None, max_length=5000)


@dataclass
class ProjectDetail:
    """A project together with its sprints."""

    project: Project
    sprints: list[Sprint]


@dataclass
class PlanResult:
    """Outcome of recording a plan."""

    project: Project
    sprints: list[Sprint]
    artifacts: list[Artifact]


@dataclass
class KickoffResult:
    """Outcome of a kickoff.

    Attributes:
        project: Project after kickoff (IN_PROGRESS).
        sprint: Sprint 1 after kickoff, if the plan had sprints.
        handoff_content: The CTO -> Implementer handoff.
        kickoff_ready: Whether ``project/kicked_off`` was delivered.
    """

    project: Project
    sprint: Sprint | None
    handoff_content: str
    kickoff_ready: bool = False


class ProjectLifecycle:
    """Project-level operations outside the role workflow."""

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
        self.logger = logger.bind(component="ProjectLifecycle")

    async def _load(self, db_session: AsyncSession, project_id: UUID, user_id: str) -> Project:
        project = await get_project(db_session, project_id)
        if project is None:
            raise NotFoundError("Project", str(project_id))
        ensure_project_access(project, user_id)
        bind_workflow_context(str(project.id))
        return project

    # ------------------------------------------------------------------
    # Intake
    # ------------------------------------------------------------------

    async def create_project(
        self,
        name: str,
        slug: str,
        owner_id: str,
        intake_data: dict[str, Any] | None = None,
    ) -> Project:
        """Create a project at intake.

        Raises:
            ValidationError: If no owner is given.
            AlreadyExistsError: If the slug is taken.
        """
        if not owner_id:
            raise ValidationError("A project must have an owner")

        try:
            async with self.session_factory() as db_session:
                project = await insert_project(
                    db_session, name=name, slug=slug, owner_id=owner_id, intake_data=intake_data
                )
                await db_session.commit()
        except IntegrityError as e:
            raise AlreadyExistsError(f"Project with slug '{slug}' already exists") from e

        self.side_effects.trigger_sync()
        return project

    async def get_project(self, project_id: UUID, user_id: str) -> ProjectDetail:
        """Return a project and its sprints."""
        async with self.session_factory() as db_session:
            project = await self._load(db_session, project_id, user_id)
            sprints = await list_sprints(db_session, project.id)
        return ProjectDetail(project=project, sprints=sprints)

    async def change_status(
        self,
        project_id: UUID,
        user_id: str,
        target: ProjectStatus,
        expected: ProjectStatus | None = None,
    ) -> Project:
        """Request a project status change through the executor.

        When ``expected`` is omitted the currently stored status is used,
        so a concurrent change between the read and the write surfaces as
        ConflictError.
        """
        async with self.session_factory() as db_session:
            project = await self._load(db_session, project_id, user_id)
        return await self.executor.transition_project(
            project.id,
            expected if expected is not None else project.status,
            target,
            user_id,
        )

    # ------------------------------------------------------------------
    # Planning
    # ------------------------------------------------------------------

    async def record_plan(
        self,
        project_id: UUID,
        user_id: str,
        backlog: str,
        architecture: str,
        sprints: list[SprintPlan],
    ) -> PlanResult:
        """Store a generated plan: BACKLOG.md, ARCHITECTURE.md and sprints 1..N.

        A project still at INTAKE or PLANNING moves to REVIEW, waiting for
        the owner's decision.

        Raises:
            PreconditionFailedError: If the project already has sprints.
        """
        async with self.session_factory() as db_session:
            project = await self._load(db_session, project_id, user_id)
            if await list_sprints(db_session, project.id):
                raise PreconditionFailedError("A plan has already been recorded for this project")

            artifacts = []
            for artifact_type, name, content in (
                (ArtifactType.BACKLOG, BACKLOG_FILENAME, backlog),
                (ArtifactType.ARCHITECTURE, ARCHITECTURE_FILENAME, architecture),
            ):
                previous = await get_latest_artifact(db_session, project.id, artifact_type)
                version = previous.version + 1 if previous else 1
                artifacts.append(
                    await create_artifact(
                        db_session, project.id, artifact_type, name, content, version=version
                    )
                )

            created = await create_sprints(
                db_session, project.id, [(s.name, s.goal) for s in sprints]
            )

            if project.status in (ProjectStatus.INTAKE, ProjectStatus.PLANNING):
                project = await self.executor.apply_project_transition(
                    db_session,
                    project.id,
                    project.status,
                    ProjectStatus.REVIEW,
                    user_id,
                    enforce_registry=False,
                    approval_status=ApprovalStatus.PENDING,
                )
            await db_session.commit()

        self.logger.info("plan_recorded", sprint_count=len(created))
        self.side_effects.trigger_sync()
        return PlanResult(project=project, sprints=created, artifacts=artifacts)

    async def decide_plan(
        self,
        project_id: UUID,
        user_id: str,
        decision: PlanDecision,
        notes: str | None = None,
    ) -> Project:
        """Record the owner's decision on the plan.

        Sets ``approval_status`` and ``approval_notes``. ``approved_at`` is
        stamped on APPROVE and cleared by any other decision; the lifecycle
        ``status`` is left alone.

        Raises:
            PreconditionFailedError: If the project was already kicked off.
        """
        async with self.session_factory() as db_session:
            project = await self._load(db_session, project_id, user_id)
            if await get_first_artifact(db_session, project.id, ArtifactType.HANDOFF):
                raise PreconditionFailedError("Project has already been kicked off")

            await update_project_fields(
                db_session,
                project.id,
                approval_status=PLAN_DECISION_STATUS[decision],
                approval_notes=notes,
                approved_at=utcnow() if decision == PlanDecision.APPROVE else None,
            )
            project = await get_project(db_session, project.id)
            await db_session.commit()

        self.logger.info(
            "plan_decided",
            decision=decision.value,
            approval_status=project.approval_status.value,
        )
        self.side_effects.trigger_sync()
        return project

    # ------------------------------------------------------------------
    # Kickoff
    # ------------------------------------------------------------------

    async def kickoff(
        self,
        project_id: UUID,
        user_id: str,
        implementer_id: str | None = None,
    ) -> KickoffResult:
        """Start implementation of an approved project.

        In one transaction: move the project to IN_PROGRESS (assigning the
        implementer if given), write the CTO -> Implementer HANDOFF
        artifact and start Sprint 1 with that handoff. After commit,
        ``project/kicked_off`` is emitted; ``kickoff_ready`` reports whether
        it was delivered.

        Raises:
            PreconditionFailedError: If the plan is not approved, the
                project was already kicked off, or BACKLOG or ARCHITECTURE
                is missing.
            InvalidTransitionError: If the project is already terminal.
            ConflictError: If a concurrent kickoff won.
        """
        async with self.session_factory() as db_session:
            project = await self._load(db_session, project_id, user_id)

            if project.approval_status != ApprovalStatus.APPROVED:
                raise PreconditionFailedError("Project must be approved before kickoff")
            if await get_first_artifact(db_session, project.id, ArtifactType.HANDOFF):
                raise PreconditionFailedError("Project has already been kicked off")
            already_running = project.status == ProjectStatus.IN_PROGRESS
            if already_running or project.status in TERMINAL_PROJECT_STATUSES:
                raise InvalidTransitionError(
                    project.status, ProjectStatus.IN_PROGRESS, f"project {project.id}"
                )

            backlog = await get_latest_artifact(db_session, project.id, ArtifactType.BACKLOG)
            architecture = await get_latest_artifact(
                db_session, project.id, ArtifactType.ARCHITECTURE
            )
            if backlog is None or architecture is None:
                raise PreconditionFailedError(
                    "Missing required artifacts (BACKLOG or ARCHITECTURE)"
                )

            content = build_kickoff_handoff(
                project_name=project.name,
                backlog=backlog.content,
                architecture=architecture.content,
                today=self.clock(),
                owner_decisions=project.approval_notes,
            )

            extra: dict[str, Any] = {}
            if implementer_id:
                extra["implementer_id"] = implementer_id
            project = await self.executor.apply_project_transition(
                db_session,
                project.id,
                project.status,
                ProjectStatus.IN_PROGRESS,
                user_id,
                enforce_registry=False,
                **extra,
            )

            await create_artifact(
                db_session,
                project.id,
                ArtifactType.HANDOFF,
                KICKOFF_HANDOFF_FILENAME,
                content,
                version=1,
            )

            sprint = await get_sprint_by_number(db_session, project.id, 1)
            if sprint is not None:
                if sprint.status == SprintStatus.IN_PROGRESS:
                    await update_sprint_fields(db_session, sprint.id, handoff_content=content)
                    sprint = await get_sprint_by_number(db_session, project.id, 1)
                else:
                    sprint = await self.executor.apply_sprint_transition(
                        db_session,
                        sprint.id,
                        sprint.status,
                        SprintStatus.IN_PROGRESS,
                        user_id,
                        enforce_registry=False,
                        handoff_content=content,
                    )
            await db_session.commit()

        self.logger.info(
            "project_kicked_off",
            implementer_id=project.implementer_id,
            sprint_id=str(sprint.id) if sprint else None,
        )

        kickoff_ready = await self.side_effects.emit(
            EventName.PROJECT_KICKED_OFF.value,
            {
                "project_id": str(project.id),
                "project_name": project.name,
                "project_slug": project.slug,
                "sprint_id": str(sprint.id) if sprint else None,
                "sprint_number": sprint.number if sprint else 1,
                "sprint_name": sprint.display_name if sprint else "Sprint 1",
                "handoff_content": content,
                "implementer_id": project.implementer_id,
            },
        )
        self.side_effects.trigger_sync()

        return KickoffResult(
            project=project,
            sprint=sprint,
            handoff_content=content,
            kickoff_ready=kickoff_ready,
        )

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------

    async def record_status_report(
        self,
        sprint_id: UUID,
        user_id: str,
        document: str,
    ) -> Sprint:
        """Overwrite a sprint's ``review_summary`` with a new report."""
        async with self.session_factory() as db_session:
            sprint, _ = await load_sprint_context(db_session, sprint_id, user_id)
            await update_sprint_fields(db_session, sprint.id, review_summary=document)
            sprint = await get_sprint(db_session, sprint.id)
            await db_session.commit()

        self.logger.info("status_report_recorded", length=len(document))
        return sprint  # type: ignore[return-value]

    async def change_sprint_status(
        self,
        sprint_id: UUID,
        user_id: str,
        target: SprintStatus,
        expected: SprintStatus | None = None,
    ) -> Sprint:
        """Request a manual sprint status change through the executor.

        This is how a sprint is sent to review, queued for the owner's
        approval, blocked or re-queued. ``expected`` defaults to the stored
        status, like ``change_status``.

        Raises:
            NotFoundError: If the sprint does not exist.
            ForbiddenError: If the caller may not act on the project.
            InvalidTransitionError: If the sprint graph has no such edge.
            ConflictError: If the sprint is no longer in ``expected``.
        """
        async with self.session_factory() as db_session:
            sprint, _ = await load_sprint_context(db_session, sprint_id, user_id)
        return await self.executor.transition_sprint(
            sprint.id,
            expected if expected is not None else sprint.status,
            target,
            user_id,
        )

    async def project_history(
        self,
        project_id: UUID,
        user_id: str,
    ) -> list[ProjectStatusHistory]:
        """Return a project's status history, newest first."""
        async with self.session_factory() as db_session:
            project = await self._load(db_session, project_id, user_id)
            return await list_project_history(db_session, project.id)

    async def list_artifacts(
        self,
        project_id: UUID,
        user_id: str,
        artifact_type: ArtifactType | None = None,
    ) -> list[Artifact]:
        """Return a project's artifacts, oldest first."""
        async with self.session_factory() as db_session:
            project = await self._load(db_session, project_id, user_id)
            return await list_artifacts(db_session, project.id, artifact_type)
