"""Optimistic transition executor for projects and sprints.

This module applies status changes with compare-and-swap semantics:

1. Legality is checked against ``status_registry`` before storage is
   touched.
2. A single conditional ``UPDATE ... WHERE id = :id AND status = :expected``
   performs the change together with its side fields. The affected row
   count decides the outcome; the database serializes competing writers.
3. Zero rows means either the entity is gone (NotFoundError) or someone
   else changed it first (ConflictError). Nothing is retried.
4. On success the entity is re-read and exactly one history row is
   appended, in the same transaction. A completed sprint hands over to
   sprint N+1, or completes the project.
5. Knowledge sync is scheduled only after commit.

The ``apply_*`` methods run inside a caller-owned transaction so that
multi-step protocols (workflow hand-off, kickoff) can combine several
compare-and-swap writes into one unit.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any
from uuid import UUID

import structlog
from sqlalchemy import func

from sprintflow.database.models.base import utcnow
from sprintflow.database.models.project import Project, ProjectStatus
from sprintflow.database.models.sprint import Sprint, SprintStatus
from sprintflow.database.queries.history import (
    record_project_status_change,
    record_sprint_status_change,
)
from sprintflow.database.queries.project import (
    compare_and_set_project_status,
    get_project,
    project_exists,
)
from sprintflow.database.queries.sprint import (
    compare_and_set_sprint_status,
    get_sprint,
    get_sprint_by_number,
    sprint_exists,
)
from sprintflow.orchestrator.errors import (
    ConflictError,
    InvalidTransitionError,
    NotFoundError,
)
from sprintflow.orchestrator.status_registry import (
    TERMINAL_PROJECT_STATUSES,
    is_legal_project_transition,
    is_legal_sprint_transition,
)

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from sprintflow.orchestrator.side_effects import SideEffects

logger = structlog.get_logger(__name__)


class TransitionExecutor:
    """Applies project and sprint status changes exactly once.

    Attributes:
        session_factory: Produces async database sessions.
        side_effects: Post-commit gateway, used to trigger knowledge sync.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        side_effects: SideEffects | None = None,
    ) -> None:
        self.session_factory = session_factory
        self.side_effects = side_effects
        self.logger = logger.bind(component="TransitionExecutor")

    # ------------------------------------------------------------------
    # Self-contained transitions
    # ------------------------------------------------------------------

    async def transition_project(
        self,
        project_id: UUID,
        expected: ProjectStatus,
        target: ProjectStatus,
        actor: str,
    ) -> Project:
        """Move a project from ``expected`` to ``target``.

        Args:
            project_id: UUID of the project.
            expected: Status the caller observed.
            target: Requested status.
            actor: User id recorded as ``changed_by``.

        Returns:
            The project as stored after the change.

        Raises:
            InvalidTransitionError: If the registry has no such edge.
            NotFoundError: If the project does not exist.
            ConflictError: If the project is no longer in ``expected``.
        """
        if not is_legal_project_transition(expected, target):
            raise InvalidTransitionError(expected, target, f"project {project_id}")

        async with self.session_factory() as db_session:
            project = await self.apply_project_transition(
                db_session, project_id, expected, target, actor
            )
            await db_session.commit()

        self._after_commit()
        return project

    async def transition_sprint(
        self,
        sprint_id: UUID,
        expected: SprintStatus,
        target: SprintStatus,
        actor: str,
    ) -> Sprint:
        """Move a sprint from ``expected`` to ``target``.

        Completing a sprint also starts the next one, or completes the
        project when it was the last, in the same transaction.

        Args:
            sprint_id: UUID of the sprint.
            expected: Status the caller observed.
            target: Requested status.
            actor: User id recorded as ``changed_by``.

        Returns:
            The sprint as stored after the change.

        Raises:
            InvalidTransitionError: If the registry has no such edge.
            NotFoundError: If the sprint does not exist.
            ConflictError: If the sprint is no longer in ``expected``.
        """
        if not is_legal_sprint_transition(expected, target):
            raise InvalidTransitionError(expected, target, f"sprint {sprint_id}")

        async with self.session_factory() as db_session:
            sprint = await self.apply_sprint_transition(
                db_session, sprint_id, expected, target, actor
            )
            if target == SprintStatus.COMPLETED:
                await self.apply_sprint_completion(db_session, sprint, actor)
            await db_session.commit()

        self._after_commit()
        return sprint

    # ------------------------------------------------------------------
    # Building blocks for caller-owned transactions
    # ------------------------------------------------------------------

    async def apply_project_transition(
        self,
        db_session: AsyncSession,
        project_id: UUID,
        expected: ProjectStatus,
        target: ProjectStatus,
        actor: str,
        *,
        enforce_registry: bool = True,
        **values: Any,
    ) -> Project:
        """Compare-and-swap a project's status inside the caller's transaction.

        Lifecycle effects (kickoff, completion of the last sprint) pass
        ``enforce_registry=False``: they are not requested status changes
        and their sources lie outside the project graph.

        Args:
            db_session: Session whose transaction the write joins.
            project_id: UUID of the project.
            expected: Status the caller observed.
            target: Status to write.
            actor: User id recorded as ``changed_by``.
            enforce_registry: Check the project graph first.
            **values: Extra columns written in the same statement.

        Returns:
            The re-read project.
        """
        if enforce_registry and not is_legal_project_transition(expected, target):
            raise InvalidTransitionError(expected, target, f"project {project_id}")

        archived_at = utcnow() if target == ProjectStatus.FINISHED else None
        swapped = await compare_and_set_project_status(
            db_session,
            project_id,
            expected,
            target,
            archived_at=archived_at,
            **values,
        )
        if not swapped:
            if not await project_exists(db_session, project_id):
                raise NotFoundError("Project", str(project_id))
            self.logger.info(
                "project_transition_conflict",
                project_id=str(project_id),
                expected=expected.value,
                target=target.value,
            )
            raise ConflictError("Project", str(project_id), expected)

        await record_project_status_change(db_session, project_id, expected, target, actor)
        project = await get_project(db_session, project_id)

        self.logger.info(
            "project_transition",
            project_id=str(project_id),
            from_status=expected.value,
            to_status=target.value,
            changed_by=actor,
        )
        return project  # type: ignore[return-value]

    async def apply_sprint_transition(
        self,
        db_session: AsyncSession,
        sprint_id: UUID,
        expected: SprintStatus,
        target: SprintStatus,
        actor: str,
        *,
        enforce_registry: bool = True,
        **values: Any,
    ) -> Sprint:
        """Compare-and-swap a sprint's status inside the caller's transaction.

        ``started_at`` and ``completed_at`` are stamped on first entry to
        IN_PROGRESS and COMPLETED respectively and never overwritten.

        Args:
            db_session: Session whose transaction the write joins.
            sprint_id: UUID of the sprint.
            expected: Status the caller observed.
            target: Status to write.
            actor: User id recorded as ``changed_by``.
            enforce_registry: Check the sprint graph first.
            **values: Extra columns written in the same statement.

        Returns:
            The re-read sprint.
        """
        if enforce_registry and not is_legal_sprint_transition(expected, target):
            raise InvalidTransitionError(expected, target, f"sprint {sprint_id}")

        now = utcnow()
        if target == SprintStatus.IN_PROGRESS:
            values["started_at"] = func.coalesce(Sprint.started_at, now)
        elif target == SprintStatus.COMPLETED:
            values["completed_at"] = func.coalesce(Sprint.completed_at, now)

        swapped = await compare_and_set_sprint_status(
            db_session, sprint_id, expected, target, **values
        )
        if not swapped:
            if not await sprint_exists(db_session, sprint_id):
                raise NotFoundError("Sprint", str(sprint_id))
            self.logger.info(
                "sprint_transition_conflict",
                sprint_id=str(sprint_id),
                expected=expected.value,
                target=target.value,
            )
            raise ConflictError("Sprint", str(sprint_id), expected)

        await record_sprint_status_change(db_session, sprint_id, expected, target, actor)
        sprint = await get_sprint(db_session, sprint_id)

        self.logger.info(
            "sprint_transition",
            sprint_id=str(sprint_id),
            from_status=expected.value,
            to_status=target.value,
            changed_by=actor,
        )
        return sprint  # type: ignore[return-value]

    async def apply_sprint_completion(
        self,
        db_session: AsyncSession,
        completed: Sprint,
        actor: str,
    ) -> tuple[UUID | None, bool]:
        """Start sprint N+1 after sprint N completed, or complete the project.

        Runs inside the caller's transaction, right after the completing
        swap.

        Returns:
            The id of the next sprint (if any) and whether the project was
            completed.
        """
        project_id = completed.project_id
        next_sprint = await get_sprint_by_number(db_session, project_id, completed.number + 1)
        if next_sprint is not None:
            if next_sprint.status in (SprintStatus.IN_PROGRESS, SprintStatus.COMPLETED):
                self.logger.warning(
                    "next_sprint_already_started",
                    next_sprint_id=str(next_sprint.id),
                    status=next_sprint.status.value,
                )
                return next_sprint.id, False
            await self.apply_sprint_transition(
                db_session,
                next_sprint.id,
                next_sprint.status,
                SprintStatus.IN_PROGRESS,
                actor,
                enforce_registry=False,
            )
            return next_sprint.id, False

        project = await get_project(db_session, project_id)
        if project is None:
            raise NotFoundError("Project", str(project_id))
        if project.status == ProjectStatus.COMPLETED:
            return None, True
        if project.status in TERMINAL_PROJECT_STATUSES:
            raise InvalidTransitionError(
                project.status, ProjectStatus.COMPLETED, f"project {project_id}"
            )
        await self.apply_project_transition(
            db_session,
            project_id,
            project.status,
            ProjectStatus.COMPLETED,
            actor,
            enforce_registry=False,
        )
        return None, True

    def _after_commit(self) -> None:
        if self.side_effects is not None:
            self.side_effects.trigger_sync()
