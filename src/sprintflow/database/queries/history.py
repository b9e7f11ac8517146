"""Status history query functions for Sprintflow."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from sprintflow.database.models.history import ProjectStatusHistory, SprintStatusHistory
from sprintflow.database.models.project import ProjectStatus
from sprintflow.database.models.sprint import SprintStatus


async def record_project_status_change(
    session: AsyncSession,
    project_id: UUID,
    old_status: ProjectStatus,
    new_status: ProjectStatus,
    changed_by: str,
) -> ProjectStatusHistory:
    """Append one project history row."""
    entry = ProjectStatusHistory(
        project_id=project_id,
        old_status=old_status,
        new_status=new_status,
        changed_by=changed_by,
    )
    session.add(entry)
    await session.flush()
    return entry


async def record_sprint_status_change(
    session: AsyncSession,
    sprint_id: UUID,
    old_status: SprintStatus,
    new_status: SprintStatus,
    changed_by: str,
) -> SprintStatusHistory:
    """Append one sprint history row."""
    entry = SprintStatusHistory(
        sprint_id=sprint_id,
        old_status=old_status,
        new_status=new_status,
        changed_by=changed_by,
    )
    session.add(entry)
    await session.flush()
    return entry


async def list_project_history(
    session: AsyncSession,
    project_id: UUID,
) -> list[ProjectStatusHistory]:
    """List a project's status changes, newest first."""
    stmt = (
        select(ProjectStatusHistory)
        .where(ProjectStatusHistory.project_id == project_id)
        .order_by(ProjectStatusHistory.changed_at.desc())
    )
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def list_sprint_history(
    session: AsyncSession,
    sprint_id: UUID,
) -> list[SprintStatusHistory]:
    """List a sprint's status changes, newest first."""
    stmt = (
        select(SprintStatusHistory)
        .where(SprintStatusHistory.sprint_id == sprint_id)
        .order_by(SprintStatusHistory.changed_at.desc())
    )
    result = await session.execute(stmt)
    return list(result.scalars().all())
