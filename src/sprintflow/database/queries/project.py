"""Project query functions for Sprintflow.

Provides async functions for creating, reading, and conditionally
updating Project records using the SQLAlchemy 2.0 select()/update() API.

These functions never commit: the caller owns the transaction so that
several writes can land as one unit.
"""

from __future__ import annotations

from typing import Any
from uuid import UUID

import structlog
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from sprintflow.database.models.project import Project, ProjectStatus

logger = structlog.get_logger(__name__)


async def create_project(
    session: AsyncSession,
    name: str,
    slug: str,
    owner_id: str,
    intake_data: dict[str, Any] | None = None,
) -> Project:
    """Create a new project in INTAKE status.

    Args:
        session: Active async database session.
        name: Display name.
        slug: Unique human-readable identifier.
        owner_id: Owning user id.
        intake_data: Optional intake answers.

    Returns:
        The newly created Project instance.

    Raises:
        sqlalchemy.exc.IntegrityError: If the slug is already taken.
    """
    project = Project(
        name=name,
        slug=slug,
        owner_id=owner_id,
        intake_data=intake_data or {},
        status=ProjectStatus.INTAKE,
    )
    session.add(project)
    await session.flush()

    logger.info(
        "project_created",
        project_id=str(project.id),
        slug=slug,
        status=project.status.value,
    )

    return project


async def get_project(
    session: AsyncSession,
    project_id: UUID,
) -> Project | None:
    """Retrieve a project by ID.

    The row is always reloaded from the database so that values written
    by a preceding Core UPDATE are visible.

    Args:
        session: Active async database session.
        project_id: UUID of the project to retrieve.

    Returns:
        The Project instance if found, None otherwise.
    """
    stmt = (
        select(Project)
        .where(Project.id == project_id)
        .execution_options(populate_existing=True)
    )
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def list_projects(
    session: AsyncSession,
    status_filter: ProjectStatus | None = None,
) -> list[Project]:
    """List projects, most recently updated first.

    Args:
        session: Active async database session.
        status_filter: Optional status to filter by.

    Returns:
        List of matching Project instances.
    """
    stmt = select(Project)

    if status_filter is not None:
        stmt = stmt.where(Project.status == status_filter)

    stmt = stmt.order_by(Project.updated_at.desc())
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def project_exists(session: AsyncSession, project_id: UUID) -> bool:
    """Return True if a project row with this id exists."""
    result = await session.execute(select(Project.id).where(Project.id == project_id))
    return result.scalar_one_or_none() is not None


async def compare_and_set_project_status(
    session: AsyncSession,
    project_id: UUID,
    expected: ProjectStatus,
    target: ProjectStatus,
    **values: Any,
) -> bool:
    """Conditionally move a project from ``expected`` to ``target``.

    Issues ``UPDATE projects SET status = target, ... WHERE id = :id AND
    status = :expected``. The affected row count is the compare-and-swap
    result; the database serializes competing writers on the row.

    Args:
        session: Active async database session.
        project_id: UUID of the project to update.
        expected: Status the caller observed.
        target: Status to write.
        **values: Additional columns to write in the same statement.

    Returns:
        True if exactly one row was updated.
    """
    stmt = (
        update(Project)
        .where(Project.id == project_id, Project.status == expected)
        .values(status=target, **values)
        .execution_options(synchronize_session=False)
    )
    result = await session.execute(stmt)
    return result.rowcount == 1


async def update_project_fields(
    session: AsyncSession,
    project_id: UUID,
    **updates: Any,
) -> None:
    """Write non-status fields on a project.

    Args:
        session: Active async database session.
        project_id: UUID of the project to update.
        **updates: Field names and values to update.
    """
    stmt = (
        update(Project)
        .where(Project.id == project_id)
        .values(**updates)
        .execution_options(synchronize_session=False)
    )
    await session.execute(stmt)

    logger.debug(
        "project_updated",
        project_id=str(project_id),
        fields_updated=list(updates.keys()),
    )
