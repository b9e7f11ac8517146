"""Sprint query functions for Sprintflow.

Provides async functions for bulk-creating sprints from a plan, looking
sprints up by id or number, and conditionally updating their status.
Callers own the transaction.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime
from typing import Any
from uuid import UUID

import structlog
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from sprintflow.database.models.sprint import Sprint, SprintStatus

logger = structlog.get_logger(__name__)


async def create_sprints(
    session: AsyncSession,
    project_id: UUID,
    plans: Iterable[tuple[str | None, str | None]],
) -> list[Sprint]:
    """Create PLANNED sprints numbered 1..N from (name, goal) pairs.

    Args:
        session: Active async database session.
        project_id: Owning project.
        plans: Ordered (name, goal) pairs.

    Returns:
        The created sprints in number order.
    """
    sprints = [
        Sprint(
            project_id=project_id,
            number=number,
            name=name,
            goal=goal,
            status=SprintStatus.PLANNED,
        )
        for number, (name, goal) in enumerate(plans, start=1)
    ]
    session.add_all(sprints)
    await session.flush()

    logger.info(
        "sprints_created",
        project_id=str(project_id),
        count=len(sprints),
    )

    return sprints


async def get_sprint(
    session: AsyncSession,
    sprint_id: UUID,
) -> Sprint | None:
    """Retrieve a sprint by ID, reloading it from the database.

    Args:
        session: Active async database session.
        sprint_id: UUID of the sprint to retrieve.

    Returns:
        The Sprint instance if found, None otherwise.
    """
    stmt = (
        select(Sprint)
        .where(Sprint.id == sprint_id)
        .execution_options(populate_existing=True)
    )
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def get_sprint_by_number(
    session: AsyncSession,
    project_id: UUID,
    number: int,
) -> Sprint | None:
    """Retrieve the sprint with the given number in a project."""
    stmt = (
        select(Sprint)
        .where(Sprint.project_id == project_id, Sprint.number == number)
        .execution_options(populate_existing=True)
    )
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def list_sprints(
    session: AsyncSession,
    project_id: UUID,
) -> list[Sprint]:
    """List a project's sprints in number order."""
    stmt = (
        select(Sprint)
        .where(Sprint.project_id == project_id)
        .order_by(Sprint.number)
        .execution_options(populate_existing=True)
    )
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def sprint_exists(session: AsyncSession, sprint_id: UUID) -> bool:
    """Return True if a sprint row with this id exists."""
    result = await session.execute(select(Sprint.id).where(Sprint.id == sprint_id))
    return result.scalar_one_or_none() is not None


async def compare_and_set_sprint_status(
    session: AsyncSession,
    sprint_id: UUID,
    expected: SprintStatus,
    target: SprintStatus,
    *,
    expected_updated_at: datetime | None = None,
    **values: Any,
) -> bool:
    """Conditionally move a sprint from ``expected`` to ``target``.

    Args:
        session: Active async database session.
        sprint_id: UUID of the sprint to update.
        expected: Status the caller observed.
        target: Status to write.
        expected_updated_at: Also require the row to be unmodified since
            this ``updated_at``. Used when ``expected == target``.
        **values: Additional columns to write in the same statement.

    Returns:
        True if exactly one row was updated.
    """
    conditions = [Sprint.id == sprint_id, Sprint.status == expected]
    if expected_updated_at is not None:
        conditions.append(Sprint.updated_at == expected_updated_at)
    stmt = (
        update(Sprint)
        .where(*conditions)
        .values(status=target, **values)
        .execution_options(synchronize_session=False)
    )
    result = await session.execute(stmt)
    return result.rowcount == 1


async def update_sprint_fields(
    session: AsyncSession,
    sprint_id: UUID,
    **updates: Any,
) -> None:
    """Write non-status fields on a sprint."""
    stmt = (
        update(Sprint)
        .where(Sprint.id == sprint_id)
        .values(**updates)
        .execution_options(synchronize_session=False)
    )
    await session.execute(stmt)

    logger.debug(
        "sprint_updated",
        sprint_id=str(sprint_id),
        fields_updated=list(updates.keys()),
    )
