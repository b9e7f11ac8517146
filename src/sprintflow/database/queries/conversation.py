"""Conversation (audit log) query functions for Sprintflow."""

from __future__ import annotations

from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from sprintflow.database.models.conversation import Conversation


async def create_conversation(
    session: AsyncSession,
    project_id: UUID,
    role: str,
    entry_type: str,
    input: dict[str, Any],
    output: dict[str, Any],
) -> Conversation:
    """Append one audit log entry.

    Args:
        session: Active async database session.
        project_id: Owning project.
        role: Role that produced the entry.
        entry_type: Entry kind, e.g. ``workflow_transition``.
        input: Request side of the entry.
        output: Result side of the entry.

    Returns:
        The created Conversation row.
    """
    entry = Conversation(
        project_id=project_id,
        role=role,
        type=entry_type,
        input=input,
        output=output,
    )
    session.add(entry)
    await session.flush()
    return entry


async def list_conversations(
    session: AsyncSession,
    project_id: UUID,
    entry_type: str | None = None,
) -> list[Conversation]:
    """List a project's audit entries oldest first."""
    stmt = select(Conversation).where(Conversation.project_id == project_id)
    if entry_type is not None:
        stmt = stmt.where(Conversation.type == entry_type)
    stmt = stmt.order_by(Conversation.created_at)
    result = await session.execute(stmt)
    return list(result.scalars().all())
