"""Artifact query functions for Sprintflow.

Artifacts are append-only: there is no update or delete here.
"""

from __future__ import annotations

from uuid import UUID

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from sprintflow.database.models.artifact import Artifact, ArtifactType

logger = structlog.get_logger(__name__)


async def create_artifact(
    session: AsyncSession,
    project_id: UUID,
    artifact_type: ArtifactType,
    name: str,
    content: str,
    version: int = 1,
) -> Artifact:
    """Append a new artifact row.

    Args:
        session: Active async database session.
        project_id: Owning project.
        artifact_type: Document kind.
        name: File-style name.
        content: Full document text.
        version: Document version.

    Returns:
        The newly created Artifact.
    """
    artifact = Artifact(
        project_id=project_id,
        type=artifact_type,
        name=name,
        content=content,
        version=version,
    )
    session.add(artifact)
    await session.flush()

    logger.info(
        "artifact_created",
        artifact_id=str(artifact.id),
        project_id=str(project_id),
        type=artifact_type.value,
        name=name,
    )

    return artifact


async def get_first_artifact(
    session: AsyncSession,
    project_id: UUID,
    artifact_type: ArtifactType,
) -> Artifact | None:
    """Return the earliest artifact of a type for a project.

    For HANDOFF this is the project-level kickoff handoff.
    """
    stmt = (
        select(Artifact)
        .where(Artifact.project_id == project_id, Artifact.type == artifact_type)
        .order_by(Artifact.created_at, Artifact.version)
        .limit(1)
    )
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def get_latest_artifact(
    session: AsyncSession,
    project_id: UUID,
    artifact_type: ArtifactType,
) -> Artifact | None:
    """Return the most recent artifact of a type for a project."""
    stmt = (
        select(Artifact)
        .where(Artifact.project_id == project_id, Artifact.type == artifact_type)
        .order_by(Artifact.created_at.desc(), Artifact.version.desc())
        .limit(1)
    )
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def list_artifacts(
    session: AsyncSession,
    project_id: UUID,
    artifact_type: ArtifactType | None = None,
) -> list[Artifact]:
    """List a project's artifacts oldest first, optionally by type."""
    stmt = select(Artifact).where(Artifact.project_id == project_id)
    if artifact_type is not None:
        stmt = stmt.where(Artifact.type == artifact_type)
    stmt = stmt.order_by(Artifact.created_at)
    result = await session.execute(stmt)
    return list(result.scalars().all())
