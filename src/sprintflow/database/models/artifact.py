"""Artifact model for Sprintflow.

Artifacts are the append-only log of generated documents: the plan's
backlog and architecture and every handoff written between roles.
"""

from __future__ import annotations

import enum
import uuid

from sqlalchemy import ForeignKey, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column

from sprintflow.database.models.base import Base, TimestampMixin


class ArtifactType(enum.Enum):
    """Kind of generated document."""

    BACKLOG = "BACKLOG"
    ARCHITECTURE = "ARCHITECTURE"
    HANDOFF = "HANDOFF"


class Artifact(TimestampMixin, Base):
    """An immutable generated document attached to a project.

    Attributes:
        project_id: Owning project.
        type: Document kind.
        name: File-style name, e.g. ``BACKLOG.md``.
        content: Full document text.
        version: Document version, starting at 1.
    """

    __tablename__ = "artifacts"

    project_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    type: Mapped[ArtifactType] = mapped_column(nullable=False)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
