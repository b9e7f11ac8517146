"""Status history models for Sprintflow.

One row is appended per successful status change. Rejected and no-op
attempts never write here.
"""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Text
from sqlalchemy.orm import Mapped, mapped_column

from sprintflow.database.models.base import Base, TimestampMixin, utcnow
from sprintflow.database.models.project import ProjectStatus
from sprintflow.database.models.sprint import SprintStatus


class ProjectStatusHistory(TimestampMixin, Base):
    """A single project status change."""

    __tablename__ = "project_status_history"

    project_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    old_status: Mapped[ProjectStatus] = mapped_column(nullable=False)
    new_status: Mapped[ProjectStatus] = mapped_column(nullable=False)
    changed_by: Mapped[str] = mapped_column(Text, nullable=False)
    changed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
    )


class SprintStatusHistory(TimestampMixin, Base):
    """A single sprint status change."""

    __tablename__ = "sprint_status_history"

    sprint_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("sprints.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    old_status: Mapped[SprintStatus] = mapped_column(nullable=False)
    new_status: Mapped[SprintStatus] = mapped_column(nullable=False)
    changed_by: Mapped[str] = mapped_column(Text, nullable=False)
    changed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
    )
