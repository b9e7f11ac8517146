"""Sprint model for Sprintflow.

Sprints are created in bulk when a plan is recorded and advance strictly
by number within their project.
"""

from __future__ import annotations

import enum
import uuid
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Integer, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from sprintflow.database.models.base import Base, TimestampMixin


class SprintStatus(enum.Enum):
    """Lifecycle status for a sprint.

    States:
        PLANNED: Created from the plan, not yet started.
        IN_PROGRESS: Being implemented.
        REVIEW: In the reviewer / QA / PM cycle.
        AWAITING_APPROVAL: Waiting on the owner to start it.
        COMPLETED: Accepted; terminal.
        BLOCKED: Held on an external factor.
    """

    PLANNED = "PLANNED"
    IN_PROGRESS = "IN_PROGRESS"
    REVIEW = "REVIEW"
    AWAITING_APPROVAL = "AWAITING_APPROVAL"
    COMPLETED = "COMPLETED"
    BLOCKED = "BLOCKED"


class Sprint(TimestampMixin, Base):
    """A numbered sprint within a project.

    Attributes:
        project_id: Owning project.
        number: 1-based position, unique per project.
        name: Optional display name.
        goal: Optional sprint goal.
        status: Current sprint status.
        started_at: First entry to IN_PROGRESS; never overwritten.
        completed_at: First entry to COMPLETED; never overwritten.
        handoff_content: Last handoff document written for this sprint.
        review_summary: Latest status or QA summary.
    """

    __tablename__ = "sprints"
    __table_args__ = (
        UniqueConstraint("project_id", "number", name="uq_sprints_project_number"),
    )

    project_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    number: Mapped[int] = mapped_column(Integer, nullable=False)
    name: Mapped[str | None] = mapped_column(Text, nullable=True)
    goal: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[SprintStatus] = mapped_column(
        default=SprintStatus.PLANNED,
        nullable=False,
    )
    started_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    completed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    handoff_content: Mapped[str | None] = mapped_column(Text, nullable=True)
    review_summary: Mapped[str | None] = mapped_column(Text, nullable=True)

    @property
    def display_name(self) -> str:
        return self.name or f"Sprint {self.number}"
