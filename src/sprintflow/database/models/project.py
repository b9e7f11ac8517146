"""Project model for Sprintflow.

Defines the Project table together with the ProjectStatus and
ApprovalStatus enums. A project carries two independent state axes:
``status`` (lifecycle) and ``approval_status`` (owner sign-off on the
generated plan, which gates kickoff).
"""

from __future__ import annotations

import enum
from datetime import datetime
from typing import Any

from sqlalchemy import DateTime, Text
from sqlalchemy.orm import Mapped, mapped_column

from sprintflow.database.models.base import Base, JSONType, TimestampMixin


class ProjectStatus(enum.Enum):
    """Lifecycle status for a project.

    States:
        INTAKE: Project captured, awaiting planning.
        PLANNING: Backlog and architecture are being generated.
        REVIEW: Plan produced, awaiting owner review.
        APPROVED: Delivered work accepted; may still be reopened.
        IN_PROGRESS: Sprints are being implemented.
        ACTIVE: Alternate vocabulary for IN_PROGRESS.
        COMPLETE: Implementation done, awaiting acceptance.
        COMPLETED: Last sprint finished through the workflow.
        FINISHED: Archived; terminal.
        CANCELLED: Abandoned; terminal.
    """

    INTAKE = "INTAKE"
    PLANNING = "PLANNING"
    REVIEW = "REVIEW"
    APPROVED = "APPROVED"
    IN_PROGRESS = "IN_PROGRESS"
    ACTIVE = "ACTIVE"
    COMPLETE = "COMPLETE"
    COMPLETED = "COMPLETED"
    FINISHED = "FINISHED"
    CANCELLED = "CANCELLED"


class ApprovalStatus(enum.Enum):
    """Owner decision on the generated plan."""

    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    REVISION_REQUESTED = "REVISION_REQUESTED"


class Project(TimestampMixin, Base):
    """A delivery project coordinated by Sprintflow.

    Attributes:
        id: UUID primary key (from TimestampMixin).
        slug: Unique human-readable identifier, also the mirror folder name.
        name: Display name.
        status: Current lifecycle status.
        approval_status: Owner decision on the plan.
        approval_notes: Free-text notes recorded with the decision.
        approved_at: When the plan decision was recorded.
        archived_at: Set iff status is FINISHED.
        owner_id: User who owns the project.
        implementer_id: Optional user assigned to implement it.
        intake_data: Free-form intake answers.
    """

    __tablename__ = "projects"

    slug: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[ProjectStatus] = mapped_column(
        default=ProjectStatus.INTAKE,
        nullable=False,
    )
    approval_status: Mapped[ApprovalStatus] = mapped_column(
        default=ApprovalStatus.PENDING,
        nullable=False,
    )
    approval_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    archived_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    owner_id: Mapped[str] = mapped_column(Text, nullable=False)
    implementer_id: Mapped[str | None] = mapped_column(Text, nullable=True)
    intake_data: Mapped[dict[str, Any]] = mapped_column(
        JSONType,
        nullable=False,
        default=dict,
    )
