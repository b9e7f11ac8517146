"""Conversation model for Sprintflow.

Conversations are the audit log of role activity. Workflow transitions
are recorded with ``type="workflow_transition"``.
"""

from __future__ import annotations

import uuid
from typing import Any

from sqlalchemy import ForeignKey, Text
from sqlalchemy.orm import Mapped, mapped_column

from sprintflow.database.models.base import Base, JSONType, TimestampMixin

WORKFLOW_TRANSITION = "workflow_transition"


class Conversation(TimestampMixin, Base):
    """An audit log entry written by a workflow role.

    Attributes:
        project_id: Owning project.
        role: Role that produced the entry.
        type: Entry kind.
        input: Request side of the entry.
        output: Result side of the entry.
    """

    __tablename__ = "conversations"

    project_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    role: Mapped[str] = mapped_column(Text, nullable=False)
    type: Mapped[str] = mapped_column(Text, nullable=False)
    input: Mapped[dict[str, Any]] = mapped_column(JSONType, nullable=False)
    output: Mapped[dict[str, Any]] = mapped_column(JSONType, nullable=False)
