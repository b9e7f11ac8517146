"""SQLAlchemy ORM models for Sprintflow.

This module defines the database schema: projects, sprints, artifacts,
project and sprint status history, and the workflow conversation log.

All models use SQLAlchemy 2.0 declarative style with Mapped[] type annotations.
"""

from sprintflow.database.models.artifact import Artifact, ArtifactType
from sprintflow.database.models.base import Base, TimestampMixin
from sprintflow.database.models.conversation import WORKFLOW_TRANSITION, Conversation
from sprintflow.database.models.history import ProjectStatusHistory, SprintStatusHistory
from sprintflow.database.models.project import ApprovalStatus, Project, ProjectStatus
from sprintflow.database.models.sprint import Sprint, SprintStatus

__all__ = [
    "Base",
    "TimestampMixin",
    "Project",
    "ProjectStatus",
    "ApprovalStatus",
    "Sprint",
    "SprintStatus",
    "Artifact",
    "ArtifactType",
    "ProjectStatusHistory",
    "SprintStatusHistory",
    "Conversation",
    "WORKFLOW_TRANSITION",
]
