"""Persistence for projects, sprints, artifacts and their history.

``get_engine`` and ``get_session_factory`` build the async SQLAlchemy
plumbing; the ORM models are re-exported here, and the compare-and-swap
queries live in ``sprintflow.database.queries``.
"""

from sprintflow.database.connection import get_engine, get_session_factory, is_sqlite
from sprintflow.database.models import (
    ApprovalStatus,
    Artifact,
    ArtifactType,
    Base,
    Conversation,
    Project,
    ProjectStatus,
    ProjectStatusHistory,
    Sprint,
    SprintStatus,
    SprintStatusHistory,
    TimestampMixin,
)

__all__ = [
    "ApprovalStatus",
    "Artifact",
    "ArtifactType",
    "Base",
    "Conversation",
    "Project",
    "ProjectStatus",
    "ProjectStatusHistory",
    "Sprint",
    "SprintStatus",
    "SprintStatusHistory",
    "TimestampMixin",
    "get_engine",
    "get_session_factory",
    "is_sqlite",
]
