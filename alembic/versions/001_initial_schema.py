"""Initial schema for Sprintflow.

Creates projects, sprints, artifacts, conversations and the two status
history tables.

Revision ID: 001
Revises: None
Create Date: 2026-10-18
"""

from __future__ import annotations

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects.postgresql import JSONB

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

PROJECT_STATUSES = (
    "INTAKE",
    "PLANNING",
    "REVIEW",
    "APPROVED",
    "IN_PROGRESS",
    "ACTIVE",
    "COMPLETE",
    "COMPLETED",
    "FINISHED",
    "CANCELLED",
)
APPROVAL_STATUSES = ("PENDING", "APPROVED", "REJECTED", "REVISION_REQUESTED")
SPRINT_STATUSES = (
    "PLANNED",
    "IN_PROGRESS",
    "REVIEW",
    "AWAITING_APPROVAL",
    "COMPLETED",
    "BLOCKED",
)
ARTIFACT_TYPES = ("BACKLOG", "ARCHITECTURE", "HANDOFF")


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
    ]


def upgrade() -> None:
    project_status = sa.Enum(*PROJECT_STATUSES, name="projectstatus")
    approval_status = sa.Enum(*APPROVAL_STATUSES, name="approvalstatus")
    sprint_status = sa.Enum(*SPRINT_STATUSES, name="sprintstatus")
    artifact_type = sa.Enum(*ARTIFACT_TYPES, name="artifacttype")

    op.create_table(
        "projects",
        sa.Column("id", sa.Uuid(), server_default=sa.text("gen_random_uuid()"), primary_key=True),
        sa.Column("slug", sa.Text(), nullable=False, unique=True),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("status", project_status, server_default="INTAKE", nullable=False),
        sa.Column("approval_status", approval_status, server_default="PENDING", nullable=False),
        sa.Column("approval_notes", sa.Text(), nullable=True),
        sa.Column("approved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("archived_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("owner_id", sa.Text(), nullable=False),
        sa.Column("implementer_id", sa.Text(), nullable=True),
        sa.Column("intake_data", JSONB(), server_default="{}", nullable=False),
        *_timestamps(),
    )
    op.create_index("idx_projects_status", "projects", ["status"])
    op.create_index("idx_projects_owner", "projects", ["owner_id"])

    op.create_table(
        "sprints",
        sa.Column("id", sa.Uuid(), server_default=sa.text("gen_random_uuid()"), primary_key=True),
        sa.Column(
            "project_id",
            sa.Uuid(),
            sa.ForeignKey("projects.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("number", sa.Integer(), nullable=False),
        sa.Column("name", sa.Text(), nullable=True),
        sa.Column("goal", sa.Text(), nullable=True),
        sa.Column("status", sprint_status, server_default="PLANNED", nullable=False),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("handoff_content", sa.Text(), nullable=True),
        sa.Column("review_summary", sa.Text(), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("project_id", "number", name="uq_sprints_project_number"),
    )
    op.create_index("ix_sprints_project_id", "sprints", ["project_id"])

    op.create_table(
        "artifacts",
        sa.Column("id", sa.Uuid(), server_default=sa.text("gen_random_uuid()"), primary_key=True),
        sa.Column(
            "project_id",
            sa.Uuid(),
            sa.ForeignKey("projects.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("type", artifact_type, nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("version", sa.Integer(), server_default="1", nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_artifacts_project_id", "artifacts", ["project_id"])
    op.create_index("idx_artifacts_project_type", "artifacts", ["project_id", "type"])

    op.create_table(
        "conversations",
        sa.Column("id", sa.Uuid(), server_default=sa.text("gen_random_uuid()"), primary_key=True),
        sa.Column(
            "project_id",
            sa.Uuid(),
            sa.ForeignKey("projects.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("role", sa.Text(), nullable=False),
        sa.Column("type", sa.Text(), nullable=False),
        sa.Column("input", JSONB(), nullable=False),
        sa.Column("output", JSONB(), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_conversations_project_id", "conversations", ["project_id"])

    op.create_table(
        "project_status_history",
        sa.Column("id", sa.Uuid(), server_default=sa.text("gen_random_uuid()"), primary_key=True),
        sa.Column(
            "project_id",
            sa.Uuid(),
            sa.ForeignKey("projects.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("old_status", project_status, nullable=False),
        sa.Column("new_status", project_status, nullable=False),
        sa.Column("changed_by", sa.Text(), nullable=False),
        sa.Column(
            "changed_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        *_timestamps(),
    )
    op.create_index(
        "ix_project_status_history_project_id", "project_status_history", ["project_id"]
    )

    op.create_table(
        "sprint_status_history",
        sa.Column("id", sa.Uuid(), server_default=sa.text("gen_random_uuid()"), primary_key=True),
        sa.Column(
            "sprint_id",
            sa.Uuid(),
            sa.ForeignKey("sprints.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("old_status", sprint_status, nullable=False),
        sa.Column("new_status", sprint_status, nullable=False),
        sa.Column("changed_by", sa.Text(), nullable=False),
        sa.Column(
            "changed_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        *_timestamps(),
    )
    op.create_index(
        "ix_sprint_status_history_sprint_id", "sprint_status_history", ["sprint_id"]
    )


def downgrade() -> None:
    op.drop_table("sprint_status_history")
    op.drop_table("project_status_history")
    op.drop_table("conversations")
    op.drop_table("artifacts")
    op.drop_table("sprints")
    op.drop_table("projects")

    bind = op.get_bind()
    for name in ("artifacttype", "sprintstatus", "approvalstatus", "projectstatus"):
        sa.Enum(name=name).drop(bind, checkfirst=True)
