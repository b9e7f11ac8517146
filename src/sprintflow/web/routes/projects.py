"""Project endpoints for Sprintflow.

This module provides REST API endpoints for the project lifecycle:
- Create a project at intake and read it back with its sprints
- Request status changes through the transition executor
- Record the generated plan and the owner's decision on it
- Kick off implementation and reinitiate a stalled kickoff
- Read status history and stored artifacts

The caller's identity comes from the ``X-User-ID`` header. Every response
uses the ``{"success": ..., "data" | "error": ...}`` envelope.

Example:
    >>> from fastapi import FastAPI
    >>> from sprintflow.web.routes.projects import create_projects_router
    >>>
    >>> app = FastAPI()
    >>> app.include_router(create_projects_router())
"""

from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from fastapi import status as http_status
from pydantic import BaseModel, Field

from sprintflow.database.models.artifact import ArtifactType
from sprintflow.database.models.project import ApprovalStatus, ProjectStatus
from sprintflow.logging import get_logger
from sprintflow.orchestrator.lifecycle import PlanDecision, SprintPlan
from sprintflow.services import Services
from sprintflow.web.dependencies import get_services, get_user_id, ok
from sprintflow.web.routes.sprints import SprintResponse

logger = get_logger(__name__)


class ProjectCreate(BaseModel):
    """Request schema for creating a new project.

    Attributes:
        name: Human-readable project name (1-255 characters)
        slug: URL-safe unique identifier
        intake_data: Free-form intake answers
    """

    name: str = Field(..., min_length=1, max_length=255)
    slug: str = Field(..., min_length=1, max_length=100, pattern=r"^[a-z0-9][a-z0-9-]*$")
    intake_data: dict[str, Any] = Field(default_factory=dict)


class StatusChangeRequest(BaseModel):
    """Request schema for a project status change.

    Attributes:
        status: Target status
        expected_status: Status the caller believes is current; defaults
            to the stored status
    """

    status: ProjectStatus
    expected_status: ProjectStatus | None = None


class PlanRequest(BaseModel):
    """Request schema for recording a generated plan."""

    backlog: str = Field(..., min_length=1)
    architecture: str = Field(..., min_length=1)
    sprints: list[SprintPlan] = Field(..., min_length=1)


class PlanDecisionRequest(BaseModel):
    """Request schema for the owner's plan decision."""

    decision: PlanDecision
    notes: str | None = Field(default=None, max_length=5000)


class KickoffRequest(BaseModel):
    """Request schema for kickoff."""

    implementer_id: str | None = Field(default=None, min_length=1)


class ProjectResponse(BaseModel):
    """Response schema for project data."""

    id: UUID
    slug: str
    name: str
    status: ProjectStatus
    approval_status: ApprovalStatus
    approval_notes: str | None
    approved_at: datetime | None
    archived_at: datetime | None
    owner_id: str
    implementer_id: str | None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class ProjectDetailResponse(BaseModel):
    """A project with its sprints in number order."""

    project: ProjectResponse
    sprints: list[SprintResponse]


class HistoryEntryResponse(BaseModel):
    """One project status change."""

    old_status: ProjectStatus
    new_status: ProjectStatus
    changed_by: str
    changed_at: datetime

    model_config = {"from_attributes": True}


class ArtifactResponse(BaseModel):
    """A stored plan or handoff document."""

    id: UUID
    type: ArtifactType
    name: str
    content: str
    version: int
    created_at: datetime

    model_config = {"from_attributes": True}


def create_projects_router() -> APIRouter:
    """Create projects router.

    Routes:
        POST /projects/ - Create project
        GET /projects/{project_id} - Get project with sprints
        PATCH /projects/{project_id}/status - Change status
        GET /projects/{project_id}/history - Status history, newest first
        GET /projects/{project_id}/artifacts - Stored documents
        POST /projects/{project_id}/plan - Record plan
        POST /projects/{project_id}/approval - Owner's plan decision
        POST /projects/{project_id}/kickoff - Start Sprint 1
        POST /projects/{project_id}/reinitiate - Re-send ``project/kicked_off``
    """
    router = APIRouter(prefix="/projects", tags=["projects"])

    @router.post("/", status_code=http_status.HTTP_201_CREATED)
    async def create_project(
        project_data: ProjectCreate,
        user_id: str = Depends(get_user_id),
        services: Services = Depends(get_services),  # noqa: B008
    ) -> dict[str, Any]:
        """Create a project owned by the caller."""
        project = await services.lifecycle.create_project(
            name=project_data.name,
            slug=project_data.slug,
            owner_id=user_id,
            intake_data=project_data.intake_data,
        )
        logger.info("project_created_via_api", project_id=str(project.id))
        return ok(ProjectResponse.model_validate(project))

    @router.get("/{project_id}")
    async def get_project(
        project_id: UUID,
        user_id: str = Depends(get_user_id),
        services: Services = Depends(get_services),  # noqa: B008
    ) -> dict[str, Any]:
        detail = await services.lifecycle.get_project(project_id, user_id)
        return ok(
            ProjectDetailResponse(
                project=ProjectResponse.model_validate(detail.project),
                sprints=[SprintResponse.model_validate(s) for s in detail.sprints],
            )
        )

    @router.patch("/{project_id}/status")
    async def change_status(
        project_id: UUID,
        body: StatusChangeRequest,
        user_id: str = Depends(get_user_id),
        services: Services = Depends(get_services),  # noqa: B008
    ) -> dict[str, Any]:
        """Move a project along the lifecycle graph.

        Illegal edges answer INVALID_TRANSITION; a status changed by
        someone else in the meantime answers CONFLICT.
        """
        project = await services.lifecycle.change_status(
            project_id, user_id, body.status, body.expected_status
        )
        return ok(ProjectResponse.model_validate(project))

    @router.get("/{project_id}/history")
    async def project_history(
        project_id: UUID,
        user_id: str = Depends(get_user_id),
        services: Services = Depends(get_services),  # noqa: B008
    ) -> dict[str, Any]:
        entries = await services.lifecycle.project_history(project_id, user_id)
        return ok([HistoryEntryResponse.model_validate(e) for e in entries])

    @router.get("/{project_id}/artifacts")
    async def list_artifacts(
        project_id: UUID,
        artifact_type: ArtifactType | None = Query(default=None, alias="type"),  # noqa: B008
        user_id: str = Depends(get_user_id),
        services: Services = Depends(get_services),  # noqa: B008
    ) -> dict[str, Any]:
        artifacts = await services.lifecycle.list_artifacts(project_id, user_id, artifact_type)
        return ok([ArtifactResponse.model_validate(a) for a in artifacts])

    @router.post("/{project_id}/plan", status_code=http_status.HTTP_201_CREATED)
    async def record_plan(
        project_id: UUID,
        body: PlanRequest,
        user_id: str = Depends(get_user_id),
        services: Services = Depends(get_services),  # noqa: B008
    ) -> dict[str, Any]:
        """Store BACKLOG.md, ARCHITECTURE.md and the planned sprints."""
        result = await services.lifecycle.record_plan(
            project_id, user_id, body.backlog, body.architecture, body.sprints
        )
        return ok(
            {
                "project": ProjectResponse.model_validate(result.project),
                "sprints": [SprintResponse.model_validate(s) for s in result.sprints],
                "artifacts": [ArtifactResponse.model_validate(a) for a in result.artifacts],
            }
        )

    @router.post("/{project_id}/approval")
    async def decide_plan(
        project_id: UUID,
        body: PlanDecisionRequest,
        user_id: str = Depends(get_user_id),
        services: Services = Depends(get_services),  # noqa: B008
    ) -> dict[str, Any]:
        project = await services.lifecycle.decide_plan(
            project_id, user_id, body.decision, body.notes
        )
        return ok(ProjectResponse.model_validate(project))

    @router.post("/{project_id}/kickoff")
    async def kickoff(
        project_id: UUID,
        body: KickoffRequest | None = None,
        user_id: str = Depends(get_user_id),
        services: Services = Depends(get_services),  # noqa: B008
    ) -> dict[str, Any]:
        """Start Sprint 1 of an approved project.

        ``kickoff_ready`` reports whether ``project/kicked_off`` reached
        the event bus; when it is false the kickoff can be re-sent with
        the reinitiate endpoint.
        """
        implementer_id = body.implementer_id if body else None
        result = await services.lifecycle.kickoff(project_id, user_id, implementer_id)
        return ok(
            {
                "project": ProjectResponse.model_validate(result.project),
                "sprint": (
                    SprintResponse.model_validate(result.sprint) if result.sprint else None
                ),
                "kickoff_ready": result.kickoff_ready,
            }
        )

    @router.post("/{project_id}/reinitiate")
    async def reinitiate_project(
        project_id: UUID,
        user_id: str = Depends(get_user_id),
        services: Services = Depends(get_services),  # noqa: B008
    ) -> dict[str, Any]:
        result = await services.recovery.reinitiate_project(project_id, user_id)
        return ok(result)

    return router
