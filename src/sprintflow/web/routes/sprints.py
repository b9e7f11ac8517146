"""Sprint endpoints for Sprintflow.

Routes:
    PATCH /sprints/{sprint_id} - Move a sprint along the sprint graph
    POST /sprints/{sprint_id}/approve - Start a sprint awaiting approval
    POST /sprints/{sprint_id}/reject - Send it back to PLANNED
    POST /sprints/{sprint_id}/reinitiate - Re-send ``sprint/approved``
    POST /sprints/{sprint_id}/status - Record a status report
"""

from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from sprintflow.database.models.sprint import SprintStatus
from sprintflow.logging import get_logger
from sprintflow.services import Services
from sprintflow.web.dependencies import get_services, get_user_id, ok

logger = get_logger(__name__)


class SprintResponse(BaseModel):
    """Response schema for sprint data."""

    id: UUID
    project_id: UUID
    number: int
    name: str | None
    goal: str | None
    status: SprintStatus
    started_at: datetime | None
    completed_at: datetime | None
    handoff_content: str | None
    review_summary: str | None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class SprintStatusChangeRequest(BaseModel):
    """Request schema for a manual sprint status change.

    Attributes:
        status: Target status
        expected_status: Status the caller believes is current; defaults
            to the stored status
    """

    status: SprintStatus
    expected_status: SprintStatus | None = None


class ApproveRequest(BaseModel):
    """Optional notes passed to the Implementer with the approval."""

    approval_notes: str | None = Field(default=None, max_length=5000)


class RejectRequest(BaseModel):
    """Optional reason recorded in the rejection notice."""

    reason: str | None = Field(default=None, max_length=5000)


class StatusReportRequest(BaseModel):
    """A sprint status report, stored as the sprint's review summary."""

    document: str = Field(..., min_length=1)


def create_sprints_router() -> APIRouter:
    """Create sprints router."""
    router = APIRouter(prefix="/sprints", tags=["sprints"])

    @router.patch("/{sprint_id}")
    async def change_sprint_status(
        sprint_id: UUID,
        body: SprintStatusChangeRequest,
        user_id: str = Depends(get_user_id),
        services: Services = Depends(get_services),  # noqa: B008
    ) -> dict[str, Any]:
        """Send a sprint to review, queue it for approval, block or re-queue it."""
        sprint = await services.lifecycle.change_sprint_status(
            sprint_id, user_id, body.status, body.expected_status
        )
        return ok(SprintResponse.model_validate(sprint))

    @router.post("/{sprint_id}/approve")
    async def approve_sprint(
        sprint_id: UUID,
        body: ApproveRequest | None = None,
        user_id: str = Depends(get_user_id),
        services: Services = Depends(get_services),  # noqa: B008
    ) -> dict[str, Any]:
        """Approve a sprint in AWAITING_APPROVAL and start it."""
        notes = body.approval_notes if body else None
        result = await services.sprint_gate.approve(sprint_id, user_id, notes)
        return ok(result)

    @router.post("/{sprint_id}/reject")
    async def reject_sprint(
        sprint_id: UUID,
        body: RejectRequest | None = None,
        user_id: str = Depends(get_user_id),
        services: Services = Depends(get_services),  # noqa: B008
    ) -> dict[str, Any]:
        """Reject a sprint in AWAITING_APPROVAL; it returns to PLANNED."""
        reason = body.reason if body else None
        result = await services.sprint_gate.reject(sprint_id, user_id, reason)
        return ok(result)

    @router.post("/{sprint_id}/reinitiate")
    async def reinitiate_sprint(
        sprint_id: UUID,
        user_id: str = Depends(get_user_id),
        services: Services = Depends(get_services),  # noqa: B008
    ) -> dict[str, Any]:
        result = await services.recovery.reinitiate_sprint(sprint_id, user_id)
        return ok(result)

    @router.post("/{sprint_id}/status")
    async def record_status_report(
        sprint_id: UUID,
        body: StatusReportRequest,
        user_id: str = Depends(get_user_id),
        services: Services = Depends(get_services),  # noqa: B008
    ) -> dict[str, Any]:
        sprint = await services.lifecycle.record_status_report(sprint_id, user_id, body.document)
        return ok(SprintResponse.model_validate(sprint))

    return router
