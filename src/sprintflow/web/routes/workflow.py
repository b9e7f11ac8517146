"""Workflow hand-off endpoint for Sprintflow.

Routes:
    POST /workflow/transition - Hand a sprint from one role to the next
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends

from sprintflow.logging import get_logger
from sprintflow.orchestrator.workflow import WorkflowTransitionRequest
from sprintflow.services import Services
from sprintflow.web.dependencies import get_services, get_user_id, ok

logger = get_logger(__name__)


def create_workflow_router() -> APIRouter:
    """Create workflow router."""
    router = APIRouter(prefix="/workflow", tags=["workflow"])

    @router.post("/transition")
    async def transition(
        request: WorkflowTransitionRequest,
        user_id: str = Depends(get_user_id),
        services: Services = Depends(get_services),  # noqa: B008
    ) -> dict[str, Any]:
        """Apply a role hand-off and its follow-on effects.

        Stores the handoff document, records the audit entry, moves the
        sprint and, on completion, starts the next sprint or completes the
        project.
        """
        result = await services.workflow.transition(request, user_id)
        logger.info(
            "workflow_transition_via_api",
            sprint_status=result.sprint_status.value,
            project_completed=result.project_completed,
        )
        return ok(result)

    return router
