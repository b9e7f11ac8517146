"""Status registry for Sprintflow.

The single source of truth for which status changes are legal. Every call
site that validates a transition consults this module; no other module
declares an adjacency table.

Three graphs are defined:
    - Project lifecycle (COMPLETE / APPROVED / FINISHED).
    - Workflow hand-offs between the Implementer, Reviewer, QA and PM roles.
    - Requested sprint status changes (approval gate and manual updates).

Sources absent from a table have no outgoing edges, and self-transitions
are illegal unless listed.
"""

from __future__ import annotations

from enum import Enum

from sprintflow.database.models.project import ProjectStatus
from sprintflow.database.models.sprint import SprintStatus


class WorkflowStatus(str, Enum):
    """Position of a sprint in the role hand-off cycle."""

    IMPLEMENTING = "IMPLEMENTING"
    REVIEWING = "REVIEWING"
    TESTING = "TESTING"
    AWAITING_APPROVAL = "AWAITING_APPROVAL"
    COMPLETED = "COMPLETED"


class WorkflowRole(str, Enum):
    """Pipeline participant a handoff is addressed from or to."""

    IMPLEMENTER = "Implementer"
    REVIEWER = "Reviewer"
    QA = "QA"
    PM = "PM"


class Decision(str, Enum):
    """Known decision tags. Free text is accepted wherever a tag is."""

    APPROVE = "APPROVE"
    REQUEST_CHANGES = "REQUEST_CHANGES"
    ACCEPT = "ACCEPT"
    REJECT = "REJECT"
    FIX_REQUIRED = "FIX_REQUIRED"


PROJECT_TRANSITIONS: dict[ProjectStatus, set[ProjectStatus]] = {
    ProjectStatus.IN_PROGRESS: {ProjectStatus.COMPLETE},
    ProjectStatus.COMPLETE: {ProjectStatus.IN_PROGRESS, ProjectStatus.APPROVED},
    ProjectStatus.APPROVED: {ProjectStatus.COMPLETE, ProjectStatus.FINISHED},
    ProjectStatus.FINISHED: set(),  # Terminal
}

WORKFLOW_TRANSITIONS: dict[WorkflowStatus, set[WorkflowStatus]] = {
    WorkflowStatus.IMPLEMENTING: {WorkflowStatus.REVIEWING},
    WorkflowStatus.REVIEWING: {WorkflowStatus.TESTING, WorkflowStatus.IMPLEMENTING},
    WorkflowStatus.TESTING: {WorkflowStatus.AWAITING_APPROVAL, WorkflowStatus.IMPLEMENTING},
    WorkflowStatus.AWAITING_APPROVAL: {WorkflowStatus.COMPLETED, WorkflowStatus.IMPLEMENTING},
    WorkflowStatus.COMPLETED: set(),  # Terminal
}

SPRINT_TRANSITIONS: dict[SprintStatus, set[SprintStatus]] = {
    SprintStatus.PLANNED: {
        SprintStatus.IN_PROGRESS,
        SprintStatus.AWAITING_APPROVAL,
        SprintStatus.BLOCKED,
    },
    SprintStatus.IN_PROGRESS: {SprintStatus.REVIEW, SprintStatus.BLOCKED},
    SprintStatus.REVIEW: {
        SprintStatus.IN_PROGRESS,
        SprintStatus.AWAITING_APPROVAL,
        SprintStatus.COMPLETED,
    },
    SprintStatus.AWAITING_APPROVAL: {SprintStatus.IN_PROGRESS, SprintStatus.PLANNED},
    SprintStatus.BLOCKED: {SprintStatus.IN_PROGRESS, SprintStatus.PLANNED},
    SprintStatus.COMPLETED: set(),  # Terminal
}

WORKFLOW_TO_SPRINT_STATUS: dict[WorkflowStatus, SprintStatus] = {
    WorkflowStatus.IMPLEMENTING: SprintStatus.IN_PROGRESS,
    WorkflowStatus.REVIEWING: SprintStatus.REVIEW,
    WorkflowStatus.TESTING: SprintStatus.REVIEW,
    WorkflowStatus.AWAITING_APPROVAL: SprintStatus.REVIEW,
    WorkflowStatus.COMPLETED: SprintStatus.COMPLETED,
}

TERMINAL_PROJECT_STATUSES: frozenset[ProjectStatus] = frozenset(
    {ProjectStatus.FINISHED, ProjectStatus.CANCELLED}
)


def is_legal_project_transition(current: ProjectStatus, target: ProjectStatus) -> bool:
    """Return True if the project graph has an edge ``current -> target``."""
    return target in PROJECT_TRANSITIONS.get(current, set())


def is_legal_workflow_transition(current: WorkflowStatus, target: WorkflowStatus) -> bool:
    """Return True if the workflow graph has an edge ``current -> target``."""
    return target in WORKFLOW_TRANSITIONS.get(current, set())


def is_legal_sprint_transition(current: SprintStatus, target: SprintStatus) -> bool:
    """Return True if the sprint graph has an edge ``current -> target``."""
    return target in SPRINT_TRANSITIONS.get(current, set())


def allowed_project_targets(current: ProjectStatus) -> list[ProjectStatus]:
    """List legal targets from ``current`` in declaration order."""
    targets = PROJECT_TRANSITIONS.get(current, set())
    return [status for status in ProjectStatus if status in targets]


def sprint_status_for(workflow_status: WorkflowStatus) -> SprintStatus:
    """Map a workflow status to the sprint status it implies."""
    return WORKFLOW_TO_SPRINT_STATUS[workflow_status]
