"""Sprint lifecycle orchestration for Sprintflow.

This package holds the status registry, the optimistic transition
executor, the handoff document builder and the services built on them:
workflow hand-offs, the sprint approval gate, project lifecycle
operations, reinitiate recovery and post-commit side effects.
"""

from sprintflow.orchestrator.errors import (
    AlreadyExistsError,
    ConflictError,
    ForbiddenError,
    InternalError,
    InvalidTransitionError,
    NotFoundError,
    PreconditionFailedError,
    SprintflowError,
    UnauthorizedError,
    ValidationError,
)
from sprintflow.orchestrator.lifecycle import PlanDecision, ProjectLifecycle, SprintPlan
from sprintflow.orchestrator.recovery import RecoveryService
from sprintflow.orchestrator.side_effects import SideEffects
from sprintflow.orchestrator.sprint_gate import SprintApprovalGate
from sprintflow.orchestrator.state_machine import TransitionExecutor
from sprintflow.orchestrator.workflow import (
    WorkflowTransitionProtocol,
    WorkflowTransitionRequest,
    WorkflowTransitionResult,
)

__all__ = [
    "AlreadyExistsError",
    "ConflictError",
    "ForbiddenError",
    "InternalError",
    "InvalidTransitionError",
    "NotFoundError",
    "PreconditionFailedError",
    "SprintflowError",
    "UnauthorizedError",
    "ValidationError",
    "PlanDecision",
    "ProjectLifecycle",
    "SprintPlan",
    "RecoveryService",
    "SideEffects",
    "SprintApprovalGate",
    "TransitionExecutor",
    "WorkflowTransitionProtocol",
    "WorkflowTransitionRequest",
    "WorkflowTransitionResult",
]
