"""Error taxonomy for Sprintflow.

Every error raised on purpose by the orchestrator derives from
SprintflowError and carries a stable ``code`` and an HTTP status that the
web layer uses to build the ``{"success": false, "error": {...}}``
envelope.
"""

from __future__ import annotations

from enum import Enum


class SprintflowError(Exception):
    """Base class for expected, client-visible failures.

    Attributes:
        code: Stable machine-readable error code.
        message: Human-readable description.
        status_code: HTTP status used by the web layer.
    """

    code = "INTERNAL_ERROR"
    status_code = 500

    def __init__(self, message: str, code: str | None = None) -> None:
        if code is not None:
            self.code = code
        self.message = message
        super().__init__(message)


class ValidationError(SprintflowError):
    """Request data failed validation."""

    code = "VALIDATION_ERROR"
    status_code = 400


class UnauthorizedError(SprintflowError):
    """No authenticated caller."""

    code = "UNAUTHORIZED"
    status_code = 401

    def __init__(self, message: str = "Authentication required") -> None:
        super().__init__(message)


class ForbiddenError(SprintflowError):
    """Caller is neither the owner nor the assigned implementer."""

    code = "FORBIDDEN"
    status_code = 403

    def __init__(self, message: str = "You do not have access to this project") -> None:
        super().__init__(message)


class NotFoundError(SprintflowError):
    """Referenced entity does not exist."""

    code = "NOT_FOUND"
    status_code = 404

    def __init__(self, resource: str, resource_id: str | None = None) -> None:
        self.resource = resource
        self.resource_id = resource_id
        msg = f"{resource} not found"
        if resource_id:
            msg = f"{resource} {resource_id} not found"
        super().__init__(msg)


class InvalidTransitionError(SprintflowError):
    """Raised when an illegal status transition is requested.

    Attributes:
        current: The source status.
        target: The attempted target status.
        entity_id: The ID of the entity that failed to transition.
    """

    code = "INVALID_TRANSITION"
    status_code = 400

    def __init__(
        self,
        current: Enum | str,
        target: Enum | str,
        entity_id: str | None = None,
    ) -> None:
        self.current = current
        self.target = target
        self.entity_id = entity_id
        current_value = current.value if isinstance(current, Enum) else current
        target_value = target.value if isinstance(target, Enum) else target
        msg = f"Invalid transition from {current_value} to {target_value}"
        if entity_id:
            msg += f" for {entity_id}"
        super().__init__(msg)


class PreconditionFailedError(SprintflowError):
    """Entity is in a state that does not allow the operation."""

    code = "PRECONDITION_FAILED"
    status_code = 400


class AlreadyExistsError(SprintflowError):
    """A unique value is already taken."""

    code = "ALREADY_EXISTS"
    status_code = 409


class ConflictError(SprintflowError):
    """A compare-and-swap write lost against a concurrent writer."""

    code = "CONFLICT"
    status_code = 409

    def __init__(self, resource: str, resource_id: str, expected: Enum | str) -> None:
        self.resource = resource
        self.resource_id = resource_id
        self.expected = expected
        expected_value = expected.value if isinstance(expected, Enum) else expected
        super().__init__(
            f"{resource} {resource_id} is no longer in status {expected_value}"
        )


class InternalError(SprintflowError):
    """Unexpected failure; details are logged, not returned."""

    code = "INTERNAL_ERROR"
    status_code = 500
