"""
Errors raised by the remediation engine.

Bulk operations turn RemediationError subclasses into per-item failures;
single-action calls let them propagate. Storage errors are never wrapped.
"""
from typing import Optional


class RemediationError(Exception):
    """Base class for validation-level refusals."""

    def __init__(self, message: str, action_id: Optional[str] = None):
        self.message = message
        self.action_id = action_id
        super().__init__(self.message)


class ActionNotFoundError(RemediationError):
    def __init__(self, action_id: str):
        super().__init__("Action not found", action_id=action_id)


class InvalidTransitionError(RemediationError):
    """Raised when the current status cannot legally reach the requested one."""

    def __init__(self, action_id: str, from_status, to_status):
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(
            f"Invalid status transition from {_value(from_status)} to {_value(to_status)}",
            action_id=action_id
        )


class RollbackNotAllowedError(RemediationError):
    """Raised when an action is not applied or its fix is not reversible."""


class JobNotFoundError(RemediationError):
    def __init__(self, job_id: str):
        self.job_id = job_id
        super().__init__("Job not found")


class ImmutableHistoryError(Exception):
    """Raised when something tries to edit or delete a history entry."""


def _value(status) -> str:
    return getattr(status, "value", status)
