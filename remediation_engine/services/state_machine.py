"""
Action status state machine.

Every status change made by the engine is gated by can_transition. The table is
the single source of truth for which moves are legal.
"""
from typing import Dict, FrozenSet
from remediation_engine.models.enums import ActionStatus, HistoryEventType


VALID_TRANSITIONS: Dict[ActionStatus, FrozenSet[ActionStatus]] = {
    ActionStatus.PENDING: frozenset({
        ActionStatus.APPLIED,
        ActionStatus.REJECTED,
        ActionStatus.REQUIRES_REVIEW,
        ActionStatus.SKIPPED,
    }),
    ActionStatus.REQUIRES_REVIEW: frozenset({
        ActionStatus.APPLIED,
        ActionStatus.REJECTED,
        ActionStatus.SKIPPED,
    }),
    ActionStatus.APPLIED: frozenset({ActionStatus.PENDING}),  # Rollback only
    ActionStatus.REJECTED: frozenset({ActionStatus.PENDING}),  # Retry only
    ActionStatus.SKIPPED: frozenset({ActionStatus.PENDING}),  # Retry only
}

# Statuses an action may be created in by the detection process
INITIAL_STATUSES = frozenset({ActionStatus.PENDING, ActionStatus.REQUIRES_REVIEW})

# Statuses counted towards job progress
PROCESSED_STATUSES = frozenset({ActionStatus.APPLIED, ActionStatus.REJECTED, ActionStatus.SKIPPED})


def can_transition(from_status, to_status) -> bool:
    """Return True if an action may move from from_status to to_status. Pure."""
    try:
        source = ActionStatus(from_status)
        target = ActionStatus(to_status)
    except ValueError:
        return False
    return target in VALID_TRANSITIONS.get(source, frozenset())


def event_type_for_status(status: ActionStatus) -> HistoryEventType:
    """History event recorded when an action moves into status."""
    if status == ActionStatus.APPLIED:
        return HistoryEventType.APPROVED
    if status == ActionStatus.REJECTED:
        return HistoryEventType.REJECTED
    if status == ActionStatus.REQUIRES_REVIEW:
        return HistoryEventType.REVIEWED
    if status == ActionStatus.SKIPPED:
        return HistoryEventType.SKIPPED
    return HistoryEventType.STARTED
