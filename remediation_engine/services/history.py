"""
History recording and read-side enrichment.

record_transition is the only way the engine writes history; it must be called
inside the same UnitOfWork as the action mutation it describes.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional
from remediation_engine.api.schemas import HistoryEntryResponse
from remediation_engine.models.audit import RemediationHistoryEntry
from remediation_engine.models.domain import RemediationAction
from remediation_engine.models.enums import ActionStatus, HistoryEventType
from remediation_engine.services.unit_of_work import UnitOfWork


def record_transition(
    uow: UnitOfWork,
    action: RemediationAction,
    event_type: HistoryEventType,
    old_status: ActionStatus,
    performed_by: str,
    reason: Optional[str] = None,
    old_value: Any = None,
    new_value: Any = None,
    metadata: Optional[Dict[str, Any]] = None
) -> RemediationHistoryEntry:
    """Append one history entry describing action's move from old_status to its current status."""
    entry = RemediationHistoryEntry(
        action_id=action.id,
        event_type=event_type,
        old_status=old_status,
        new_status=action.status,
        old_value=_as_text(old_value),
        new_value=_as_text(new_value),
        performed_by=performed_by,
        reason=reason,
        event_metadata=dict(metadata or {}),
        created_at=datetime.utcnow()
    )
    return uow.history.add(entry)


def compute_durations(entries: List[RemediationHistoryEntry]) -> Dict[int, Optional[int]]:
    """
    Milliseconds between each entry and the one before it.

    entries must be the action's full history, oldest first. The first entry maps to None.
    """
    durations: Dict[int, Optional[int]] = {}
    previous = None
    for entry in entries:
        if previous is None:
            durations[entry.id] = None
        else:
            delta = entry.created_at - previous.created_at
            durations[entry.id] = int(delta.total_seconds() * 1000)
        previous = entry
    return durations


def to_response(entry: RemediationHistoryEntry, duration_ms: Optional[int]) -> HistoryEntryResponse:
    return HistoryEntryResponse(
        id=entry.id,
        action_id=entry.action_id,
        event_type=entry.event_type,
        old_status=entry.old_status,
        new_status=entry.new_status,
        old_value=entry.old_value,
        new_value=entry.new_value,
        performed_by=entry.performed_by,
        reason=entry.reason,
        metadata=entry.event_metadata or {},
        created_at=entry.created_at,
        description=entry.describe(),
        is_user_action=entry.is_user_action(),
        is_system_action=entry.is_system_action(),
        duration_ms=duration_ms,
        source=entry.source,
        batch_id=entry.batch_id
    )


def _as_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    return str(value)
