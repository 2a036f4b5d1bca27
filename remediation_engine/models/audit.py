"""
Remediation history - the immutable, append-only audit trail of action status changes.

One row is written per accepted mutation, in the same transaction as the mutation.
"""
from datetime import datetime
from sqlalchemy import Column, String, Integer, Text, DateTime, ForeignKey, Enum as SQLEnum, JSON, event
from remediation_engine.database import Base
from remediation_engine.models.enums import ActionStatus, HistoryEventType, HistorySource
from remediation_engine.services.errors import ImmutableHistoryError


EVENT_DESCRIPTIONS = {
    HistoryEventType.STARTED: "Processing started",
    HistoryEventType.APPROVED: "Action approved",
    HistoryEventType.REJECTED: "Action rejected",
    HistoryEventType.REVIEWED: "Action reviewed",
    HistoryEventType.ROLLED_BACK: "Changes rolled back",
    HistoryEventType.SKIPPED: "Action skipped",
}


class RemediationHistoryEntry(Base):
    """
    Immutable audit record of one status transition.

    Invariants:
    - Once written, never edited or deleted (enforced by flush-time listeners below)
    - metadata always carries "source"; batch operations add a shared "batchId"
    - action_id is a back-reference, not an ownership link
    """
    __tablename__ = "remediation_history"

    # Auto-increment id doubles as the tie-break for equal timestamps
    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    action_id = Column(String(36), ForeignKey("remediation_actions.id"), nullable=False, index=True)
    event_type = Column(SQLEnum(HistoryEventType), nullable=False, index=True)
    old_status = Column(SQLEnum(ActionStatus), nullable=True)
    new_status = Column(SQLEnum(ActionStatus), nullable=True)
    old_value = Column(Text, nullable=True)
    new_value = Column(Text, nullable=True)
    performed_by = Column(String(255), nullable=False, index=True)
    reason = Column(Text, nullable=True)
    event_metadata = Column("metadata", JSON, nullable=False, default=dict)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)

    @property
    def source(self) -> str:
        return (self.event_metadata or {}).get("source") or "unknown"

    @property
    def batch_id(self):
        return (self.event_metadata or {}).get("batchId")

    def is_status_change(self) -> bool:
        return (
            self.old_status is not None
            and self.new_status is not None
            and self.old_status != self.new_status
        )

    def is_value_change(self) -> bool:
        return self.old_value != self.new_value and (
            self.old_value is not None or self.new_value is not None
        )

    def is_system_action(self) -> bool:
        return self.source == HistorySource.SYSTEM.value or self.performed_by == HistorySource.SYSTEM.value

    def is_user_action(self) -> bool:
        return not self.is_system_action()

    def describe(self) -> str:
        if self.is_status_change():
            return f"Status changed from {self.old_status.value} to {self.new_status.value}"
        if self.is_value_change():
            return f'Value changed from "{self.old_value}" to "{self.new_value}"'
        return EVENT_DESCRIPTIONS.get(self.event_type, "Unknown action")


@event.listens_for(RemediationHistoryEntry, "before_update")
def _refuse_history_update(mapper, connection, target):
    raise ImmutableHistoryError(f"History entry {target.id} is append-only and cannot be updated")


@event.listens_for(RemediationHistoryEntry, "before_delete")
def _refuse_history_delete(mapper, connection, target):
    raise ImmutableHistoryError(f"History entry {target.id} is append-only and cannot be deleted")
