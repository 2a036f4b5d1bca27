"""Domain models - remediation jobs and the actions they own."""
from datetime import datetime
from uuid import uuid4
from sqlalchemy import Column, String, Integer, Float, Text, DateTime, ForeignKey, Enum as SQLEnum, JSON
from sqlalchemy.orm import relationship
from pydantic import ValidationError
from remediation_engine.database import Base
from remediation_engine.models.enums import ActionStatus, ActionType, JobStatus, RiskLevel
from remediation_engine.models.metadata import ActionMetadata


def _new_id() -> str:
    return str(uuid4())


class RemediationJob(Base):
    """
    Aggregate over the actions produced by one remediation run.

    Invariants:
    - Counters are recomputed from action rows, never incremented
    - fixed_violations + rejected_count + skipped_count >= total_violations
      moves an in_progress job to completed
    """
    __tablename__ = "remediation_jobs"

    id = Column(String(36), primary_key=True, default=_new_id)
    name = Column(String, nullable=True)
    status = Column(SQLEnum(JobStatus), nullable=False, default=JobStatus.IN_PROGRESS)

    total_violations = Column(Integer, nullable=False, default=0)
    fixed_violations = Column(Integer, nullable=False, default=0)
    rejected_count = Column(Integer, nullable=False, default=0)
    skipped_count = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    started_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    actions = relationship("RemediationAction", back_populates="job")

    @property
    def processed_count(self) -> int:
        return (self.fixed_violations or 0) + (self.rejected_count or 0) + (self.skipped_count or 0)


class RemediationAction(Base):
    """
    A single proposed fix for one violation in one record/field.

    Invariants enforced here and in the service layer:
    - Status is always one of the five ActionStatus values
    - applied_value is only set while status is applied
    - Rows are never deleted; terminal statuses are reachable states
    """
    __tablename__ = "remediation_actions"

    id = Column(String(36), primary_key=True, default=_new_id)
    job_id = Column(String(36), ForeignKey("remediation_jobs.id"), nullable=False, index=True)
    violation_id = Column(String(36), nullable=True)
    record_id = Column(String(255), nullable=False)
    field_name = Column(String(255), nullable=False)

    action_type = Column(SQLEnum(ActionType), nullable=False, default=ActionType.AUTO_FIX)
    fix_method = Column(String(64), nullable=False, index=True)
    confidence = Column(Float, nullable=True, index=True)
    risk_assessment = Column(SQLEnum(RiskLevel), nullable=False, default=RiskLevel.MEDIUM)

    original_value = Column(Text, nullable=True)
    suggested_value = Column(Text, nullable=True)
    applied_value = Column(Text, nullable=True)  # Only set while applied

    status = Column(SQLEnum(ActionStatus), nullable=False, default=ActionStatus.PENDING, index=True)

    reviewed_by = Column(String(255), nullable=True)
    reviewed_at = Column(DateTime, nullable=True)

    # "metadata" is reserved on declarative classes
    rollback_data = Column(JSON, nullable=True)
    action_metadata = Column("metadata", JSON, nullable=False, default=dict)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)
    applied_at = Column(DateTime, nullable=True)
    rolled_back_at = Column(DateTime, nullable=True)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    job = relationship("RemediationJob", back_populates="actions")

    @property
    def parsed_metadata(self) -> ActionMetadata:
        return ActionMetadata.model_validate(self.action_metadata or {})

    @property
    def is_reversible(self) -> bool:
        # Only a well-formed literal true marks a fix as reversible
        try:
            return self.parsed_metadata.reversible
        except ValidationError:
            return False

    @property
    def rejection_reason(self):
        try:
            return self.parsed_metadata.rejection_reason
        except ValidationError:
            raw = self.action_metadata if isinstance(self.action_metadata, dict) else {}
            return raw.get("rejectionReason")

    def can_be_applied(self) -> bool:
        return self.status in (ActionStatus.PENDING, ActionStatus.REQUIRES_REVIEW)

    def record_rejection_reason(self, reason) -> None:
        # Reassign so the JSON column is flagged dirty
        current = self.action_metadata if isinstance(self.action_metadata, dict) else {}
        self.action_metadata = {**current, "rejectionReason": reason}

