"""Enums for the remediation engine - valid values for statuses, events and classifications."""
from enum import Enum


class ActionStatus(str, Enum):
    """The five statuses a RemediationAction can be in."""
    PENDING = "pending"
    REQUIRES_REVIEW = "requires_review"
    APPLIED = "applied"
    REJECTED = "rejected"
    SKIPPED = "skipped"


class ActionType(str, Enum):
    AUTO_FIX = "auto_fix"
    MANUAL_FIX = "manual_fix"
    IGNORE = "ignore"
    FLAG_FOR_REVIEW = "flag_for_review"


class RiskLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class JobStatus(str, Enum):
    """Lifecycle of a remediation job. The engine only moves in_progress -> completed."""
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"
    PAUSED = "paused"


class HistoryEventType(str, Enum):
    """Event types written to the remediation history."""
    STARTED = "started"
    APPROVED = "approved"
    REJECTED = "rejected"
    REVIEWED = "reviewed"
    ROLLED_BACK = "rolled_back"
    SKIPPED = "skipped"


class HistorySource(str, Enum):
    """Where a mutation originated."""
    UI = "ui"
    API = "api"
    SYSTEM = "system"
