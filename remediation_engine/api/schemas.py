"""Pydantic schemas for engine requests and results."""
from datetime import datetime
from typing import Any, Dict, List, Optional, Union
from pydantic import AliasChoices, BaseModel, Field
from remediation_engine.models.enums import (
    ActionStatus,
    ActionType,
    HistoryEventType,
    HistorySource,
    JobStatus,
    RiskLevel
)


# Bulk mutation schemas
class BulkActionRequest(BaseModel):
    action_ids: List[str]
    performed_by: str = Field(..., min_length=1)
    reason: Optional[str] = None
    batch_id: Optional[str] = None
    source: HistorySource = HistorySource.API


class BulkStatusUpdateRequest(BaseModel):
    action_ids: List[str]
    status: ActionStatus
    performed_by: str = Field(..., min_length=1)
    reason: Optional[str] = None


class BulkActionItemResult(BaseModel):
    action_id: str
    success: bool
    error: Optional[str] = None


class BulkActionResult(BaseModel):
    batch_id: str
    total_requested: int
    success_count: int
    failure_count: int
    results: List[BulkActionItemResult]
    message: str

    @classmethod
    def from_items(
        cls,
        operation: str,
        batch_id: str,
        total_requested: int,
        results: List[BulkActionItemResult]
    ) -> "BulkActionResult":
        success_count = sum(1 for r in results if r.success)
        failure_count = len(results) - success_count
        return cls(
            batch_id=batch_id,
            total_requested=total_requested,
            success_count=success_count,
            failure_count=failure_count,
            results=results,
            message=f"Bulk {operation} completed: {success_count} succeeded, {failure_count} failed"
        )


# Rollback schemas
class ActionRollbackRequest(BaseModel):
    performed_by: str = Field(..., min_length=1)
    reason: Optional[str] = None


class BulkRollbackRequest(ActionRollbackRequest):
    action_ids: List[str]


class ActionRollbackResult(BaseModel):
    action_id: str
    success: bool
    previous_value: Optional[str] = None
    restored_value: Optional[str] = None
    message: str


class BulkRollbackResult(BaseModel):
    results: List[ActionRollbackResult]
    summary: BulkActionResult


# History and timeline schemas
class HistoryFilter(BaseModel):
    event_type: Optional[HistoryEventType] = None
    performed_by: Optional[str] = None
    limit: Optional[int] = Field(None, ge=1)
    offset: int = Field(0, ge=0)


class HistoryEntryResponse(BaseModel):
    id: int
    action_id: str
    event_type: HistoryEventType
    old_status: Optional[ActionStatus]
    new_status: Optional[ActionStatus]
    old_value: Optional[str]
    new_value: Optional[str]
    performed_by: str
    reason: Optional[str]
    metadata: Dict[str, Any]
    created_at: datetime

    # Derived on read, never persisted
    description: str
    is_user_action: bool
    is_system_action: bool
    duration_ms: Optional[int]
    source: str
    batch_id: Optional[str]


class ActionHistoryPage(BaseModel):
    history: List[HistoryEntryResponse]
    total: int


class TimelineEntry(BaseModel):
    status: Optional[ActionStatus]
    timestamp: datetime
    performed_by: str
    event_type: HistoryEventType
    duration_ms: Optional[int] = None


class ActionTimeline(BaseModel):
    action_id: str
    current_status: ActionStatus
    timeline: List[TimelineEntry]


# Filtered query schemas
class ConfidenceRange(BaseModel):
    min: float = Field(0.0, ge=0.0, le=1.0)
    max: float = Field(1.0, ge=0.0, le=1.0)


class DateRange(BaseModel):
    start: Optional[datetime] = None
    end: Optional[datetime] = None


class ActionFilter(BaseModel):
    job_id: Optional[str] = None
    status: Optional[Union[ActionStatus, List[ActionStatus]]] = None
    fix_method: Optional[Union[str, List[str]]] = None
    confidence_range: Optional[ConfidenceRange] = None
    risk_level: Optional[Union[RiskLevel, List[RiskLevel]]] = None
    date_range: Optional[DateRange] = None
    limit: Optional[int] = Field(None, ge=1)
    offset: int = Field(0, ge=0)


class ActionResponse(BaseModel):
    id: str
    job_id: str
    violation_id: Optional[str]
    record_id: str
    field_name: str
    action_type: ActionType
    fix_method: str
    status: ActionStatus
    original_value: Optional[str]
    suggested_value: Optional[str]
    applied_value: Optional[str]
    confidence: Optional[float]
    risk_assessment: RiskLevel
    reviewed_by: Optional[str]
    reviewed_at: Optional[datetime]
    rollback_data: Optional[Any] = None
    metadata: Dict[str, Any] = Field(default_factory=dict, validation_alias=AliasChoices("action_metadata", "metadata"))
    created_at: datetime
    applied_at: Optional[datetime]
    rolled_back_at: Optional[datetime]

    class Config:
        from_attributes = True


class ConfidenceStats(BaseModel):
    average: float
    high: int
    medium: int
    low: int


class ActionSummary(BaseModel):
    status_breakdown: Dict[str, int]
    confidence_stats: ConfidenceStats


class ActionQueryResult(BaseModel):
    actions: List[ActionResponse]
    total: int
    summary: ActionSummary


# Job schemas
class JobProgress(BaseModel):
    job_id: str
    status: JobStatus
    total_violations: int
    processed_violations: int
    remaining: int
    progress_percentage: int
    action_breakdown: Dict[str, int]
    estimated_completion: Optional[datetime] = None


# Error response
class ErrorResponse(BaseModel):
    """Response when an action is refused."""
    message: str
    action_id: Optional[str] = None
