"""API routes for remediation action review and rollback."""
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from remediation_engine.database import get_db
from remediation_engine.models.enums import HistoryEventType
from remediation_engine.services.action_service import RemediationActionService
from remediation_engine.services.errors import (
    ActionNotFoundError,
    InvalidTransitionError,
    JobNotFoundError,
    RemediationError,
    RollbackNotAllowedError
)
from remediation_engine.api.schemas import (
    ActionFilter,
    ActionHistoryPage,
    ActionQueryResult,
    ActionRollbackRequest,
    ActionRollbackResult,
    ActionTimeline,
    BulkActionRequest,
    BulkActionResult,
    BulkRollbackRequest,
    BulkRollbackResult,
    BulkStatusUpdateRequest,
    ErrorResponse,
    HistoryFilter,
    JobProgress
)

router = APIRouter()

REFUSAL_RESPONSES = {
    404: {"model": ErrorResponse, "description": "Action not found"},
    409: {"model": ErrorResponse, "description": "Refusal - action cannot make this transition"}
}


def get_service(db: Session = Depends(get_db)) -> RemediationActionService:
    return RemediationActionService(db)


def _refusal(e: RemediationError) -> HTTPException:
    if isinstance(e, (ActionNotFoundError, JobNotFoundError)):
        code = status.HTTP_404_NOT_FOUND
    elif isinstance(e, (RollbackNotAllowedError, InvalidTransitionError)):
        code = status.HTTP_409_CONFLICT
    else:
        code = status.HTTP_400_BAD_REQUEST
    return HTTPException(status_code=code, detail={"message": e.message, "action_id": e.action_id})


# Bulk mutation endpoints
@router.post("/actions/bulk/apply", response_model=BulkActionResult)
def bulk_apply(request: BulkActionRequest, service: RemediationActionService = Depends(get_service)):
    """
    Apply many actions in one transaction.
    Missing or already-decided actions come back as per-item failures.
    """
    return service.bulk_apply_actions(request)


@router.post("/actions/bulk/reject", response_model=BulkActionResult)
def bulk_reject(request: BulkActionRequest, service: RemediationActionService = Depends(get_service)):
    """Reject many actions; the reason is stored on each action."""
    return service.bulk_reject_actions(request)


@router.post("/actions/bulk/status", response_model=BulkActionResult)
def bulk_update_status(request: BulkStatusUpdateRequest, service: RemediationActionService = Depends(get_service)):
    """Move many actions to one status, subject to the transition table."""
    return service.bulk_update_status(
        request.action_ids,
        request.status,
        request.performed_by,
        request.reason
    )


# Rollback endpoints
@router.post("/actions/bulk/rollback", response_model=BulkRollbackResult)
def bulk_rollback(request: BulkRollbackRequest, service: RemediationActionService = Depends(get_service)):
    rollback_request = ActionRollbackRequest(performed_by=request.performed_by, reason=request.reason)
    return service.bulk_rollback_actions(request.action_ids, rollback_request)


@router.post("/actions/{action_id}/rollback", response_model=ActionRollbackResult, responses=REFUSAL_RESPONSES)
def rollback_action(
    action_id: str,
    request: ActionRollbackRequest,
    service: RemediationActionService = Depends(get_service)
):
    """
    Roll back an applied action to pending.

    WILL REFUSE if:
    - The action is not applied
    - The action's fix is not reversible
    """
    try:
        return service.rollback_action(action_id, request)
    except RemediationError as e:
        raise _refusal(e)


# Reporting endpoints
@router.get("/actions/{action_id}/history", response_model=ActionHistoryPage)
def get_action_history(
    action_id: str,
    event_type: Optional[HistoryEventType] = None,
    performed_by: Optional[str] = None,
    limit: Optional[int] = Query(None, ge=1),
    offset: int = Query(0, ge=0),
    service: RemediationActionService = Depends(get_service)
):
    """Newest-first history for one action."""
    filters = HistoryFilter(event_type=event_type, performed_by=performed_by, limit=limit, offset=offset)
    return service.get_action_history(action_id, filters)


@router.get("/actions/{action_id}/timeline", response_model=ActionTimeline, responses=REFUSAL_RESPONSES)
def get_action_timeline(action_id: str, service: RemediationActionService = Depends(get_service)):
    try:
        return service.get_action_status_timeline(action_id)
    except RemediationError as e:
        raise _refusal(e)


@router.post("/actions/search", response_model=ActionQueryResult)
def search_actions(filters: ActionFilter, service: RemediationActionService = Depends(get_service)):
    """Filter actions; the summary covers the returned page."""
    return service.get_actions_by_filter(filters)


# Job endpoints
@router.get("/jobs/{job_id}/progress", response_model=JobProgress, responses=REFUSAL_RESPONSES)
def get_job_progress(job_id: str, service: RemediationActionService = Depends(get_service)):
    try:
        return service.get_job_progress(job_id)
    except RemediationError as e:
        raise _refusal(e)
