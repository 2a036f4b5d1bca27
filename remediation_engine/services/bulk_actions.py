"""
Bulk mutation engine.

Applies, rejects or re-statuses many actions in one transaction. Validation
problems (missing action, illegal transition) degrade to per-item failures so
the rest of the batch still makes progress. Storage errors abort the call and
the unit of work rolls back every write made by it.
"""
import logging
from datetime import datetime
from typing import Callable, List, Optional
from sqlalchemy.orm import Session
from remediation_engine.api.schemas import BulkActionItemResult, BulkActionRequest, BulkActionResult
from remediation_engine.models.domain import RemediationAction
from remediation_engine.models.enums import ActionStatus, HistorySource
from remediation_engine.services.errors import InvalidTransitionError, RemediationError
from remediation_engine.services.history import record_transition
from remediation_engine.services.ids import IdGenerator, UuidGenerator
from remediation_engine.services.progress import JobProgressAggregator
from remediation_engine.services.state_machine import can_transition, event_type_for_status
from remediation_engine.services.unit_of_work import UnitOfWork

logger = logging.getLogger(__name__)

DECISION_STATUSES = (ActionStatus.APPLIED, ActionStatus.REJECTED, ActionStatus.SKIPPED)

Guard = Callable[[RemediationAction, ActionStatus], None]


class BulkMutationEngine:
    """Transactional apply/reject/status-update over batches of actions."""

    def __init__(self, db: Session, id_generator: Optional[IdGenerator] = None):
        self.db = db
        self.ids = id_generator or UuidGenerator()
        self.aggregator = JobProgressAggregator(db)

    def bulk_apply_actions(self, request: BulkActionRequest) -> BulkActionResult:
        """Apply each pending or requires_review action: applied_value becomes suggested_value."""
        return self._run_batch(
            operation="apply",
            action_ids=request.action_ids,
            target=ActionStatus.APPLIED,
            performed_by=request.performed_by,
            reason=request.reason,
            batch_id=request.batch_id,
            source=request.source,
            guard=_decision_guard("applied")
        )

    def bulk_reject_actions(self, request: BulkActionRequest) -> BulkActionResult:
        """Reject each pending or requires_review action, storing the reason in its metadata."""
        return self._run_batch(
            operation="reject",
            action_ids=request.action_ids,
            target=ActionStatus.REJECTED,
            performed_by=request.performed_by,
            reason=request.reason,
            batch_id=request.batch_id,
            source=request.source,
            guard=_decision_guard("rejected")
        )

    def bulk_update_status(
        self,
        action_ids: List[str],
        status: ActionStatus,
        performed_by: str,
        reason: Optional[str] = None,
        batch_id: Optional[str] = None,
        source: HistorySource = HistorySource.API
    ) -> BulkActionResult:
        """
        Move each action to status, gated by the transition table.

        applied -> pending is refused here; reverting an applied fix must go
        through rollback so the reversibility check applies.
        """
        return self._run_batch(
            operation="status update",
            action_ids=action_ids,
            target=ActionStatus(status),
            performed_by=performed_by,
            reason=reason,
            batch_id=batch_id,
            source=source,
            guard=_transition_guard
        )

    def _run_batch(
        self,
        operation: str,
        action_ids: List[str],
        target: ActionStatus,
        performed_by: str,
        reason: Optional[str],
        batch_id: Optional[str],
        source: HistorySource,
        guard: Guard
    ) -> BulkActionResult:
        batch_id = batch_id or self.ids.new_id()
        results: List[BulkActionItemResult] = []

        with UnitOfWork(self.db) as uow:
            actions = uow.actions.get_many_for_update(action_ids)

            # Request order, duplicates included
            for action_id in action_ids:
                action = actions.get(action_id)
                if action is None:
                    results.append(BulkActionItemResult(action_id=action_id, success=False, error="Action not found"))
                    continue

                try:
                    guard(action, target)
                except RemediationError as e:
                    logger.debug("Batch %s: %s refused for %s: %s", batch_id, operation, action_id, e.message)
                    results.append(BulkActionItemResult(action_id=action_id, success=False, error=e.message))
                    continue

                self._transition(uow, action, target, performed_by, reason, {
                    "source": HistorySource(source).value,
                    "batchId": batch_id
                })
                results.append(BulkActionItemResult(action_id=action_id, success=True))

            affected_job_ids = list(dict.fromkeys(
                actions[action_id].job_id for action_id in action_ids if action_id in actions
            ))
            self.aggregator.update_jobs_progress(affected_job_ids, uow=uow)

        result = BulkActionResult.from_items(operation, batch_id, len(action_ids), results)
        logger.info("Batch %s by %s: %s", batch_id, performed_by, result.message)
        return result

    def _transition(
        self,
        uow: UnitOfWork,
        action: RemediationAction,
        target: ActionStatus,
        performed_by: str,
        reason: Optional[str],
        metadata: dict
    ) -> None:
        now = datetime.utcnow()
        old_status = action.status
        old_value = None
        new_value = None

        action.status = target
        action.updated_at = now

        if target == ActionStatus.APPLIED:
            action.applied_at = now
            action.applied_value = action.suggested_value
            old_value = action.original_value
            new_value = action.applied_value
        elif target == ActionStatus.REJECTED:
            action.record_rejection_reason(reason)
        elif target == ActionStatus.PENDING:
            # Retry of a rejected or skipped action
            action.applied_value = None
            action.applied_at = None

        if target in DECISION_STATUSES:
            action.reviewed_by = performed_by
            action.reviewed_at = now

        uow.actions.save(action)
        record_transition(
            uow,
            action,
            event_type=event_type_for_status(target),
            old_status=old_status,
            performed_by=performed_by,
            reason=reason,
            old_value=old_value,
            new_value=new_value,
            metadata=metadata
        )


def _decision_guard(verb: str) -> Guard:
    def guard(action: RemediationAction, target: ActionStatus) -> None:
        if not action.can_be_applied():
            raise RemediationError(
                f"Action cannot be {verb}: status is {action.status.value}",
                action_id=action.id
            )
    return guard


def _transition_guard(action: RemediationAction, target: ActionStatus) -> None:
    if not can_transition(action.status, target):
        raise InvalidTransitionError(action.id, action.status, target)
    if action.status == ActionStatus.APPLIED:
        raise RemediationError(
            f"Invalid status transition from applied to {target.value}: "
            "applied actions return to pending only through rollback",
            action_id=action.id
        )
