"""
Rollback of applied actions.

Only applied actions whose fix result is marked reversible can be rolled back.
A rollback returns the action to pending, clears the applied value and writes a
rolled_back history entry, all in one transaction with the job recompute.
"""
import logging
from datetime import datetime
from typing import Dict, List, Optional
from sqlalchemy.orm import Session
from remediation_engine.api.schemas import (
    ActionRollbackRequest,
    ActionRollbackResult,
    BulkActionItemResult,
    BulkActionResult,
    BulkRollbackResult
)
from remediation_engine.models.domain import RemediationAction
from remediation_engine.models.enums import ActionStatus, HistoryEventType, HistorySource
from remediation_engine.services.errors import (
    ActionNotFoundError,
    InvalidTransitionError,
    RemediationError,
    RollbackNotAllowedError
)
from remediation_engine.services.history import record_transition
from remediation_engine.services.ids import IdGenerator, UuidGenerator
from remediation_engine.services.progress import JobProgressAggregator
from remediation_engine.services.state_machine import can_transition
from remediation_engine.services.unit_of_work import UnitOfWork

logger = logging.getLogger(__name__)


class RollbackService:
    def __init__(self, db: Session, id_generator: Optional[IdGenerator] = None):
        self.db = db
        self.ids = id_generator or UuidGenerator()
        self.aggregator = JobProgressAggregator(db)

    def rollback_action(self, action_id: str, request: ActionRollbackRequest) -> ActionRollbackResult:
        """
        Roll back one applied, reversible action.

        Raises ActionNotFoundError or RollbackNotAllowedError; nothing is
        written when either is raised.
        """
        with UnitOfWork(self.db) as uow:
            action = uow.actions.get(action_id, for_update=True)
            if action is None:
                raise ActionNotFoundError(action_id)

            result = self._rollback(uow, action, request, {"source": HistorySource.API.value})
            self.aggregator.update_jobs_progress([action.job_id], uow=uow)

        logger.info("Action %s rolled back by %s", action_id, request.performed_by)
        return result

    def bulk_rollback_actions(self, action_ids: List[str], request: ActionRollbackRequest) -> BulkRollbackResult:
        """Roll back many actions under one batch id. Refusals become per-item failures."""
        batch_id = self.ids.new_id()
        results: List[ActionRollbackResult] = []

        with UnitOfWork(self.db) as uow:
            actions: Dict[str, RemediationAction] = uow.actions.get_many_for_update(action_ids)

            for action_id in action_ids:
                action = actions.get(action_id)
                try:
                    if action is None:
                        raise ActionNotFoundError(action_id)
                    results.append(self._rollback(uow, action, request, {
                        "source": HistorySource.API.value,
                        "batchId": batch_id
                    }))
                except RemediationError as e:
                    logger.debug("Batch %s: rollback refused for %s: %s", batch_id, action_id, e.message)
                    results.append(ActionRollbackResult(action_id=action_id, success=False, message=e.message))

            affected_job_ids = list(dict.fromkeys(
                actions[action_id].job_id for action_id in action_ids if action_id in actions
            ))
            self.aggregator.update_jobs_progress(affected_job_ids, uow=uow)

        summary = BulkActionResult.from_items(
            "rollback",
            batch_id,
            len(action_ids),
            [
                BulkActionItemResult(
                    action_id=r.action_id,
                    success=r.success,
                    error=None if r.success else r.message
                )
                for r in results
            ]
        )
        logger.info("Batch %s by %s: %s", batch_id, request.performed_by, summary.message)
        return BulkRollbackResult(results=results, summary=summary)

    def _rollback(
        self,
        uow: UnitOfWork,
        action: RemediationAction,
        request: ActionRollbackRequest,
        metadata: dict
    ) -> ActionRollbackResult:
        if action.status != ActionStatus.APPLIED:
            raise RollbackNotAllowedError(
                f"Cannot rollback action with status: {action.status.value}",
                action_id=action.id
            )
        if not action.is_reversible:
            raise RollbackNotAllowedError("Action is not reversible", action_id=action.id)
        if not can_transition(action.status, ActionStatus.PENDING):
            raise InvalidTransitionError(action.id, action.status, ActionStatus.PENDING)

        now = datetime.utcnow()
        previous_value = action.applied_value
        restored_value = action.original_value

        action.status = ActionStatus.PENDING
        action.applied_value = None
        action.applied_at = None
        action.rolled_back_at = now
        action.updated_at = now
        uow.actions.save(action)

        record_transition(
            uow,
            action,
            event_type=HistoryEventType.ROLLED_BACK,
            old_status=ActionStatus.APPLIED,
            performed_by=request.performed_by,
            reason=request.reason,
            old_value=previous_value,
            new_value=restored_value,
            metadata={**metadata, "rollbackTimestamp": now.isoformat()}
        )

        return ActionRollbackResult(
            action_id=action.id,
            success=True,
            previous_value=previous_value,
            restored_value=restored_value,
            message="Action successfully rolled back"
        )
