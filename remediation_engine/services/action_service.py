"""
RemediationActionService - the engine's public entry point.

Composes the bulk mutation engine, rollback, job progress and reporting
services over one session. Callers (the HTTP routes, scripts, tests) should
only need this class.
"""
from typing import Iterable, List, Optional
from sqlalchemy.orm import Session
from remediation_engine.api.schemas import (
    ActionFilter,
    ActionHistoryPage,
    ActionQueryResult,
    ActionRollbackRequest,
    ActionRollbackResult,
    ActionTimeline,
    BulkActionRequest,
    BulkActionResult,
    BulkRollbackResult,
    HistoryFilter,
    JobProgress
)
from remediation_engine.models.enums import ActionStatus
from remediation_engine.services.bulk_actions import BulkMutationEngine
from remediation_engine.services.ids import IdGenerator, UuidGenerator
from remediation_engine.services.progress import JobProgressAggregator
from remediation_engine.services.queries import ActionQueryService
from remediation_engine.services.rollback import RollbackService


class RemediationActionService:
    def __init__(self, db: Session, id_generator: Optional[IdGenerator] = None):
        self.db = db
        ids = id_generator or UuidGenerator()
        self.bulk = BulkMutationEngine(db, id_generator=ids)
        self.rollbacks = RollbackService(db, id_generator=ids)
        self.progress = JobProgressAggregator(db)
        self.queries = ActionQueryService(db)

    # Mutations

    def bulk_apply_actions(self, request: BulkActionRequest) -> BulkActionResult:
        return self.bulk.bulk_apply_actions(request)

    def bulk_reject_actions(self, request: BulkActionRequest) -> BulkActionResult:
        return self.bulk.bulk_reject_actions(request)

    def bulk_update_status(
        self,
        action_ids: List[str],
        status: ActionStatus,
        performed_by: str,
        reason: Optional[str] = None
    ) -> BulkActionResult:
        return self.bulk.bulk_update_status(action_ids, status, performed_by, reason)

    def rollback_action(self, action_id: str, request: ActionRollbackRequest) -> ActionRollbackResult:
        return self.rollbacks.rollback_action(action_id, request)

    def bulk_rollback_actions(self, action_ids: List[str], request: ActionRollbackRequest) -> BulkRollbackResult:
        return self.rollbacks.bulk_rollback_actions(action_ids, request)

    # Jobs

    def update_jobs_progress(self, job_ids: Iterable[str]) -> None:
        self.progress.update_jobs_progress(job_ids)

    def get_job_progress(self, job_id: str) -> JobProgress:
        return self.progress.get_job_progress(job_id)

    # Reporting

    def get_action_history(self, action_id: str, filters: Optional[HistoryFilter] = None) -> ActionHistoryPage:
        return self.queries.get_action_history(action_id, filters)

    def get_action_status_timeline(self, action_id: str) -> ActionTimeline:
        return self.queries.get_action_status_timeline(action_id)

    def get_actions_by_filter(self, filters: ActionFilter) -> ActionQueryResult:
        return self.queries.get_actions_by_filter(filters)
