"""
Job progress aggregation.

Job counters are a derived view over action rows. Every recompute reloads the
job's actions and overwrites the counters, so repeated calls are idempotent
and earlier drift cannot survive a recompute.
"""
import logging
from collections import Counter
from datetime import datetime, timedelta
from typing import Iterable, Optional
from sqlalchemy.orm import Session
from remediation_engine.api.schemas import JobProgress
from remediation_engine.models.enums import ActionStatus, JobStatus
from remediation_engine.services.errors import JobNotFoundError
from remediation_engine.services.state_machine import PROCESSED_STATUSES
from remediation_engine.services.unit_of_work import UnitOfWork

logger = logging.getLogger(__name__)


class JobProgressAggregator:
    """Sole writer of remediation job rows."""

    def __init__(self, db: Session):
        self.db = db

    def update_jobs_progress(self, job_ids: Iterable[str], uow: Optional[UnitOfWork] = None) -> None:
        """
        Recompute counters and completion for each job.

        When uow is given the recompute joins the caller's transaction;
        otherwise it runs in a transaction of its own.
        """
        if uow is not None:
            self._recompute(uow, job_ids)
            return

        with UnitOfWork(self.db) as own_uow:
            self._recompute(own_uow, job_ids)

    def _recompute(self, uow: UnitOfWork, job_ids: Iterable[str]) -> None:
        for job_id in dict.fromkeys(job_ids):
            job = uow.jobs.get(job_id, for_update=True)
            if job is None:
                logger.warning("Skipping progress update for missing job %s", job_id)
                continue

            counts = Counter(action.status for action in uow.actions.list_for_job(job_id))

            job.fixed_violations = counts.get(ActionStatus.APPLIED, 0)
            job.rejected_count = counts.get(ActionStatus.REJECTED, 0)
            job.skipped_count = counts.get(ActionStatus.SKIPPED, 0)
            job.updated_at = datetime.utcnow()

            if job.processed_count >= job.total_violations and job.status == JobStatus.IN_PROGRESS:
                job.status = JobStatus.COMPLETED
                job.completed_at = datetime.utcnow()
                logger.info("Job %s completed (%d/%d processed)", job.id, job.processed_count, job.total_violations)

            uow.jobs.save(job)

    def get_job_progress(self, job_id: str) -> JobProgress:
        """Read-only progress report computed from the current action rows."""
        uow = UnitOfWork(self.db)
        job = uow.jobs.get(job_id)
        if job is None:
            raise JobNotFoundError(job_id)

        counts = Counter(action.status.value for action in uow.actions.list_for_job(job_id))
        processed = sum(counts.get(status.value, 0) for status in PROCESSED_STATUSES)
        total = job.total_violations or 0
        percentage = round(processed / total * 100) if total > 0 else 0

        return JobProgress(
            job_id=job.id,
            status=job.status,
            total_violations=total,
            processed_violations=processed,
            remaining=max(total - processed, 0),
            progress_percentage=percentage,
            action_breakdown=dict(counts),
            estimated_completion=self._estimate_completion(job, processed, total)
        )

    def _estimate_completion(self, job, processed: int, total: int) -> Optional[datetime]:
        # Linear extrapolation from the processing rate since the job started
        if job.status != JobStatus.IN_PROGRESS or job.started_at is None or processed <= 0:
            return None
        now = datetime.utcnow()
        elapsed = now - job.started_at
        remaining = max(total - processed, 0)
        return now + timedelta(seconds=elapsed.total_seconds() / processed * remaining)
