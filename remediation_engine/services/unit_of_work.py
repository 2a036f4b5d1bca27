"""
Transaction-scoped repositories.

A UnitOfWork wraps one database transaction and exposes the three stores the
engine writes to. Leaving the `with` block normally commits; any exception
rolls back every write made through the unit and is re-raised.
"""
import logging
from typing import Dict, Iterable, List, Optional
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from remediation_engine.models.domain import RemediationAction, RemediationJob
from remediation_engine.models.audit import RemediationHistoryEntry

logger = logging.getLogger(__name__)


class ActionRepository:
    def __init__(self, db: Session):
        self.db = db

    def get(self, action_id: str, for_update: bool = False) -> Optional[RemediationAction]:
        query = self.db.query(RemediationAction).filter(RemediationAction.id == action_id)
        if for_update:
            query = query.with_for_update()
        return query.first()

    def get_many_for_update(self, action_ids: Iterable[str]) -> Dict[str, RemediationAction]:
        """Load and row-lock the given actions, keyed by id. Missing ids are absent."""
        ids = list(dict.fromkeys(action_ids))
        if not ids:
            return {}
        actions = (
            self.db.query(RemediationAction)
            .filter(RemediationAction.id.in_(ids))
            .with_for_update()
            .all()
        )
        return {action.id: action for action in actions}

    def list_for_job(self, job_id: str) -> List[RemediationAction]:
        return self.db.query(RemediationAction).filter(RemediationAction.job_id == job_id).all()

    def save(self, action: RemediationAction) -> RemediationAction:
        self.db.add(action)
        self.db.flush()
        return action


class HistoryRepository:
    """Append-only access to the history store."""

    def __init__(self, db: Session):
        self.db = db

    def add(self, entry: RemediationHistoryEntry) -> RemediationHistoryEntry:
        self.db.add(entry)
        self.db.flush()  # Get ID without committing
        return entry

    def query_for_action(self, action_id: str):
        return self.db.query(RemediationHistoryEntry).filter(
            RemediationHistoryEntry.action_id == action_id
        )

    def list_for_action(self, action_id: str) -> List[RemediationHistoryEntry]:
        """All entries for an action, oldest first."""
        return self.query_for_action(action_id).order_by(
            RemediationHistoryEntry.created_at.asc(),
            RemediationHistoryEntry.id.asc()
        ).all()


class JobRepository:
    def __init__(self, db: Session):
        self.db = db

    def get(self, job_id: str, for_update: bool = False) -> Optional[RemediationJob]:
        query = self.db.query(RemediationJob).filter(RemediationJob.id == job_id)
        if for_update:
            query = query.with_for_update()
        return query.first()

    def save(self, job: RemediationJob) -> RemediationJob:
        self.db.add(job)
        self.db.flush()
        return job


class UnitOfWork:
    """One transaction plus the repositories bound to it."""

    def __init__(self, db: Session):
        self.db = db
        self.actions = ActionRepository(db)
        self.history = HistoryRepository(db)
        self.jobs = JobRepository(db)

    def __enter__(self) -> "UnitOfWork":
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        if exc_type is not None:
            self.db.rollback()
            if isinstance(exc, SQLAlchemyError):
                logger.error("Transaction rolled back", exc_info=(exc_type, exc, tb))
            return False

        try:
            self.db.commit()
        except Exception:
            logger.exception("Commit failed, rolling back")
            self.db.rollback()
            raise
        return False
