"""Read-only reporting over actions and their history. Nothing here writes."""
from collections import Counter
from typing import Optional, Sequence
from sqlalchemy.orm import Session
from remediation_engine.api.schemas import (
    ActionFilter,
    ActionHistoryPage,
    ActionQueryResult,
    ActionResponse,
    ActionSummary,
    ActionTimeline,
    ConfidenceStats,
    HistoryFilter,
    TimelineEntry
)
from remediation_engine.models.audit import RemediationHistoryEntry
from remediation_engine.models.domain import RemediationAction
from remediation_engine.services.errors import ActionNotFoundError
from remediation_engine.services.history import compute_durations, to_response
from remediation_engine.services.unit_of_work import ActionRepository, HistoryRepository

HIGH_CONFIDENCE = 0.8
MEDIUM_CONFIDENCE = 0.5


class ActionQueryService:
    def __init__(self, db: Session):
        self.db = db
        self.actions = ActionRepository(db)
        self.history = HistoryRepository(db)

    def get_action_history(self, action_id: str, filters: Optional[HistoryFilter] = None) -> ActionHistoryPage:
        """
        Newest-first page of an action's history entries.

        total counts matching entries before limit/offset. Durations are measured
        against the full history, so filtering does not change them.
        """
        filters = filters or HistoryFilter()
        durations = compute_durations(self.history.list_for_action(action_id))

        query = self.history.query_for_action(action_id)
        if filters.event_type is not None:
            query = query.filter(RemediationHistoryEntry.event_type == filters.event_type)
        if filters.performed_by:
            query = query.filter(RemediationHistoryEntry.performed_by == filters.performed_by)

        total = query.count()

        query = query.order_by(
            RemediationHistoryEntry.created_at.desc(),
            RemediationHistoryEntry.id.desc()
        )
        if filters.offset:
            query = query.offset(filters.offset)
        if filters.limit is not None:
            query = query.limit(filters.limit)

        return ActionHistoryPage(
            history=[to_response(entry, durations.get(entry.id)) for entry in query.all()],
            total=total
        )

    def get_action_status_timeline(self, action_id: str) -> ActionTimeline:
        action = self.actions.get(action_id)
        if action is None:
            raise ActionNotFoundError(action_id)

        entries = self.history.list_for_action(action_id)
        durations = compute_durations(entries)

        return ActionTimeline(
            action_id=action.id,
            current_status=action.status,
            timeline=[
                TimelineEntry(
                    status=entry.new_status,
                    timestamp=entry.created_at,
                    performed_by=entry.performed_by,
                    event_type=entry.event_type,
                    duration_ms=durations.get(entry.id)
                )
                for entry in entries
            ]
        )

    def get_actions_by_filter(self, filters: ActionFilter) -> ActionQueryResult:
        query = self.db.query(RemediationAction)

        if filters.job_id:
            query = query.filter(RemediationAction.job_id == filters.job_id)
        if filters.status is not None:
            query = query.filter(RemediationAction.status.in_(_as_list(filters.status)))
        if filters.fix_method is not None:
            query = query.filter(RemediationAction.fix_method.in_(_as_list(filters.fix_method)))
        if filters.risk_level is not None:
            query = query.filter(RemediationAction.risk_assessment.in_(_as_list(filters.risk_level)))
        if filters.confidence_range is not None:
            query = query.filter(
                RemediationAction.confidence >= filters.confidence_range.min,
                RemediationAction.confidence <= filters.confidence_range.max
            )
        if filters.date_range is not None:
            if filters.date_range.start is not None:
                query = query.filter(RemediationAction.created_at >= filters.date_range.start)
            if filters.date_range.end is not None:
                query = query.filter(RemediationAction.created_at <= filters.date_range.end)

        total = query.count()

        query = query.order_by(RemediationAction.created_at.desc(), RemediationAction.id.desc())
        if filters.offset:
            query = query.offset(filters.offset)
        if filters.limit is not None:
            query = query.limit(filters.limit)

        actions = query.all()
        return ActionQueryResult(
            actions=[ActionResponse.model_validate(action) for action in actions],
            total=total,
            summary=summarize(actions)
        )


def summarize(actions: Sequence[RemediationAction]) -> ActionSummary:
    """Status breakdown and confidence buckets for a page of actions."""
    status_breakdown = Counter(action.status.value for action in actions)

    # Unscored actions are left out of the confidence buckets
    scores = [action.confidence for action in actions if action.confidence is not None]
    average = round(sum(scores) / len(scores), 3) if scores else 0.0

    return ActionSummary(
        status_breakdown=dict(status_breakdown),
        confidence_stats=ConfidenceStats(
            average=average,
            high=sum(1 for s in scores if s >= HIGH_CONFIDENCE),
            medium=sum(1 for s in scores if MEDIUM_CONFIDENCE <= s < HIGH_CONFIDENCE),
            low=sum(1 for s in scores if s < MEDIUM_CONFIDENCE)
        )
    )


def _as_list(value) -> list:
    if isinstance(value, (list, tuple, set)):
        return list(value)
    return [value]
