"""Tests for history, timeline and filtered action queries."""
import pytest
from datetime import datetime, timedelta
from remediation_engine.api.schemas import (
    ActionFilter,
    ActionRollbackRequest,
    BulkActionRequest,
    ConfidenceRange,
    DateRange,
    HistoryFilter
)
from remediation_engine.models.audit import RemediationHistoryEntry
from remediation_engine.models.enums import ActionStatus, HistoryEventType, RiskLevel
from remediation_engine.services.errors import ActionNotFoundError

T0 = datetime(2024, 3, 1, 9, 0, 0)


@pytest.fixture
def scripted_history(db_session, sample_job, make_action):
    """An action with three history entries at known times."""
    action = make_action(sample_job)
    rows = [
        (HistoryEventType.REVIEWED, ActionStatus.PENDING, ActionStatus.REQUIRES_REVIEW, "system", "system", T0),
        (HistoryEventType.APPROVED, ActionStatus.REQUIRES_REVIEW, ActionStatus.APPLIED, "alice", "ui",
         T0 + timedelta(milliseconds=1500)),
        (HistoryEventType.ROLLED_BACK, ActionStatus.APPLIED, ActionStatus.PENDING, "dave", "api",
         T0 + timedelta(seconds=4)),
    ]
    for event_type, old, new, who, source, at in rows:
        db_session.add(RemediationHistoryEntry(
            action_id=action.id,
            event_type=event_type,
            old_status=old,
            new_status=new,
            performed_by=who,
            event_metadata={"source": source, "batchId": "b-1"},
            created_at=at
        ))
    db_session.commit()
    return action


class TestActionHistory:
    def test_newest_first_with_durations(self, service, scripted_history):
        page = service.get_action_history(scripted_history.id)

        assert page.total == 3
        assert [e.event_type for e in page.history] == [
            HistoryEventType.ROLLED_BACK,
            HistoryEventType.APPROVED,
            HistoryEventType.REVIEWED
        ]
        assert [e.duration_ms for e in page.history] == [2500, 1500, None]

    def test_enrichment(self, service, scripted_history):
        rolled_back, approved, reviewed = service.get_action_history(scripted_history.id).history

        assert approved.description == "Status changed from requires_review to applied"
        assert approved.source == "ui"
        assert approved.batch_id == "b-1"
        assert approved.is_user_action and not approved.is_system_action
        assert reviewed.is_system_action and not reviewed.is_user_action

    def test_filter_keeps_full_history_durations(self, service, scripted_history):
        page = service.get_action_history(scripted_history.id, HistoryFilter(performed_by="dave"))

        assert page.total == 1
        assert page.history[0].duration_ms == 2500

    def test_event_type_filter(self, service, scripted_history):
        page = service.get_action_history(
            scripted_history.id,
            HistoryFilter(event_type=HistoryEventType.APPROVED)
        )

        assert [e.performed_by for e in page.history] == ["alice"]

    def test_pagination_total_counts_before_limit(self, service, scripted_history):
        page = service.get_action_history(scripted_history.id, HistoryFilter(limit=1, offset=1))

        assert page.total == 3
        assert len(page.history) == 1
        assert page.history[0].event_type == HistoryEventType.APPROVED

    def test_entries_written_by_engine(self, service, sample_job, make_action):
        action = make_action(sample_job, reversible=True)
        service.bulk_apply_actions(BulkActionRequest(action_ids=[action.id], performed_by="alice"))
        service.rollback_action(action.id, ActionRollbackRequest(performed_by="dave"))

        page = service.get_action_history(action.id)

        assert page.total == 2
        newest, oldest = page.history
        assert newest.event_type == HistoryEventType.ROLLED_BACK
        assert oldest.duration_ms is None
        assert newest.duration_ms >= 0
        assert oldest.description == "Status changed from pending to applied"

    def test_unknown_source(self, db_session, service, sample_job, make_action):
        action = make_action(sample_job)
        db_session.add(RemediationHistoryEntry(
            action_id=action.id,
            event_type=HistoryEventType.STARTED,
            performed_by="import-script",
            event_metadata={}
        ))
        db_session.commit()

        entry = service.get_action_history(action.id).history[0]

        assert entry.source == "unknown"
        assert entry.description == "Processing started"


class TestStatusTimeline:
    def test_chronological_timeline(self, service, scripted_history):
        timeline = service.get_action_status_timeline(scripted_history.id)

        assert timeline.action_id == scripted_history.id
        assert timeline.current_status == ActionStatus.PENDING
        assert [t.status for t in timeline.timeline] == [
            ActionStatus.REQUIRES_REVIEW,
            ActionStatus.APPLIED,
            ActionStatus.PENDING
        ]
        assert [t.performed_by for t in timeline.timeline] == ["system", "alice", "dave"]
        assert timeline.timeline[0].timestamp == T0
        assert [t.duration_ms for t in timeline.timeline] == [None, 1500, 2500]

    def test_missing_action(self, service):
        with pytest.raises(ActionNotFoundError):
            service.get_action_status_timeline("does-not-exist")


@pytest.fixture
def catalogue(make_job, make_action):
    """Five actions across two jobs with known scores and timestamps."""
    job = make_job(total_violations=4)
    other = make_job(total_violations=1)
    return {
        "a": make_action(job, confidence=0.95, fix_method="trim_whitespace", risk_assessment=RiskLevel.LOW,
                         created_at=T0),
        "b": make_action(job, confidence=0.6, fix_method="normalize_phone", risk_assessment=RiskLevel.MEDIUM,
                         status=ActionStatus.APPLIED, applied_value="x", created_at=T0 + timedelta(hours=1)),
        "c": make_action(job, confidence=0.3, fix_method="normalize_phone", risk_assessment=RiskLevel.HIGH,
                         status=ActionStatus.REJECTED, created_at=T0 + timedelta(hours=2)),
        "d": make_action(job, confidence=None, fix_method="fill_default", created_at=T0 + timedelta(hours=3)),
        "e": make_action(other, confidence=0.85, created_at=T0 + timedelta(hours=4)),
    }


class TestActionFilter:
    def test_newest_first_and_summary(self, service, sample_job, catalogue):
        result = service.get_actions_by_filter(ActionFilter(job_id=catalogue["a"].job_id))

        assert result.total == 4
        assert [a.id for a in result.actions] == [catalogue[k].id for k in ("d", "c", "b", "a")]
        assert result.summary.status_breakdown == {"pending": 2, "applied": 1, "rejected": 1}
        stats = result.summary.confidence_stats
        assert stats.average == round((0.95 + 0.6 + 0.3) / 3, 3)
        assert (stats.high, stats.medium, stats.low) == (1, 1, 1)

    def test_status_single_and_list(self, service, catalogue):
        single = service.get_actions_by_filter(ActionFilter(status=ActionStatus.APPLIED))
        many = service.get_actions_by_filter(ActionFilter(status=[ActionStatus.APPLIED, ActionStatus.REJECTED]))

        assert [a.id for a in single.actions] == [catalogue["b"].id]
        assert {a.id for a in many.actions} == {catalogue["b"].id, catalogue["c"].id}

    def test_fix_method_and_risk(self, service, catalogue):
        result = service.get_actions_by_filter(ActionFilter(
            fix_method="normalize_phone",
            risk_level=[RiskLevel.HIGH]
        ))

        assert [a.id for a in result.actions] == [catalogue["c"].id]

    def test_confidence_range_excludes_unscored(self, service, catalogue):
        result = service.get_actions_by_filter(ActionFilter(confidence_range=ConfidenceRange(min=0.5, max=0.9)))

        assert {a.id for a in result.actions} == {catalogue["b"].id, catalogue["e"].id}

    def test_date_range(self, service, catalogue):
        result = service.get_actions_by_filter(ActionFilter(date_range=DateRange(
            start=T0 + timedelta(minutes=30),
            end=T0 + timedelta(hours=2)
        )))

        assert {a.id for a in result.actions} == {catalogue["b"].id, catalogue["c"].id}

    def test_summary_covers_returned_page(self, service, catalogue):
        result = service.get_actions_by_filter(ActionFilter(limit=2))

        assert result.total == 5
        assert len(result.actions) == 2
        assert sum(result.summary.status_breakdown.values()) == 2
        assert result.summary.confidence_stats.average == 0.85

    def test_metadata_is_exposed(self, service, sample_job, make_action):
        make_action(sample_job, reversible=True)

        action = service.get_actions_by_filter(ActionFilter()).actions[0]

        assert action.metadata["fixResult"]["metadata"]["reversible"] is True

    def test_no_matches(self, service, catalogue):
        result = service.get_actions_by_filter(ActionFilter(job_id="nope"))

        assert result.total == 0
        assert result.actions == []
        assert result.summary.confidence_stats.average == 0.0

    def test_confidence_bucket_boundaries(self, service, sample_job, make_action):
        """INVARIANT: high is >= 0.8, medium is [0.5, 0.8), low is < 0.5."""
        make_action(sample_job, confidence=0.8)
        make_action(sample_job, confidence=0.5)
        make_action(sample_job, confidence=0.49)

        stats = service.get_actions_by_filter(ActionFilter(job_id=sample_job.id)).summary.confidence_stats

        assert (stats.high, stats.medium, stats.low) == (1, 1, 1)

    def test_free_form_rollback_data(self, service, sample_job, make_action):
        make_action(sample_job, rollback_data=[{"op": "set", "field": "email"}])
        make_action(sample_job, rollback_data="restore-from-snapshot")

        result = service.get_actions_by_filter(ActionFilter(job_id=sample_job.id))

        assert result.total == 2
        assert {repr(a.rollback_data) for a in result.actions} == {
            repr([{"op": "set", "field": "email"}]),
            repr("restore-from-snapshot")
        }
