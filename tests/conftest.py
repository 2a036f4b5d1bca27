"""Pytest configuration and shared fixtures."""
import itertools
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from remediation_engine.database import Base
from remediation_engine.models.domain import RemediationAction, RemediationJob
from remediation_engine.models.audit import RemediationHistoryEntry  # noqa: F401
from remediation_engine.models.enums import ActionStatus, JobStatus, RiskLevel
from remediation_engine.services.action_service import RemediationActionService

REVERSIBLE = {"fixResult": {"metadata": {"reversible": True}}}


class SequentialIdGenerator:
    """Predictable batch ids: batch-1, batch-2, ..."""

    def __init__(self, prefix="batch"):
        self.prefix = prefix
        self._counter = itertools.count(1)

    def new_id(self):
        return f"{self.prefix}-{next(self._counter)}"


@pytest.fixture
def engine():
    # One shared connection so the in-memory database survives across threads
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db_session(engine):
    """Create a fresh in-memory database for each test."""
    TestingSessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    session = TestingSessionLocal()

    yield session

    session.close()


@pytest.fixture
def id_generator():
    return SequentialIdGenerator()


@pytest.fixture
def service(db_session, id_generator):
    return RemediationActionService(db_session, id_generator=id_generator)


@pytest.fixture
def make_job(db_session):
    """Factory for remediation jobs (in_progress by default)."""
    def _make(total_violations=3, status=JobStatus.IN_PROGRESS, **kwargs):
        job = RemediationJob(total_violations=total_violations, status=status, **kwargs)
        db_session.add(job)
        db_session.commit()
        db_session.refresh(job)
        return job
    return _make


@pytest.fixture
def make_action(db_session):
    """Factory for remediation actions belonging to a job."""
    counter = itertools.count(1)

    def _make(job, status=ActionStatus.PENDING, reversible=False, metadata=None, **kwargs):
        n = next(counter)
        fields = dict(
            job_id=job.id,
            violation_id=f"violation-{n}",
            record_id=f"record-{n}",
            field_name="email",
            fix_method="trim_whitespace",
            original_value=f" user{n}@example.com ",
            suggested_value=f"user{n}@example.com",
            confidence=0.9,
            risk_assessment=RiskLevel.LOW,
            status=status,
            action_metadata=metadata if metadata is not None else (dict(REVERSIBLE) if reversible else {})
        )
        fields.update(kwargs)
        action = RemediationAction(**fields)
        db_session.add(action)
        db_session.commit()
        db_session.refresh(action)
        return action
    return _make


@pytest.fixture
def sample_job(make_job):
    """A job with three violations still in progress."""
    return make_job(total_violations=3, name="Customer email cleanup")
