"""
Pytest configuration and shared fixtures.

Every test gets its own database: a SQLite file under ``tmp_path`` by
default, or the PostgreSQL database named by ``DATABASE_URL``.  Tables are
created per test and immutability listeners are registered before the
first session opens.
"""

import io
import json
import logging
import os
from dataclasses import dataclass
from datetime import timedelta
from uuid import UUID, uuid4

import pytest

from assignx_config import DEFAULT_CONFIG_PATH, get_active_config
from assignx_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_session_factory,
    init_engine_from_url,
    reset_engine,
)
from assignx_kernel.db.immutability import register_immutability_listeners
from assignx_kernel.domain.clock import DeterministicClock
from assignx_kernel.domain.dtos import PaymentConfirmation
from assignx_kernel.domain.project_workflow import ProjectStatus
from assignx_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from assignx_services import ProjectLifecycleService, RecordingNotificationSink


# =============================================================================
# Logging
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging once per test session."""
    reset_logging()
    configure_logging(level=logging.DEBUG, stream=io.StringIO())
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Ensure no context leaks between tests."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """Capture structured log records as parsed JSON dicts."""
    stream = io.StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    handler.setLevel(logging.DEBUG)

    root = logging.getLogger("assignx_kernel")
    root.addHandler(handler)
    try:
        yield _LogCapture(stream)
    finally:
        root.removeHandler(handler)


class _LogCapture:
    def __init__(self, stream: io.StringIO):
        self._stream = stream

    @property
    def records(self) -> list[dict]:
        return [json.loads(line) for line in self._stream.getvalue().splitlines() if line]

    def messages(self) -> list[str]:
        return [r["message"] for r in self.records]

    def find(self, message: str) -> list[dict]:
        return [r for r in self.records if r["message"] == message]


def pytest_configure(config):
    config.addinivalue_line("markers", "postgres: test requires PostgreSQL (skipped on SQLite)")
    config.addinivalue_line("markers", "slow_locks: test may wait on database row locks")


def pytest_collection_modifyitems(config, items):
    if not get_database_url_from_env():
        skip = pytest.mark.skip(reason="requires DATABASE_URL pointing at PostgreSQL")
        for item in items:
            if "postgres" in item.keywords:
                item.add_marker(skip)


# =============================================================================
# Database
# =============================================================================


def get_database_url_from_env() -> str | None:
    url = os.environ.get("DATABASE_URL")
    if url and url.startswith("postgresql"):
        return url
    return None


@pytest.fixture
def database_url(tmp_path) -> str:
    return get_database_url_from_env() or f"sqlite:///{tmp_path / 'assignx_test.db'}"


@pytest.fixture
def engine(database_url):
    """Fresh engine and schema per test."""
    eng = init_engine_from_url(database_url, pool_size=10, max_overflow=10)
    if not database_url.startswith("sqlite"):
        drop_tables()
    create_tables()
    register_immutability_listeners()
    yield eng
    if not database_url.startswith("sqlite"):
        drop_tables()
    reset_engine()


@pytest.fixture
def session_factory(engine):
    return get_session_factory()


@pytest.fixture
def session(session_factory):
    """A session whose uncommitted work is rolled back after the test."""
    s = session_factory()
    yield s
    s.rollback()
    s.close()


# =============================================================================
# Engine collaborators
# =============================================================================


@pytest.fixture
def deterministic_clock() -> DeterministicClock:
    return DeterministicClock()


@pytest.fixture
def engine_config():
    return get_active_config(DEFAULT_CONFIG_PATH)


@pytest.fixture
def notification_sink() -> RecordingNotificationSink:
    return RecordingNotificationSink()


@pytest.fixture
def lifecycle(session, engine_config, deterministic_clock, notification_sink):
    return ProjectLifecycleService(
        session,
        config=engine_config,
        clock=deterministic_clock,
        notification_sink=notification_sink,
    )


@dataclass(frozen=True)
class Parties:
    client_id: UUID
    supervisor_id: UUID
    doer_id: UUID


@pytest.fixture
def parties() -> Parties:
    return Parties(client_id=uuid4(), supervisor_id=uuid4(), doer_id=uuid4())


@pytest.fixture
def registered_doer(lifecycle, parties):
    return lifecycle.register_doer(
        parties.doer_id,
        subjects=["economics"],
        average_rating="4.5",
        display_name="Test Doer",
    )


# Order in which the driver walks a project forward.
_FORWARD_PATH = (
    ProjectStatus.SUBMITTED,
    ProjectStatus.ANALYZING,
    ProjectStatus.QUOTED,
    ProjectStatus.PAYMENT_PENDING,
    ProjectStatus.PAID,
    ProjectStatus.ASSIGNED,
    ProjectStatus.IN_PROGRESS,
    ProjectStatus.SUBMITTED_FOR_QC,
    ProjectStatus.QC_APPROVED,
    ProjectStatus.DELIVERED,
    ProjectStatus.COMPLETED,
)


class ProjectDriver:
    """Walks a project through the lifecycle with the public service."""

    def __init__(self, service: ProjectLifecycleService, parties: Parties, clock):
        self.service = service
        self.parties = parties
        self.clock = clock

    def submit(self, *, word_count=2000, page_count=None, hours=20, subject="economics",
               client_id=None):
        return self.service.submit_project(
            client_id=client_id or self.parties.client_id,
            title="Monetary policy essay",
            subject=subject,
            deadline=self.clock.now_utc() + timedelta(hours=hours),
            word_count=None if page_count is not None else word_count,
            page_count=page_count,
        )

    def advance(self, project_id, target: ProjectStatus):
        """Move ``project_id`` forward until it reaches ``target``."""
        p = self.parties
        steps = {
            ProjectStatus.ANALYZING: lambda: self.service.claim_project(project_id, p.supervisor_id),
            ProjectStatus.QUOTED: lambda: self.service.quote_project(project_id, p.supervisor_id),
            ProjectStatus.PAYMENT_PENDING: lambda: self.service.initiate_payment(project_id, p.client_id),
            ProjectStatus.PAID: lambda: self.service.confirm_payment(self.confirmation(project_id)),
            ProjectStatus.ASSIGNED: lambda: self.service.assign_doer(
                project_id, p.supervisor_id, p.doer_id
            ),
            ProjectStatus.IN_PROGRESS: lambda: self.service.start_work(project_id, p.doer_id),
            ProjectStatus.SUBMITTED_FOR_QC: lambda: self.service.submit_work(
                project_id, p.doer_id, "s3://deliverables/draft-1.docx"
            ),
            ProjectStatus.QC_APPROVED: lambda: self.service.approve_qc(project_id, p.supervisor_id),
            ProjectStatus.DELIVERED: lambda: self.service.deliver(project_id, p.supervisor_id),
            ProjectStatus.COMPLETED: lambda: self.service.accept_delivery(project_id, p.client_id),
        }
        current = self.service.get_project(project_id).status
        start = _FORWARD_PATH.index(current) + 1
        stop = _FORWARD_PATH.index(target) + 1
        for status in _FORWARD_PATH[start:stop]:
            steps[status]()
        return self.service.get_project(project_id)

    def create(self, target: ProjectStatus = ProjectStatus.SUBMITTED, **submit_kwargs):
        project = self.submit(**submit_kwargs)
        if target == ProjectStatus.SUBMITTED:
            return project
        return self.advance(project.id, target)

    def confirmation(self, project_id, amount=None, reference="pay_test_001", **kwargs):
        if amount is None:
            amount = self.service.get_project(project_id).quoted_amount
        return PaymentConfirmation(project_id, amount, reference=reference, **kwargs)


@pytest.fixture
def driver(lifecycle, parties, deterministic_clock, registered_doer) -> ProjectDriver:
    return ProjectDriver(lifecycle, parties, deterministic_clock)
