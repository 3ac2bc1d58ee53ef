"""
Audit record immutability tests.

Ledger entries, quotes and status history are append-only.  Projects
freeze their money once paid, assignments keep their binding, and a
reviewed payout never changes.  Violations are caught at flush time by
ORM listeners, before any SQL reaches the database.
"""

import pytest
from sqlalchemy import select

from assignx_kernel.domain.project_workflow import ProjectStatus
from assignx_kernel.exceptions import ImmutabilityViolationError
from assignx_kernel.models.assignment import AssignmentModel
from assignx_kernel.models.payout import PayoutRequestModel
from assignx_kernel.models.project import ProjectModel, ProjectStatusHistoryModel
from assignx_kernel.models.quote import QuoteModel
from assignx_kernel.models.revision import RevisionModel
from assignx_kernel.models.wallet import LedgerEntryModel

S = ProjectStatus


def _first(session, model, **where):
    stmt = select(model)
    for name, value in where.items():
        stmt = stmt.where(getattr(model, name) == value)
    return session.execute(stmt).scalars().first()


def _assert_blocked(session, mutate):
    mutate()
    with pytest.raises(ImmutabilityViolationError):
        session.flush()
    session.rollback()


class TestAppendOnly:

    @pytest.fixture
    def completed(self, driver):
        return driver.create(S.COMPLETED)

    def test_ledger_entry_update(self, session, completed):
        entry = _first(session, LedgerEntryModel)
        _assert_blocked(session, lambda: setattr(entry, "amount", entry.amount + 1))

    def test_ledger_entry_memo_update(self, session, completed):
        entry = _first(session, LedgerEntryModel)
        _assert_blocked(session, lambda: setattr(entry, "memo", "rewritten"))

    def test_ledger_entry_delete(self, session, completed):
        entry = _first(session, LedgerEntryModel)
        _assert_blocked(session, lambda: session.delete(entry))

    def test_quote_update(self, session, completed):
        quote = _first(session, QuoteModel, project_id=completed.id)
        _assert_blocked(session, lambda: setattr(quote, "client_price", 1))

    def test_quote_delete(self, session, completed):
        quote = _first(session, QuoteModel, project_id=completed.id)
        _assert_blocked(session, lambda: session.delete(quote))

    def test_history_update(self, session, completed):
        row = _first(session, ProjectStatusHistoryModel, project_id=completed.id)
        _assert_blocked(session, lambda: setattr(row, "to_status", "cancelled"))

    def test_history_delete(self, session, completed):
        row = _first(session, ProjectStatusHistoryModel, project_id=completed.id)
        _assert_blocked(session, lambda: session.delete(row))

    def test_violation_is_logged(self, session, completed, captured_logs):
        entry = _first(session, LedgerEntryModel)
        _assert_blocked(session, lambda: setattr(entry, "amount", 0))

        violations = captured_logs.find("immutability_violation")
        assert violations and violations[0]["entity_type"] == "LedgerEntryModel"


class TestProjectMoney:

    def test_money_editable_before_payment(self, session, driver):
        project = driver.create(S.QUOTED)
        model = session.get(ProjectModel, project.id)
        model.quoted_amount = model.quoted_amount + 100
        model.title = "Renamed before payment"
        session.flush()

    @pytest.mark.parametrize("field", ["quoted_amount", "doer_payout", "platform_fee"])
    def test_money_frozen_after_payment(self, session, driver, field):
        project = driver.create(S.PAID)
        model = session.get(ProjectModel, project.id)
        _assert_blocked(session, lambda: setattr(model, field, getattr(model, field) + 100))

    def test_non_money_fields_still_editable(self, session, driver):
        project = driver.create(S.PAID)
        model = session.get(ProjectModel, project.id)
        model.title = "Renamed after payment"
        session.flush()

    def test_project_delete(self, session, driver):
        project = driver.create(S.SUBMITTED)
        model = session.get(ProjectModel, project.id)
        _assert_blocked(session, lambda: session.delete(model))


class TestBindings:

    def test_assignment_binding(self, session, driver):
        project = driver.create(S.ASSIGNED)
        assignment = _first(session, AssignmentModel, project_id=project.id)
        _assert_blocked(session, lambda: setattr(assignment, "payout_amount", 1))

    def test_resolved_revision(self, session, driver, lifecycle, parties):
        project = driver.create(S.SUBMITTED_FOR_QC)
        lifecycle.reject_qc(project.id, parties.supervisor_id, "Cite sources")
        lifecycle.resubmit_work(project.id, parties.doer_id, "s3://x/v2.docx")

        revision = _first(session, RevisionModel, project_id=project.id)
        assert revision.resolved_at is not None
        _assert_blocked(session, lambda: setattr(revision, "response_notes", "edited"))

    def test_reviewed_payout(self, session, driver, lifecycle, parties):
        driver.create(S.COMPLETED)
        payout = lifecycle.request_payout(parties.doer_id, 60000)
        lifecycle.reject_payout(payout.id, parties.supervisor_id, "bank details missing")

        model = session.get(PayoutRequestModel, payout.id)
        _assert_blocked(session, lambda: setattr(model, "rejection_reason", "other"))
