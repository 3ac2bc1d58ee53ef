"""
Project state machine tests.

Each test drives the public lifecycle service and checks one rule of the
transition table: who may fire an event, what it records, and that a
rejected event leaves the project untouched.
"""

import dataclasses
from datetime import timedelta
from decimal import Decimal
from uuid import uuid4

import pytest

from assignx_config.schema import LifecycleConfig
from assignx_kernel.domain.dtos import NotificationKind, PaymentConfirmation
from assignx_kernel.domain.project_workflow import ProjectEvent, ProjectStatus
from assignx_kernel.exceptions import (
    ConcurrentModificationError,
    DoerNotEligibleError,
    GuardNotSatisfiedError,
    InsufficientBalanceError,
    InvalidQuoteInputError,
    InvalidStateTransitionError,
    InvalidUrgencyTierError,
    PaymentAmountMismatchError,
    ProjectNotFoundError,
    RevisionLimitExceededError,
)
from assignx_kernel.selectors.project_selector import ProjectSelector
from assignx_services import ProjectLifecycleService

S = ProjectStatus


class TestSubmission:

    def test_new_project(self, driver, parties):
        project = driver.submit()

        assert project.status == S.SUBMITTED
        assert project.version == 1
        assert project.project_number == "AX-00001"
        assert project.client_id == parties.client_id
        assert project.quoted_amount is None

    def test_numbers_increase(self, driver):
        first = driver.submit()
        second = driver.submit()
        assert (first.project_number, second.project_number) == ("AX-00001", "AX-00002")

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"word_count": None, "page_count": None},
            {"word_count": 100, "page_count": 2},
            {"word_count": 0, "page_count": None},
        ],
    )
    def test_unit_count_validation(self, lifecycle, parties, deterministic_clock, kwargs):
        with pytest.raises(InvalidQuoteInputError):
            lifecycle.submit_project(
                client_id=parties.client_id,
                title="Essay",
                deadline=deterministic_clock.now_utc() + timedelta(days=3),
                **kwargs,
            )

    def test_title_required(self, lifecycle, parties, deterministic_clock):
        with pytest.raises(InvalidQuoteInputError):
            lifecycle.submit_project(
                client_id=parties.client_id,
                title="   ",
                deadline=deterministic_clock.now_utc(),
                word_count=10,
            )


class TestDispatch:

    def test_unknown_project(self, lifecycle, parties):
        with pytest.raises(ProjectNotFoundError):
            lifecycle.claim_project(uuid4(), parties.supervisor_id)

    def test_event_not_accepted_in_status(self, driver, lifecycle, parties):
        project = driver.submit()
        with pytest.raises(InvalidStateTransitionError) as exc:
            lifecycle.deliver(project.id, parties.supervisor_id)
        assert exc.value.code == "INVALID_STATE_TRANSITION"

    def test_automatic_event_cannot_be_fired(self, driver, lifecycle, parties):
        project = driver.create(S.QC_APPROVED)
        with pytest.raises(InvalidStateTransitionError):
            lifecycle.machine.apply(project.id, ProjectEvent.BEGIN_REVISION, parties.supervisor_id)

    def test_unknown_event_name(self, driver, lifecycle, parties):
        project = driver.submit()
        with pytest.raises(InvalidStateTransitionError):
            lifecycle.machine.apply(project.id, "teleport", parties.supervisor_id)

    def test_stale_expected_version(self, driver, lifecycle, parties):
        project = driver.submit()
        lifecycle.claim_project(project.id, parties.supervisor_id)

        with pytest.raises(ConcurrentModificationError):
            lifecycle.quote_project(project.id, parties.supervisor_id, expected_version=1)
        assert lifecycle.get_project(project.id).status == S.ANALYZING

    def test_history_records_every_step(self, driver, lifecycle, parties):
        project = driver.create(S.PAID)
        history = lifecycle.project_history(project.id)

        assert [h.version for h in history] == [2, 3, 4, 5]
        assert [h.to_status for h in history] == ["analyzing", "quoted", "payment_pending", "paid"]
        assert history[0].actor_id == parties.supervisor_id
        assert lifecycle.get_project(project.id).version == 5


class TestQuoting:

    def test_quote_records_breakdown(self, driver, lifecycle, parties, notification_sink):
        project = driver.create(S.ANALYZING)
        result = lifecycle.quote_project(project.id, parties.supervisor_id)

        assert result.to_status == S.QUOTED
        assert result.quote.quote_number == 1
        assert result.quote.urgency_tier == "24h"
        assert result.project.quoted_amount == 150000
        assert result.project.active_quote_id == result.quote.id
        assert NotificationKind.QUOTE_READY.value in notification_sink.kinds()

    def test_explicit_tier_and_rate(self, driver, lifecycle, parties):
        project = driver.create(S.ANALYZING)
        result = lifecycle.quote_project(
            project.id, parties.supervisor_id,
            urgency_tier="standard", complexity="medium", rate_per_unit=Decimal("40"),
        )
        # 2000 * 40 * 1.0 * 1.2
        assert result.quote.client_price == 96000

    def test_page_project_uses_page_rate(self, driver, lifecycle, parties):
        project = driver.create(S.ANALYZING, page_count=4, hours=100)
        result = lifecycle.quote_project(project.id, parties.supervisor_id)
        assert result.quote.unit == "page"
        assert result.quote.client_price == 50000

    def test_only_claiming_supervisor_quotes(self, driver, lifecycle):
        project = driver.create(S.ANALYZING)
        with pytest.raises(GuardNotSatisfiedError):
            lifecycle.quote_project(project.id, uuid4())

    def test_requote_clears_and_renumbers(self, driver, lifecycle, parties, session):
        project = driver.create(S.PAYMENT_PENDING)
        back = lifecycle.requote_project(project.id, parties.supervisor_id, "scope changed")

        assert back.to_status == S.ANALYZING
        assert back.project.quoted_amount is None
        assert back.project.active_quote_id is None

        again = lifecycle.quote_project(project.id, parties.supervisor_id, urgency_tier="72h")
        assert again.quote.quote_number == 2
        assert len(ProjectSelector(session).quotes(project.id)) == 2

    @pytest.mark.parametrize(
        "overrides, error",
        [
            ({"rate_per_unit": Decimal("0")}, InvalidQuoteInputError),
            ({"rate_per_unit": 0}, InvalidQuoteInputError),
            ({"urgency_tier": ""}, InvalidUrgencyTierError),
            ({"complexity": ""}, InvalidQuoteInputError),
        ],
    )
    def test_explicit_invalid_inputs_are_rejected(self, driver, lifecycle, parties, overrides, error):
        project = driver.create(S.ANALYZING)
        with pytest.raises(error):
            lifecycle.quote_project(project.id, parties.supervisor_id, **overrides)

        unchanged = lifecycle.get_project(project.id)
        assert unchanged.status == S.ANALYZING
        assert unchanged.quoted_amount is None
        assert lifecycle.projects.quotes(project.id) == []


class TestPayment:

    def test_confirmation_holds_funds(self, driver, lifecycle, parties):
        project = driver.create(S.PAYMENT_PENDING)
        result = lifecycle.confirm_payment(driver.confirmation(project.id, reference="pay_42"))

        wallet = lifecycle.wallet_balance(parties.client_id)
        assert result.to_status == S.PAID
        assert result.project.payment_reference == "pay_42"
        assert result.project.paid_at is not None
        assert wallet.held == 150000
        assert wallet.available == 0

    def test_direct_payment_from_quoted(self, driver, lifecycle):
        project = driver.create(S.QUOTED)
        result = lifecycle.confirm_payment(driver.confirmation(project.id))
        assert result.path == (S.QUOTED, S.PAID)

    def test_amount_mismatch_leaves_project_unpaid(self, driver, lifecycle, parties):
        project = driver.create(S.PAYMENT_PENDING)
        with pytest.raises(PaymentAmountMismatchError):
            lifecycle.confirm_payment(driver.confirmation(project.id, amount=149999))

        assert lifecycle.get_project(project.id).status == S.PAYMENT_PENDING
        assert lifecycle.get_project(project.id).version == 4

    def test_confirmation_for_other_project(self, driver, lifecycle):
        project = driver.create(S.PAYMENT_PENDING)
        stray = PaymentConfirmation(uuid4(), 150000, reference="pay_x")
        with pytest.raises(GuardNotSatisfiedError):
            lifecycle.machine.apply(
                project.id, ProjectEvent.PAYMENT_CONFIRMED, uuid4(), confirmation=stray
            )

    def test_wallet_funded_payment_needs_balance(self, driver, lifecycle):
        project = driver.create(S.PAYMENT_PENDING)
        with pytest.raises(InsufficientBalanceError):
            lifecycle.confirm_payment(driver.confirmation(project.id, funded_from_wallet=True))
        assert lifecycle.get_project(project.id).status == S.PAYMENT_PENDING

    def test_only_client_initiates_payment(self, driver, lifecycle):
        project = driver.create(S.QUOTED)
        with pytest.raises(GuardNotSatisfiedError):
            lifecycle.initiate_payment(project.id, uuid4())

    def test_second_confirmation_is_rejected(self, driver, lifecycle):
        project = driver.create(S.PAID)
        with pytest.raises(InvalidStateTransitionError):
            lifecycle.confirm_payment(driver.confirmation(project.id))


class TestAssignmentAndWork:

    def test_auto_assignment(self, driver, lifecycle, parties):
        project = driver.create(S.PAID)
        result = lifecycle.assign_doer(project.id, parties.supervisor_id)

        assert result.to_status == S.ASSIGNED
        assert result.project.doer_id == parties.doer_id
        assert result.assignment.payout_amount == 97500

    def test_ineligible_named_doer(self, driver, lifecycle, parties):
        project = driver.create(S.PAID)
        outsider = uuid4()
        lifecycle.register_doer(outsider, subjects=["law"])

        with pytest.raises(DoerNotEligibleError):
            lifecycle.assign_doer(project.id, parties.supervisor_id, outsider)
        assert lifecycle.get_project(project.id).doer_id is None

    def test_only_assigned_doer_starts(self, driver, lifecycle):
        project = driver.create(S.ASSIGNED)
        with pytest.raises(GuardNotSatisfiedError):
            lifecycle.start_work(project.id, uuid4())

    def test_submission_needs_deliverable(self, driver, lifecycle, parties):
        project = driver.create(S.IN_PROGRESS)
        with pytest.raises(GuardNotSatisfiedError):
            lifecycle.submit_work(project.id, parties.doer_id, "  ")

    def test_submission_records_deliverable(self, driver, lifecycle, parties):
        project = driver.create(S.IN_PROGRESS)
        result = lifecycle.submit_work(project.id, parties.doer_id, "s3://x/final.pdf")
        assert result.project.latest_deliverable_ref == "s3://x/final.pdf"


class TestQualityControl:

    def test_rejection_opens_revision(self, driver, lifecycle, parties):
        project = driver.create(S.SUBMITTED_FOR_QC)
        result = lifecycle.reject_qc(project.id, parties.supervisor_id, "Add sources")

        assert result.path == (S.SUBMITTED_FOR_QC, S.QC_REJECTED, S.IN_REVISION)
        assert result.to_status == S.IN_REVISION
        assert result.revision.revision_number == 1
        assert [h.event for h in lifecycle.project_history(project.id)][-2:] == [
            "qc_reject", "begin_revision",
        ]

    def test_rejection_needs_feedback(self, driver, lifecycle, parties):
        project = driver.create(S.SUBMITTED_FOR_QC)
        with pytest.raises(GuardNotSatisfiedError):
            lifecycle.reject_qc(project.id, parties.supervisor_id, "")

    def test_resubmission_closes_revision(self, driver, lifecycle, parties):
        project = driver.create(S.SUBMITTED_FOR_QC)
        lifecycle.reject_qc(project.id, parties.supervisor_id, "Add sources")
        result = lifecycle.resubmit_work(
            project.id, parties.doer_id, "s3://x/v2.pdf", response_notes="sources added"
        )

        assert result.to_status == S.SUBMITTED_FOR_QC
        assert not result.revision.is_open
        assert result.revision.response_notes == "sources added"

    def test_revision_cap(self, driver, lifecycle, parties):
        project = driver.create(S.SUBMITTED_FOR_QC)
        for i in range(3):
            lifecycle.reject_qc(project.id, parties.supervisor_id, f"round {i}")
            lifecycle.resubmit_work(project.id, parties.doer_id, f"s3://x/v{i + 2}.pdf")

        with pytest.raises(RevisionLimitExceededError):
            lifecycle.reject_qc(project.id, parties.supervisor_id, "one more")
        assert lifecycle.get_project(project.id).status == S.SUBMITTED_FOR_QC

    def test_escalation(self, driver, lifecycle, parties, notification_sink):
        project = driver.create(S.SUBMITTED_FOR_QC)
        result = lifecycle.escalate(project.id, parties.supervisor_id, "plagiarism suspected")

        assert result.to_status == S.ESCALATED
        assert NotificationKind.ESCALATED.value in notification_sink.kinds()

    def test_auto_delivery_on_approval(self, session, engine_config, deterministic_clock,
                                       notification_sink, driver, parties):
        config = dataclasses.replace(
            engine_config, lifecycle=LifecycleConfig(auto_deliver_on_qc_approval=True)
        )
        service = ProjectLifecycleService(
            session, config=config, clock=deterministic_clock, notification_sink=notification_sink
        )
        project = driver.create(S.SUBMITTED_FOR_QC)
        result = service.approve_qc(project.id, parties.supervisor_id)

        assert result.path == (S.SUBMITTED_FOR_QC, S.QC_APPROVED, S.DELIVERED)
        assert result.project.auto_approve_at is not None


class TestDeliveryAndApproval:

    def test_delivery_starts_window(self, driver, lifecycle, parties, deterministic_clock):
        project = driver.create(S.QC_APPROVED)
        result = lifecycle.deliver(project.id, parties.supervisor_id)

        assert result.project.delivered_at == deterministic_clock.now_utc()
        assert result.project.auto_approve_at == deterministic_clock.now_utc() + timedelta(hours=48)

    def test_only_client_accepts(self, driver, lifecycle, parties):
        project = driver.create(S.DELIVERED)
        with pytest.raises(GuardNotSatisfiedError):
            lifecycle.accept_delivery(project.id, parties.doer_id)

    def test_auto_approval_waits_for_window(self, driver, lifecycle, deterministic_clock):
        project = driver.create(S.DELIVERED)
        deterministic_clock.advance_hours(47)
        with pytest.raises(GuardNotSatisfiedError):
            lifecycle.auto_approve(project.id)

        deterministic_clock.advance_hours(1)
        result = lifecycle.auto_approve(project.id)
        assert result.to_status == S.AUTO_APPROVED
        assert result.settlement is not None


class TestCancellation:

    def test_cancel_before_payment(self, driver, lifecycle, parties):
        project = driver.create(S.QUOTED)
        result = lifecycle.cancel_project(project.id, parties.client_id, "changed my mind")

        assert result.to_status == S.CANCELLED
        assert result.project.cancellation_reason == "changed my mind"

    def test_cancel_after_payment_refunds(self, driver, lifecycle, parties):
        project = driver.create(S.PAID)
        lifecycle.cancel_project(project.id, parties.supervisor_id, "no doer available")

        wallet = lifecycle.wallet_balance(parties.client_id)
        assert wallet.held == 0
        assert wallet.available == 150000

    def test_cancel_after_assignment_is_refused(self, driver, lifecycle, parties):
        project = driver.create(S.ASSIGNED)
        with pytest.raises(InvalidStateTransitionError):
            lifecycle.cancel_project(project.id, parties.client_id)
