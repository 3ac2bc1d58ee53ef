"""
Payout tests.

A doer who has been paid for a project withdraws part of the balance.
The request is held on the wallet until an administrator reviews it.
"""

from uuid import uuid4

import pytest

from assignx_kernel.domain.dtos import NotificationKind
from assignx_kernel.domain.project_workflow import ProjectStatus
from assignx_kernel.exceptions import (
    InsufficientBalanceError,
    InvalidAmountError,
    PayoutBelowMinimumError,
    PayoutNotFoundError,
    PayoutStateError,
    WalletNotFoundError,
)
from assignx_kernel.models.payout import PayoutStatus


@pytest.fixture
def earned(driver, parties):
    """A completed project: the doer holds 97500 available."""
    return driver.create(ProjectStatus.COMPLETED)


@pytest.fixture
def admin_id():
    return uuid4()


class TestRequest:

    def test_request_holds_amount(self, lifecycle, earned, parties):
        payout = lifecycle.request_payout(parties.doer_id, 60000)

        wallet = lifecycle.wallet_balance(parties.doer_id)
        assert payout.status == PayoutStatus.PENDING.value
        assert wallet.available == 37500
        assert wallet.held == 60000

    def test_below_minimum(self, lifecycle, earned, parties):
        with pytest.raises(PayoutBelowMinimumError):
            lifecycle.request_payout(parties.doer_id, 49999)

    @pytest.mark.parametrize("amount", [0, -100, 500.0])
    def test_invalid_amount(self, lifecycle, earned, parties, amount):
        with pytest.raises(InvalidAmountError):
            lifecycle.request_payout(parties.doer_id, amount)

    def test_more_than_available(self, lifecycle, earned, parties):
        with pytest.raises(InsufficientBalanceError):
            lifecycle.request_payout(parties.doer_id, 97501)
        assert lifecycle.payouts.payouts_for(parties.doer_id) == []

    def test_no_wallet(self, lifecycle):
        with pytest.raises(WalletNotFoundError):
            lifecycle.request_payout(uuid4(), 60000)

    def test_supervisor_withdraws_commission(self, lifecycle, driver, parties):
        for _ in range(3):
            driver.create(ProjectStatus.COMPLETED)

        payout = lifecycle.request_payout(parties.supervisor_id, 60000)
        wallet = lifecycle.wallet_balance(parties.supervisor_id)
        assert payout.wallet_id == wallet.wallet_id
        assert wallet.available == 3 * 22500 - 60000


class TestReview:

    def test_full_approval(self, lifecycle, earned, parties, admin_id, notification_sink):
        payout = lifecycle.request_payout(parties.doer_id, 60000)
        reviewed = lifecycle.approve_payout(payout.id, admin_id)

        wallet = lifecycle.wallet_balance(parties.doer_id)
        assert reviewed.status == PayoutStatus.COMPLETED.value
        assert reviewed.approved_amount == 60000
        assert reviewed.reviewed_by == admin_id
        assert wallet.held == 0
        assert wallet.available == 37500
        assert wallet.total_withdrawn == 60000
        assert notification_sink.kinds()[-1] == NotificationKind.PAYOUT_REVIEWED.value

    def test_partial_approval_refunds_rest(self, lifecycle, earned, parties, admin_id):
        payout = lifecycle.request_payout(parties.doer_id, 60000)
        lifecycle.approve_payout(payout.id, admin_id, approved_amount=55000)

        wallet = lifecycle.wallet_balance(parties.doer_id)
        assert wallet.held == 0
        assert wallet.available == 42500
        assert wallet.total_withdrawn == 55000
        assert lifecycle.verify_wallet(wallet.wallet_id) > 0

    def test_approval_above_request(self, lifecycle, earned, parties, admin_id):
        payout = lifecycle.request_payout(parties.doer_id, 60000)
        with pytest.raises(InvalidAmountError):
            lifecycle.approve_payout(payout.id, admin_id, approved_amount=60001)

    def test_rejection_refunds(self, lifecycle, earned, parties, admin_id):
        payout = lifecycle.request_payout(parties.doer_id, 60000)
        reviewed = lifecycle.reject_payout(payout.id, admin_id, "bank details missing")

        wallet = lifecycle.wallet_balance(parties.doer_id)
        assert reviewed.status == PayoutStatus.REJECTED.value
        assert reviewed.rejection_reason == "bank details missing"
        assert wallet.available == 97500
        assert wallet.held == 0

    def test_reviewed_once(self, lifecycle, earned, parties, admin_id):
        payout = lifecycle.request_payout(parties.doer_id, 60000)
        lifecycle.approve_payout(payout.id, admin_id)

        with pytest.raises(PayoutStateError):
            lifecycle.reject_payout(payout.id, admin_id, "too late")

    def test_unknown_payout(self, lifecycle, admin_id):
        with pytest.raises(PayoutNotFoundError):
            lifecycle.approve_payout(uuid4(), admin_id)
