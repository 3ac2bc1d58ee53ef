"""
Settlement tests.

A settled project moves exactly the quoted amount out of the client's
hold and into the doer, supervisor and platform wallets.  Re-running
settlement changes nothing.
"""

from uuid import uuid4

import pytest

from assignx_kernel.domain.dtos import SettlementStatus
from assignx_kernel.domain.project_workflow import ProjectStatus
from assignx_kernel.exceptions import GuardNotSatisfiedError, ProjectNotFoundError
from assignx_kernel.models.wallet import PLATFORM_OWNER_ID
from assignx_kernel.selectors.ledger_selector import LedgerSelector
from assignx_kernel.services.settlement_service import SettlementService
from assignx_kernel.utils.idempotency import project_reference


@pytest.fixture
def settlement(session, deterministic_clock):
    return SettlementService(session, deterministic_clock)


class TestSettlement:

    def test_split_reaches_every_wallet(self, driver, lifecycle, parties):
        project = driver.create(ProjectStatus.COMPLETED)

        client = lifecycle.wallet_balance(parties.client_id)
        doer = lifecycle.wallet_balance(parties.doer_id)
        supervisor = lifecycle.wallet_balance(parties.supervisor_id)
        platform = lifecycle.wallet_balance(PLATFORM_OWNER_ID)

        assert project.settled_at is not None
        assert client.available == 0 and client.held == 0
        assert client.total_debited == 150000
        assert doer.available == 97500
        assert supervisor.available == 22500
        assert platform.available == 30000
        assert doer.available + supervisor.available + platform.available == project.quoted_amount

    def test_settlement_result_on_transition(self, driver, lifecycle, parties):
        project = driver.create(ProjectStatus.DELIVERED)
        result = lifecycle.accept_delivery(project.id, parties.client_id)

        assert result.to_status == ProjectStatus.COMPLETED
        assert result.settlement.status == SettlementStatus.SETTLED
        assert result.settlement.client_debited == 150000
        assert result.settlement.steps_applied == 4
        assert result.settlement.steps_skipped == 0

    def test_second_settlement_is_noop(self, driver, settlement, session, parties):
        project = driver.create(ProjectStatus.COMPLETED)
        result = settlement.settle(project.id)

        assert result.status == SettlementStatus.ALREADY_SETTLED
        entries = LedgerSelector(session).entries_for_reference(
            project_reference(project.id, "doer_payout")
        )
        assert len(entries) == 1

    def test_releases_doer_slot(self, driver, lifecycle, parties):
        driver.create(ProjectStatus.COMPLETED)
        profile = lifecycle.resolver.get_profile(parties.doer_id)
        assert profile.active_assignment_count == 0

    def test_refuses_unfinished_project(self, driver, settlement):
        project = driver.create(ProjectStatus.DELIVERED)
        with pytest.raises(GuardNotSatisfiedError):
            settlement.settle(project.id)

    def test_unknown_project(self, settlement):
        with pytest.raises(ProjectNotFoundError):
            settlement.settle(uuid4())

    def test_every_wallet_replays(self, driver, lifecycle, parties):
        driver.create(ProjectStatus.COMPLETED)
        for owner in (parties.client_id, parties.doer_id, parties.supervisor_id, PLATFORM_OWNER_ID):
            balance = lifecycle.wallet_balance(owner)
            assert lifecycle.verify_wallet(balance.wallet_id) >= 1
