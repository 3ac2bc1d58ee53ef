"""
Hypothesis fuzzing of the money paths.

Quote splits must always conserve the client price, and any sequence of
wallet operations must leave cached balances equal to a replay of the
ledger.
"""

from decimal import Decimal
from uuid import uuid4

import pytest
from hypothesis import HealthCheck, given, settings
from hypothesis import strategies as st

from assignx_kernel.domain.quote_calculator import (
    DEFAULT_COMPLEXITY_MULTIPLIERS,
    DEFAULT_URGENCY_MULTIPLIERS,
    compute_quote,
)
from assignx_kernel.exceptions import InsufficientBalanceError, InvalidHoldStateError
from assignx_kernel.models.wallet import ReleaseDisposition, WalletOwnerType
from assignx_kernel.selectors.ledger_selector import LedgerSelector
from assignx_kernel.services.wallet_service import WalletService

rates = st.decimals(min_value=Decimal("1"), max_value=Decimal("100000"), places=2)
fractions = st.decimals(min_value=Decimal("0"), max_value=Decimal("1"), places=4)
amounts = st.integers(min_value=1, max_value=500000)

db_settings = settings(
    max_examples=25,
    deadline=None,
    suppress_health_check=[HealthCheck.function_scoped_fixture],
)


@st.composite
def rate_pairs(draw):
    commission = draw(fractions)
    fee = draw(st.decimals(min_value=Decimal("0"), max_value=Decimal("1") - commission, places=4))
    return commission, fee


class TestQuoteFuzzing:

    @given(
        count=st.integers(min_value=1, max_value=200000),
        by_page=st.booleans(),
        rate=rates,
        split=rate_pairs(),
        tier=st.sampled_from(sorted(DEFAULT_URGENCY_MULTIPLIERS)),
        complexity=st.sampled_from(sorted(DEFAULT_COMPLEXITY_MULTIPLIERS)),
    )
    @settings(max_examples=300, deadline=None)
    def test_split_conserves_client_price(self, count, by_page, rate, split, tier, complexity):
        commission, fee = split
        units = {"page_count": count} if by_page else {"word_count": count}
        quote = compute_quote(
            **units,
            urgency_tier=tier,
            complexity=complexity,
            rate_per_unit=rate,
            commission_rate=commission,
            platform_fee_rate=fee,
        )

        assert quote.client_price > 0
        assert quote.doer_payout >= 0
        assert quote.supervisor_commission >= 0
        assert quote.platform_fee >= 0
        assert quote.doer_payout + quote.supervisor_commission + quote.platform_fee == quote.client_price

    @given(count=st.integers(min_value=1, max_value=100000), tier=st.sampled_from(["48h", "72h"]))
    def test_urgency_never_lowers_price(self, count, tier):
        common = dict(word_count=count, rate_per_unit=50, commission_rate="0.15", platform_fee_rate="0.20")
        standard = compute_quote(urgency_tier="standard", **common)
        urgent = compute_quote(urgency_tier=tier, **common)
        rush = compute_quote(urgency_tier="24h", **common)
        assert standard.client_price <= urgent.client_price <= rush.client_price


wallet_ops = st.lists(
    st.tuples(
        st.sampled_from(["credit", "debit", "hold", "release"]),
        amounts,
        st.sampled_from(list(ReleaseDisposition)),
    ),
    min_size=1,
    max_size=20,
)


class TestWalletFuzzing:

    @db_settings
    @given(ops=wallet_ops)
    def test_cached_balance_matches_replay(self, session, deterministic_clock, ops):
        wallets = WalletService(session, deterministic_clock)
        wallet = wallets.get_or_create_wallet(uuid4(), WalletOwnerType.CLIENT)
        wallet_id = wallet.wallet_id

        available = 0
        holds: dict[str, int] = {}

        for i, (op, amount, disposition) in enumerate(ops):
            ref = f"ref-{i}"
            if op == "credit":
                wallets.credit(wallet_id, amount, ref)
                available += amount
            elif op == "debit":
                if amount > available:
                    with pytest.raises(InsufficientBalanceError):
                        wallets.debit(wallet_id, amount, ref)
                else:
                    wallets.debit(wallet_id, amount, ref)
                    available -= amount
            elif op == "hold":
                if amount > available:
                    with pytest.raises(InsufficientBalanceError):
                        wallets.hold(wallet_id, amount, ref)
                else:
                    wallets.hold(wallet_id, amount, ref)
                    available -= amount
                    holds[ref] = amount
            elif holds:
                hold_ref = sorted(holds)[amount % len(holds)]
                held = holds.pop(hold_ref)
                wallets.release_hold(wallet_id, held, hold_ref, disposition)
                if disposition == ReleaseDisposition.REFUND:
                    available += held
            else:
                with pytest.raises(InvalidHoldStateError):
                    wallets.release_hold(wallet_id, amount, ref, disposition)

        balance = wallets.get_balance(wallet_id)
        assert balance.available == available
        assert balance.held == sum(holds.values())

        ledger = LedgerSelector(session)
        replayed = ledger.replay(wallet_id)
        assert (replayed.available, replayed.held) == (balance.available, balance.held)
        ledger.verify_history(wallet_id)

    @db_settings
    @given(amount=amounts, repeats=st.integers(min_value=2, max_value=5))
    def test_replayed_operation_applies_once(self, session, deterministic_clock, amount, repeats):
        wallets = WalletService(session, deterministic_clock)
        wallet_id = wallets.get_or_create_wallet(uuid4(), WalletOwnerType.DOER).wallet_id

        results = [wallets.credit(wallet_id, amount, "gateway-txn") for _ in range(repeats)]

        assert [r.applied for r in results] == [True] + [False] * (repeats - 1)
        assert wallets.get_balance(wallet_id).available == amount
