"""
Quote calculator tests.

Pure function tests: no database.  Amounts are paise.
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from assignx_kernel.domain.quote_calculator import (
    QuoteUnit,
    compute_quote,
    urgency_tier_for_deadline,
)
from assignx_kernel.exceptions import InvalidQuoteInputError, InvalidUrgencyTierError

RATES = dict(commission_rate=Decimal("0.15"), platform_fee_rate=Decimal("0.20"))


class TestWordPricing:
    """Word-count projects priced at a per-word rate."""

    def test_urgent_essay_split(self):
        q = compute_quote(word_count=2000, urgency_tier="24h", rate_per_unit=50, **RATES)

        assert q.unit == QuoteUnit.WORD
        assert q.base_price == Decimal("100000")
        assert q.client_price == 150000
        assert q.doer_payout == 97500
        assert q.supervisor_commission == 22500
        assert q.platform_fee == 30000

    def test_standard_tier_has_no_markup(self):
        q = compute_quote(word_count=1000, urgency_tier="standard", rate_per_unit=50, **RATES)
        assert q.client_price == 50000

    def test_half_unit_rounds_up(self):
        # 333 * 50 * 1.15 = 19147.5
        q = compute_quote(word_count=333, urgency_tier="72h", rate_per_unit=50, **RATES)

        assert q.client_price == 19148
        assert q.doer_payout == 12446
        assert q.supervisor_commission == 2872
        assert q.platform_fee == 3830

    def test_complexity_multiplier_applies(self):
        q = compute_quote(
            word_count=1000, urgency_tier="standard", rate_per_unit=50,
            complexity="hard", **RATES,
        )
        assert q.complexity_multiplier == Decimal("1.5")
        assert q.client_price == 75000


class TestPagePricing:

    def test_page_quote(self):
        q = compute_quote(page_count=10, urgency_tier="48h", rate_per_unit=12500, **RATES)

        assert q.unit == QuoteUnit.PAGE
        assert q.unit_count == 10
        assert q.client_price == 162500
        assert q.doer_payout == 105625
        assert q.supervisor_commission == 24375
        assert q.platform_fee == 32500


class TestSplitConservation:
    """The three shares always add back to the client price."""

    @pytest.mark.parametrize("words", [1, 7, 99, 1234, 50001])
    @pytest.mark.parametrize("tier", ["24h", "48h", "72h", "standard"])
    def test_shares_sum_to_price(self, words, tier):
        q = compute_quote(word_count=words, urgency_tier=tier, rate_per_unit=Decimal("33.3"), **RATES)
        assert q.doer_payout + q.supervisor_commission + q.platform_fee == q.client_price
        assert min(q.doer_payout, q.supervisor_commission, q.platform_fee) >= 0

    def test_full_commission_leaves_no_doer_share(self):
        q = compute_quote(
            word_count=100, urgency_tier="standard", rate_per_unit=50,
            commission_rate=Decimal("1"), platform_fee_rate=Decimal("0"),
        )
        assert q.doer_payout == 0
        assert q.supervisor_commission == q.client_price
        assert q.platform_fee == 0


class TestInvalidInput:

    def test_requires_exactly_one_unit_count(self):
        with pytest.raises(InvalidQuoteInputError):
            compute_quote(urgency_tier="24h", rate_per_unit=50, **RATES)
        with pytest.raises(InvalidQuoteInputError):
            compute_quote(word_count=10, page_count=1, urgency_tier="24h", rate_per_unit=50, **RATES)

    @pytest.mark.parametrize("count", [0, -5])
    def test_non_positive_count(self, count):
        with pytest.raises(InvalidQuoteInputError):
            compute_quote(word_count=count, urgency_tier="24h", rate_per_unit=50, **RATES)

    def test_non_positive_rate(self):
        with pytest.raises(InvalidQuoteInputError):
            compute_quote(word_count=10, urgency_tier="24h", rate_per_unit=0, **RATES)

    def test_rates_above_one(self):
        with pytest.raises(InvalidQuoteInputError):
            compute_quote(
                word_count=10, urgency_tier="24h", rate_per_unit=50,
                commission_rate=Decimal("0.6"), platform_fee_rate=Decimal("0.5"),
            )

    def test_unknown_tier(self):
        with pytest.raises(InvalidUrgencyTierError) as exc:
            compute_quote(word_count=10, urgency_tier="12h", rate_per_unit=50, **RATES)
        assert exc.value.code == "INVALID_URGENCY_TIER"

    def test_unknown_complexity(self):
        with pytest.raises(InvalidQuoteInputError):
            compute_quote(
                word_count=10, urgency_tier="24h", rate_per_unit=50, complexity="brutal", **RATES
            )


class TestUrgencyTierForDeadline:
    NOW = datetime(2024, 1, 1, 12, tzinfo=timezone.utc)

    @pytest.mark.parametrize(
        "hours, tier",
        [(-3, "24h"), (1, "24h"), (24, "24h"), (25, "48h"), (48, "48h"),
         (60, "72h"), (72, "72h"), (73, "standard"), (500, "standard")],
    )
    def test_tier_boundaries(self, hours, tier):
        assert urgency_tier_for_deadline(self.NOW + timedelta(hours=hours), self.NOW) == tier
