"""
QuoteCalculator -- pure price and split computation.

Responsibility:
    Turns a unit count, an urgency tier and per-quote rates into a client
    price and its three-way split (doer payout, supervisor commission,
    platform fee) in integer minor units.

Architecture position:
    Kernel > Domain -- pure functional core, ZERO I/O.  Called by the
    lifecycle facade when a supervisor quotes; the resulting
    ``QuoteBreakdown`` is persisted by the state machine as an immutable
    Quote record.

Invariants enforced:
    - doer_payout + supervisor_commission + platform_fee == client_price,
      exactly.  The platform fee is the residual, never computed on its own.
    - Rounding is round-half-up to the smallest currency unit, applied once
      to each computed figure and never to an intermediate product.
    - No share is negative: the commission is capped at what remains after
      the doer payout.
    - Deterministic: identical inputs give identical outputs.

Failure modes:
    - InvalidQuoteInputError: zero or two unit counts, non-positive count or
      rate, rates outside [0, 1] or summing above 1, unknown complexity.
    - InvalidUrgencyTierError: tier not in the multiplier table.

Audit relevance:
    Every input and multiplier is echoed on the breakdown so the persisted
    Quote record can be recomputed and compared during an audit.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, InvalidOperation
from enum import Enum

from assignx_kernel.domain.currency import round_half_up
from assignx_kernel.exceptions import InvalidQuoteInputError, InvalidUrgencyTierError


class QuoteUnit(str, Enum):
    WORD = "word"
    PAGE = "page"


DEFAULT_URGENCY_MULTIPLIERS: Mapping[str, Decimal] = {
    "24h": Decimal("1.5"),
    "48h": Decimal("1.3"),
    "72h": Decimal("1.15"),
    "standard": Decimal("1.0"),
}

DEFAULT_COMPLEXITY_MULTIPLIERS: Mapping[str, Decimal] = {
    "standard": Decimal("1.0"),
    "medium": Decimal("1.2"),
    "hard": Decimal("1.5"),
}

_ONE = Decimal("1")
_ZERO = Decimal("0")


@dataclass(frozen=True)
class QuoteBreakdown:
    """Result of ``compute_quote``. All amounts are integer minor units."""

    unit: QuoteUnit
    unit_count: int
    rate_per_unit: Decimal
    base_price: Decimal
    urgency_tier: str
    urgency_multiplier: Decimal
    complexity: str
    complexity_multiplier: Decimal
    commission_rate: Decimal
    platform_fee_rate: Decimal
    client_price: int
    doer_payout: int
    supervisor_commission: int
    platform_fee: int

    def __post_init__(self) -> None:
        total = self.doer_payout + self.supervisor_commission + self.platform_fee
        if total != self.client_price:
            raise InvalidQuoteInputError(
                f"split {total} does not equal client price {self.client_price}"
            )


def _as_decimal(value: Decimal | int | str, name: str) -> Decimal:
    if isinstance(value, float):
        raise InvalidQuoteInputError(f"{name} must be Decimal, int or str, not float")
    try:
        result = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise InvalidQuoteInputError(f"{name} is not a number: {value!r}") from None
    if not result.is_finite():
        raise InvalidQuoteInputError(f"{name} must be finite")
    return result


def _positive_count(value: object, name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidQuoteInputError(f"{name} must be an integer, got {value!r}")
    if value <= 0:
        raise InvalidQuoteInputError(f"{name} must be positive, got {value}")
    return value


def compute_quote(
    *,
    word_count: int | None = None,
    page_count: int | None = None,
    urgency_tier: str,
    rate_per_unit: Decimal | int | str,
    commission_rate: Decimal | int | str,
    platform_fee_rate: Decimal | int | str,
    complexity: str = "standard",
    urgency_multipliers: Mapping[str, Decimal] = DEFAULT_URGENCY_MULTIPLIERS,
    complexity_multipliers: Mapping[str, Decimal] = DEFAULT_COMPLEXITY_MULTIPLIERS,
) -> QuoteBreakdown:
    """Compute a client price and its split.

    ``rate_per_unit`` is in minor units per word or per page (e.g. 50 paise
    per word).  Exactly one of ``word_count`` / ``page_count`` is given.
    """
    if (word_count is None) == (page_count is None):
        raise InvalidQuoteInputError("exactly one of word_count or page_count is required")

    if word_count is not None:
        unit, count = QuoteUnit.WORD, _positive_count(word_count, "word_count")
    else:
        unit, count = QuoteUnit.PAGE, _positive_count(page_count, "page_count")

    rate = _as_decimal(rate_per_unit, "rate_per_unit")
    if rate <= _ZERO:
        raise InvalidQuoteInputError(f"rate_per_unit must be positive, got {rate}")

    c = _as_decimal(commission_rate, "commission_rate")
    p = _as_decimal(platform_fee_rate, "platform_fee_rate")
    if c < _ZERO or p < _ZERO:
        raise InvalidQuoteInputError("commission and platform fee rates must be non-negative")
    if c + p > _ONE:
        raise InvalidQuoteInputError(
            f"commission_rate + platform_fee_rate must not exceed 1, got {c + p}"
        )

    if urgency_tier not in urgency_multipliers:
        raise InvalidUrgencyTierError(urgency_tier, tuple(urgency_multipliers))
    urgency = Decimal(urgency_multipliers[urgency_tier])

    if complexity not in complexity_multipliers:
        raise InvalidQuoteInputError(
            f"unknown complexity {complexity!r}; expected one of {list(complexity_multipliers)}"
        )
    complexity_mult = Decimal(complexity_multipliers[complexity])

    base_price = rate * count
    client_price = round_half_up(base_price * urgency * complexity_mult)
    if client_price <= 0:
        raise InvalidQuoteInputError("computed client price rounds to zero")

    doer_payout = round_half_up(client_price * (_ONE - c - p))
    supervisor_commission = min(
        round_half_up(client_price * c),
        client_price - doer_payout,
    )
    platform_fee = client_price - doer_payout - supervisor_commission

    return QuoteBreakdown(
        unit=unit,
        unit_count=count,
        rate_per_unit=rate,
        base_price=base_price,
        urgency_tier=urgency_tier,
        urgency_multiplier=urgency,
        complexity=complexity,
        complexity_multiplier=complexity_mult,
        commission_rate=c,
        platform_fee_rate=p,
        client_price=client_price,
        doer_payout=doer_payout,
        supervisor_commission=supervisor_commission,
        platform_fee=platform_fee,
    )


def urgency_tier_for_deadline(deadline: datetime, now: datetime) -> str:
    """Map hours remaining until ``deadline`` onto an urgency tier.

    <=24h -> "24h", <=48h -> "48h", <=72h -> "72h", otherwise "standard".
    A deadline already in the past is treated as the most urgent tier.
    """
    hours = (deadline - now).total_seconds() / 3600
    if hours <= 24:
        return "24h"
    if hours <= 48:
        return "48h"
    if hours <= 72:
        return "72h"
    return "standard"
