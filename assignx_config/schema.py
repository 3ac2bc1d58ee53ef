"""
EngineConfig schema.

Frozen dataclasses parsed from YAML by ``assignx_config.loader``.  These are
the only shapes runtime code sees; the kernel receives them converted into
its own policy values by ``assignx_config.bridges``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Mapping

# ---------------------------------------------------------------------------
# Sections
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PricingConfig:
    """Quote inputs.  Rates per unit are minor units (paise for INR)."""

    currency: str = "INR"
    rate_per_word: Decimal = Decimal("50")
    rate_per_page: Decimal = Decimal("12500")
    commission_rate: Decimal = Decimal("0.15")
    platform_fee_rate: Decimal = Decimal("0.20")
    urgency_multipliers: Mapping[str, Decimal] = field(default_factory=dict)
    complexity_multipliers: Mapping[str, Decimal] = field(default_factory=dict)


@dataclass(frozen=True)
class LifecycleConfig:
    max_revisions: int = 3
    auto_approve_hours: int = 48
    auto_deliver_on_qc_approval: bool = False


@dataclass(frozen=True)
class AssignmentConfig:
    ranking: tuple[str, ...] = ("rating_desc", "availability_recency")


@dataclass(frozen=True)
class PayoutConfig:
    minimum_payout: int = 50000


@dataclass(frozen=True)
class AutoApprovalConfig:
    batch_size: int = 100


# ---------------------------------------------------------------------------
# Root
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class EngineConfig:
    """
    The complete runtime configuration.

    ``checksum`` is the SHA-256 of the canonical parsed content, logged on
    every load so a transition can be traced back to the settings that
    governed it.
    """

    config_id: str
    version: int
    pricing: PricingConfig
    lifecycle: LifecycleConfig
    assignment: AssignmentConfig
    payout: PayoutConfig
    auto_approval: AutoApprovalConfig = field(default_factory=AutoApprovalConfig)
    checksum: str = ""
