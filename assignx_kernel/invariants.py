"""
Kernel Invariants Contract.

These invariants are structural law for the lifecycle engine.  No engine
configuration may override them; configuration only tunes thresholds such
as ``max_revisions`` or the auto-approval window.

This module exists solely to declare the invariants explicitly.  The
enforcement is distributed across the state machine, the wallet service,
the assignment resolver, the ORM immutability listeners, and unique
constraints.
"""

from enum import Enum, unique


@unique
class KernelInvariant(str, Enum):
    """Non-configurable invariants enforced by the kernel."""

    QUOTE_SPLIT_EXACT = "quote_split_exact"
    """doer_payout + supervisor_commission + platform_fee == client_price.
    Enforced by QuoteBreakdown construction and a DB check constraint."""

    LEDGER_REPLAY = "ledger_replay"
    """Sum of a wallet's ledger amounts equals available + held.  Enforced
    by WalletService writing balance and entry in one flush; verified by
    LedgerSelector."""

    NON_NEGATIVE_BALANCE = "non_negative_balance"
    """Neither the available nor the held bucket may go negative.  Enforced
    by WalletService guards and DB check constraints."""

    LEDGER_APPEND_ONLY = "ledger_append_only"
    """Ledger entries, quotes and status history rows are never updated or
    deleted.  Enforced by ORM listeners (assignx_kernel.db.immutability)."""

    SERIALIZED_TRANSITIONS = "serialized_transitions"
    """Every project transition is a version/status compare-and-set.  A lost
    race raises ConcurrentModificationError."""

    DOER_CAPACITY = "doer_capacity"
    """A doer never holds more than max_concurrent_projects active
    assignments.  Enforced by a conditional counter update inside the
    assignment transaction."""

    SETTLE_ONCE = "settle_once"
    """Settlement runs at most once per project.  Enforced by the
    settled_at marker and per-step ledger idempotency keys."""

    MONEY_FROZEN_AFTER_PAYMENT = "money_frozen_after_payment"
    """Quoted amounts on a project are immutable once payment is recorded.
    Enforced by ORM listeners."""


ALL_KERNEL_INVARIANTS: frozenset[KernelInvariant] = frozenset(KernelInvariant)

# The kernel package may not import from these packages.
# Enforced by tests/architecture/test_kernel_boundary.py.
FORBIDDEN_KERNEL_IMPORTS: tuple[str, ...] = (
    "assignx_services",
    "assignx_config",
)
