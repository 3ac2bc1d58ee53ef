"""
Module: assignx_kernel.selectors.ledger_selector
Responsibility: Read-only ledger queries: entries per wallet or reference,
    balance replay, and verification of the cached wallet balances against
    the ledger.
Architecture position: Kernel > Selectors.  Reads WalletModel and
    LedgerEntryModel; returns DTOs.

Invariants enforced:
    - Replay: available + held == sum(amount) and held == sum(held_delta),
      checked by ``verify_wallet``.
    - History: at every entry the running totals equal the recorded
      ``balance_after``/``held_after`` and neither is negative, checked by
      ``verify_history``.

Failure modes:
    - LedgerBalanceMismatchError when the cache or a recorded running total
      disagrees with the replay.  Never corrected here.
    - WalletNotFoundError for an unknown wallet.

Audit relevance:
    ``verify_history`` is the reconciliation entry point: it proves the
    ledger alone reconstructs every intermediate balance.
"""

from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID

from sqlalchemy import func, select

from assignx_kernel.domain.dtos import LedgerEntryInfo, WalletBalance
from assignx_kernel.exceptions import LedgerBalanceMismatchError, WalletNotFoundError
from assignx_kernel.logging_config import get_logger
from assignx_kernel.models.wallet import LedgerEntryModel, WalletModel
from assignx_kernel.selectors.base import BaseSelector

logger = get_logger("selectors.ledger")


@dataclass(frozen=True)
class ReplayedBalance:
    wallet_id: UUID
    available: int
    held: int
    entry_count: int

    @property
    def total(self) -> int:
        return self.available + self.held


class LedgerSelector(BaseSelector[LedgerEntryModel]):
    """Read-only access to ledger entries and balance replay."""

    def entries_for_wallet(self, wallet_id: UUID) -> list[LedgerEntryInfo]:
        rows = self.session.execute(
            select(LedgerEntryModel)
            .where(LedgerEntryModel.wallet_id == wallet_id)
            .order_by(LedgerEntryModel.seq)
        ).scalars()
        return [LedgerEntryInfo.from_model(r) for r in rows]

    def entries_for_reference(self, reference: str) -> list[LedgerEntryInfo]:
        rows = self.session.execute(
            select(LedgerEntryModel)
            .where(LedgerEntryModel.reference == reference)
            .order_by(LedgerEntryModel.recorded_at, LedgerEntryModel.seq)
        ).scalars()
        return [LedgerEntryInfo.from_model(r) for r in rows]

    def replay(self, wallet_id: UUID) -> ReplayedBalance:
        """Reconstruct a wallet's balance from its ledger entries alone."""
        total, held, count = self.session.execute(
            select(
                func.coalesce(func.sum(LedgerEntryModel.amount), 0),
                func.coalesce(func.sum(LedgerEntryModel.held_delta), 0),
                func.count(LedgerEntryModel.id),
            ).where(LedgerEntryModel.wallet_id == wallet_id)
        ).one()
        total, held = int(total), int(held)
        return ReplayedBalance(
            wallet_id=wallet_id,
            available=total - held,
            held=held,
            entry_count=int(count),
        )

    def verify_wallet(self, wallet_id: UUID) -> WalletBalance:
        """Compare cached balances to the replay; raise on any drift."""
        wallet = self.session.execute(
            select(WalletModel)
            .where(WalletModel.id == wallet_id)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if wallet is None:
            raise WalletNotFoundError(str(wallet_id))

        replayed = self.replay(wallet_id)
        if replayed.available != wallet.available or replayed.held != wallet.held:
            logger.error(
                "ledger_balance_mismatch",
                extra={
                    "wallet_id": str(wallet_id),
                    "cached_available": wallet.available,
                    "cached_held": wallet.held,
                    "replayed_available": replayed.available,
                    "replayed_held": replayed.held,
                },
            )
            raise LedgerBalanceMismatchError(
                str(wallet_id),
                wallet.available,
                wallet.held,
                replayed.available,
                replayed.held,
            )
        return WalletBalance.from_model(wallet)

    def verify_history(self, wallet_id: UUID) -> int:
        """Walk every entry in order and check the running totals.

        Returns the number of entries verified.
        """
        total = 0
        held = 0
        count = 0
        for entry in self.entries_for_wallet(wallet_id):
            total += entry.amount
            held += entry.held_delta
            available = total - held
            count += 1
            if (
                available != entry.balance_after
                or held != entry.held_after
                or available < 0
                or held < 0
            ):
                logger.error(
                    "ledger_history_mismatch",
                    extra={
                        "wallet_id": str(wallet_id),
                        "seq": entry.seq,
                        "recorded_available": entry.balance_after,
                        "recorded_held": entry.held_after,
                        "replayed_available": available,
                        "replayed_held": held,
                    },
                )
                raise LedgerBalanceMismatchError(
                    str(wallet_id),
                    entry.balance_after,
                    entry.held_after,
                    available,
                    held,
                )
        self.verify_wallet(wallet_id)
        return count
