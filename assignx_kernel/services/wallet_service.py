"""
WalletService -- per-party balances backed by an append-only ledger.

Responsibility:
    Owns every money movement in the engine: credit, debit, hold and
    release-hold.  Each call locks the wallet row, updates the cached
    balances and appends exactly one LedgerEntryModel in the same flush.
    No other component writes balances.

Architecture position:
    Kernel > Services -- imperative shell.  Called by the project state
    machine (payment hold, cancellation refund), the settlement service and
    the payout service, always inside the caller's transaction.

Invariants enforced:
    - Ledger replay: for every wallet, sum(entry.amount) == available + held
      and sum(entry.held_delta) == held after every entry.
    - No negative balance: hold and debit refuse to drive ``available``
      below zero; release refuses to drive the per-reference hold below zero.
    - Idempotency: each entry carries a unique key
      ``wallet:kind[:disposition]:reference``.  A repeated call with the same
      key and amount is a no-op returning ALREADY_APPLIED; a repeated key with
      a different amount is an integrity failure.
    - Serialization: the wallet row is locked with ``SELECT ... FOR UPDATE``
      before any check, so concurrent holds cannot both pass the balance
      check.

Failure modes:
    - InvalidAmountError: amount is not a positive integer of minor units.
    - InsufficientBalanceError: hold/debit larger than ``available``.
    - InvalidHoldStateError: release larger than what is held for the
      reference.
    - IdempotencyConflictError: key reuse with a different amount.
    - WalletNotFoundError: unknown wallet id or owner.

Audit relevance:
    Every applied entry logs ``ledger_entry_appended`` with the wallet, kind,
    amount and resulting balances.  Integrity failures log at ERROR.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from assignx_kernel.domain.clock import Clock
from assignx_kernel.domain.dtos import (
    LedgerEntryInfo,
    LedgerOperationResult,
    LedgerOperationStatus,
    WalletBalance,
)
from assignx_kernel.exceptions import (
    IdempotencyConflictError,
    InsufficientBalanceError,
    InvalidAmountError,
    InvalidHoldStateError,
    WalletNotFoundError,
)
from assignx_kernel.logging_config import get_logger
from assignx_kernel.models.wallet import (
    PLATFORM_OWNER_ID,
    LedgerCategory,
    LedgerEntryKind,
    LedgerEntryModel,
    ReleaseDisposition,
    WalletModel,
    WalletOwnerType,
)
from assignx_kernel.services.base import BaseService
from assignx_kernel.utils.idempotency import ledger_idempotency_key

logger = get_logger("services.wallet")


def _validate_amount(amount: object, operation: str) -> int:
    if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
        raise InvalidAmountError(amount, operation)
    return amount


def _magnitude(entry: LedgerEntryModel) -> int:
    return max(abs(entry.amount), abs(entry.held_delta))


class WalletService(BaseService[WalletModel]):
    """
    Write-side wallet operations.

    Contract:
        Every public money method returns a ``LedgerOperationResult`` whose
        ``status`` is APPLIED or ALREADY_APPLIED, or raises a typed error.
        Nothing is committed here.

    Non-goals:
        - Does NOT talk to a payment gateway; gateway funding arrives as a
          ``credit`` with category TOP_UP.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        super().__init__(session, clock)

    # -------------------------------------------------------------------------
    # Wallet lifecycle
    # -------------------------------------------------------------------------

    def get_or_create_wallet(
        self,
        owner_id: UUID,
        owner_type: WalletOwnerType | str,
        currency: str = "INR",
        actor_id: UUID | None = None,
    ) -> WalletBalance:
        """Return the owner's wallet, creating it on first use."""
        wallet = self._wallet_for_owner(owner_id)
        if wallet is not None:
            return WalletBalance.from_model(wallet)

        savepoint = self.session.begin_nested()
        try:
            wallet = WalletModel(
                owner_id=owner_id,
                owner_type=WalletOwnerType(owner_type).value,
                currency=currency,
                created_by_id=actor_id or owner_id,
            )
            self.session.add(wallet)
            self.session.flush()
            savepoint.commit()
        except IntegrityError:
            # Another transaction created it first
            savepoint.rollback()
            wallet = self._wallet_for_owner(owner_id)
            if wallet is None:
                raise
            return WalletBalance.from_model(wallet)

        logger.info(
            "wallet_created",
            extra={
                "wallet_id": str(wallet.id),
                "owner_id": str(owner_id),
                "owner_type": WalletOwnerType(owner_type).value,
                "currency": currency,
            },
        )
        return WalletBalance.from_model(wallet)

    def platform_wallet(self, currency: str = "INR") -> WalletBalance:
        """The platform fee pool wallet."""
        return self.get_or_create_wallet(
            PLATFORM_OWNER_ID, WalletOwnerType.PLATFORM, currency=currency
        )

    def wallet_for_owner(self, owner_id: UUID) -> WalletBalance:
        wallet = self._wallet_for_owner(owner_id)
        if wallet is None:
            raise WalletNotFoundError(f"owner:{owner_id}")
        return WalletBalance.from_model(wallet)

    def get_balance(self, wallet_id: UUID) -> WalletBalance:
        """Current cached balances (loadWallet)."""
        wallet = self.session.execute(
            select(WalletModel)
            .where(WalletModel.id == wallet_id)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if wallet is None:
            raise WalletNotFoundError(str(wallet_id))
        return WalletBalance.from_model(wallet)

    def held_for_reference(self, wallet_id: UUID, hold_reference: str) -> int:
        """Amount still held on ``wallet_id`` under ``hold_reference``."""
        total = self.session.execute(
            select(func.coalesce(func.sum(LedgerEntryModel.held_delta), 0)).where(
                LedgerEntryModel.wallet_id == wallet_id,
                LedgerEntryModel.hold_reference == hold_reference,
            )
        ).scalar_one()
        return int(total)

    # -------------------------------------------------------------------------
    # Money movements
    # -------------------------------------------------------------------------

    def credit(
        self,
        wallet_id: UUID,
        amount: int,
        reference: str,
        *,
        category: LedgerCategory = LedgerCategory.TOP_UP,
        actor_id: UUID | None = None,
        memo: str | None = None,
    ) -> LedgerOperationResult:
        """Increase ``available`` by ``amount``."""
        amount = _validate_amount(amount, "credit")
        return self._apply(
            wallet_id,
            LedgerEntryKind.CREDIT,
            amount,
            reference,
            category=category,
            actor_id=actor_id,
            memo=memo,
        )

    def debit(
        self,
        wallet_id: UUID,
        amount: int,
        reference: str,
        *,
        category: LedgerCategory = LedgerCategory.WITHDRAWAL,
        actor_id: UUID | None = None,
        memo: str | None = None,
    ) -> LedgerOperationResult:
        """Remove ``amount`` from ``available`` directly."""
        amount = _validate_amount(amount, "debit")
        return self._apply(
            wallet_id,
            LedgerEntryKind.DEBIT,
            amount,
            reference,
            category=category,
            actor_id=actor_id,
            memo=memo,
        )

    def hold(
        self,
        wallet_id: UUID,
        amount: int,
        reference: str,
        *,
        category: LedgerCategory = LedgerCategory.PROJECT_PAYMENT,
        actor_id: UUID | None = None,
        memo: str | None = None,
    ) -> LedgerOperationResult:
        """Move ``amount`` from ``available`` to ``held`` under ``reference``."""
        amount = _validate_amount(amount, "hold")
        return self._apply(
            wallet_id,
            LedgerEntryKind.HOLD,
            amount,
            reference,
            category=category,
            hold_reference=reference,
            actor_id=actor_id,
            memo=memo,
        )

    def release_hold(
        self,
        wallet_id: UUID,
        amount: int,
        reference: str,
        disposition: ReleaseDisposition | str,
        *,
        category: LedgerCategory | None = None,
        actor_id: UUID | None = None,
        memo: str | None = None,
    ) -> LedgerOperationResult:
        """Release ``amount`` held under ``reference``.

        REFUND moves it back to ``available``; DEBIT removes it from the
        wallet as a completed payment.
        """
        amount = _validate_amount(amount, "release_hold")
        disposition = ReleaseDisposition(disposition)
        if category is None:
            category = (
                LedgerCategory.REFUND
                if disposition == ReleaseDisposition.REFUND
                else LedgerCategory.PROJECT_PAYMENT
            )
        return self._apply(
            wallet_id,
            LedgerEntryKind.RELEASE,
            amount,
            reference,
            category=category,
            disposition=disposition,
            hold_reference=reference,
            actor_id=actor_id,
            memo=memo,
        )

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _wallet_for_owner(self, owner_id: UUID) -> WalletModel | None:
        return self.session.execute(
            select(WalletModel)
            .where(WalletModel.owner_id == owner_id)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def _lock_wallet(self, wallet_id: UUID) -> WalletModel:
        wallet = self.session.execute(
            select(WalletModel)
            .where(WalletModel.id == wallet_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if wallet is None:
            raise WalletNotFoundError(str(wallet_id))
        return wallet

    def _existing_entry(self, idempotency_key: str) -> LedgerEntryModel | None:
        return self.session.execute(
            select(LedgerEntryModel).where(LedgerEntryModel.idempotency_key == idempotency_key)
        ).scalar_one_or_none()

    def _apply(
        self,
        wallet_id: UUID,
        kind: LedgerEntryKind,
        amount: int,
        reference: str,
        *,
        category: LedgerCategory,
        disposition: ReleaseDisposition | None = None,
        hold_reference: str | None = None,
        actor_id: UUID | None = None,
        memo: str | None = None,
    ) -> LedgerOperationResult:
        wallet = self._lock_wallet(wallet_id)
        key = ledger_idempotency_key(
            wallet_id, kind.value, reference, disposition.value if disposition else None
        )

        existing = self._existing_entry(key)
        if existing is not None:
            if _magnitude(existing) != amount:
                logger.error(
                    "ledger_idempotency_conflict",
                    extra={
                        "wallet_id": str(wallet_id),
                        "idempotency_key": key,
                        "recorded_amount": _magnitude(existing),
                        "requested_amount": amount,
                    },
                )
                raise IdempotencyConflictError(key, _magnitude(existing), amount)
            logger.info(
                "ledger_entry_already_applied",
                extra={"wallet_id": str(wallet_id), "idempotency_key": key},
            )
            return LedgerOperationResult(
                status=LedgerOperationStatus.ALREADY_APPLIED,
                entry=LedgerEntryInfo.from_model(existing),
                balance=WalletBalance.from_model(wallet),
            )

        if kind == LedgerEntryKind.CREDIT:
            signed_amount, held_delta = amount, 0
            wallet.available += amount
            wallet.total_credited += amount

        elif kind == LedgerEntryKind.DEBIT:
            if wallet.available < amount:
                raise InsufficientBalanceError(str(wallet_id), wallet.available, amount)
            signed_amount, held_delta = -amount, 0
            wallet.available -= amount
            wallet.total_debited += amount
            if category == LedgerCategory.WITHDRAWAL:
                wallet.total_withdrawn += amount

        elif kind == LedgerEntryKind.HOLD:
            if wallet.available < amount:
                raise InsufficientBalanceError(str(wallet_id), wallet.available, amount)
            signed_amount, held_delta = 0, amount
            wallet.available -= amount
            wallet.held += amount

        else:
            held_for_ref = self.held_for_reference(wallet_id, reference)
            if held_for_ref < amount or wallet.held < amount:
                logger.error(
                    "invalid_hold_state",
                    extra={
                        "wallet_id": str(wallet_id),
                        "hold_reference": reference,
                        "held_for_reference": held_for_ref,
                        "requested": amount,
                    },
                )
                raise InvalidHoldStateError(str(wallet_id), reference, held_for_ref, amount)
            held_delta = -amount
            wallet.held -= amount
            if disposition == ReleaseDisposition.REFUND:
                signed_amount = 0
                wallet.available += amount
            else:
                signed_amount = -amount
                wallet.total_debited += amount
                if category == LedgerCategory.WITHDRAWAL:
                    wallet.total_withdrawn += amount

        wallet.entry_count += 1
        if actor_id is not None:
            wallet.updated_by_id = actor_id

        entry = LedgerEntryModel(
            wallet_id=wallet.id,
            seq=wallet.entry_count,
            kind=kind.value,
            disposition=disposition.value if disposition else None,
            category=LedgerCategory(category).value,
            amount=signed_amount,
            held_delta=held_delta,
            balance_after=wallet.available,
            held_after=wallet.held,
            reference=reference,
            hold_reference=hold_reference,
            idempotency_key=key,
            recorded_at=self.clock.now_utc(),
            actor_id=actor_id,
            memo=memo,
        )
        self.session.add(entry)
        self.session.flush()

        logger.info(
            "ledger_entry_appended",
            extra={
                "wallet_id": str(wallet.id),
                "seq": entry.seq,
                "kind": kind.value,
                "disposition": disposition.value if disposition else None,
                "category": LedgerCategory(category).value,
                "amount": amount,
                "available_after": wallet.available,
                "held_after": wallet.held,
                "reference": reference,
            },
        )
        return LedgerOperationResult(
            status=LedgerOperationStatus.APPLIED,
            entry=LedgerEntryInfo.from_model(entry),
            balance=WalletBalance.from_model(wallet),
        )
