"""
PayoutService -- withdrawal requests against earned balances.

Responsibility:
    Lets doers and supervisors request a withdrawal of their available
    balance, and lets an administrator approve (fully or partly) or reject
    it.  The requested amount is held on the wallet while the request is
    pending so it cannot be spent twice.

Architecture position:
    Kernel > Services.  Uses WalletService for every money movement.  The
    minimum withdrawal arrives as an argument from the outer layer.

Invariants enforced:
    - A request moves PENDING -> COMPLETED or PENDING -> REJECTED once.
    - approved_amount is in (0, requested_amount]; the remainder of the
      hold is refunded in the same transaction.

Failure modes:
    - PayoutBelowMinimumError, InvalidAmountError: bad request amount.
    - InsufficientBalanceError: available balance below the request.
    - PayoutNotFoundError, PayoutStateError: unknown or already reviewed.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from assignx_kernel.domain.clock import Clock
from assignx_kernel.domain.dtos import PayoutInfo
from assignx_kernel.exceptions import (
    InvalidAmountError,
    PayoutBelowMinimumError,
    PayoutNotFoundError,
    PayoutStateError,
)
from assignx_kernel.logging_config import get_logger
from assignx_kernel.models.payout import PayoutRequestModel, PayoutStatus
from assignx_kernel.models.wallet import LedgerCategory, ReleaseDisposition
from assignx_kernel.services.base import BaseService
from assignx_kernel.services.wallet_service import WalletService
from assignx_kernel.utils.idempotency import payout_reference

logger = get_logger("services.payout")

DEFAULT_MINIMUM_PAYOUT = 50000


class PayoutService(BaseService[PayoutRequestModel]):

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        wallet: WalletService | None = None,
        minimum_payout: int = DEFAULT_MINIMUM_PAYOUT,
    ):
        super().__init__(session, clock)
        self.wallet = wallet or WalletService(session, self.clock)
        self.minimum_payout = minimum_payout

    def request_payout(self, profile_id: UUID, amount: int) -> PayoutInfo:
        """Open a withdrawal request and hold ``amount`` on the owner's wallet."""
        if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
            raise InvalidAmountError(amount, "request_payout")
        if amount < self.minimum_payout:
            raise PayoutBelowMinimumError(amount, self.minimum_payout)

        wallet = self.wallet.wallet_for_owner(profile_id)
        payout = PayoutRequestModel(
            profile_id=profile_id,
            wallet_id=wallet.wallet_id,
            requester_type=wallet.owner_type,
            requested_amount=amount,
            status=PayoutStatus.PENDING.value,
            created_by_id=profile_id,
        )
        self.session.add(payout)
        self.session.flush()

        self.wallet.hold(
            wallet.wallet_id,
            amount,
            payout_reference(payout.id),
            category=LedgerCategory.WITHDRAWAL,
            actor_id=profile_id,
        )
        logger.info(
            "payout_requested",
            extra={
                "payout_id": str(payout.id),
                "profile_id": str(profile_id),
                "wallet_id": str(wallet.wallet_id),
                "amount": amount,
            },
        )
        return PayoutInfo.from_model(payout)

    def approve_payout(
        self,
        payout_id: UUID,
        reviewer_id: UUID,
        approved_amount: int | None = None,
    ) -> PayoutInfo:
        """Pay out ``approved_amount`` (default: all of it) and refund the rest."""
        payout = self._pending(payout_id, "approve")
        approved = payout.requested_amount if approved_amount is None else approved_amount
        if (
            isinstance(approved, bool)
            or not isinstance(approved, int)
            or approved <= 0
            or approved > payout.requested_amount
        ):
            raise InvalidAmountError(approved, "approve_payout")

        reference = payout_reference(payout.id)
        self.wallet.release_hold(
            payout.wallet_id,
            approved,
            reference,
            ReleaseDisposition.DEBIT,
            category=LedgerCategory.WITHDRAWAL,
            actor_id=reviewer_id,
        )
        remainder = payout.requested_amount - approved
        if remainder:
            self.wallet.release_hold(
                payout.wallet_id,
                remainder,
                reference,
                ReleaseDisposition.REFUND,
                actor_id=reviewer_id,
                memo="partial payout approval",
            )

        payout.status = PayoutStatus.COMPLETED.value
        payout.approved_amount = approved
        self._mark_reviewed(payout, reviewer_id)

        logger.info(
            "payout_approved",
            extra={
                "payout_id": str(payout.id),
                "approved_amount": approved,
                "refunded": remainder,
                "reviewed_by": str(reviewer_id),
            },
        )
        return PayoutInfo.from_model(payout)

    def reject_payout(self, payout_id: UUID, reviewer_id: UUID, reason: str) -> PayoutInfo:
        payout = self._pending(payout_id, "reject")
        self.wallet.release_hold(
            payout.wallet_id,
            payout.requested_amount,
            payout_reference(payout.id),
            ReleaseDisposition.REFUND,
            actor_id=reviewer_id,
            memo=reason,
        )
        payout.status = PayoutStatus.REJECTED.value
        payout.rejection_reason = reason
        self._mark_reviewed(payout, reviewer_id)

        logger.info(
            "payout_rejected",
            extra={"payout_id": str(payout.id), "reviewed_by": str(reviewer_id), "reason": reason},
        )
        return PayoutInfo.from_model(payout)

    def get_payout(self, payout_id: UUID) -> PayoutInfo:
        payout = self.session.get(PayoutRequestModel, payout_id)
        if payout is None:
            raise PayoutNotFoundError(str(payout_id))
        return PayoutInfo.from_model(payout)

    def payouts_for(self, profile_id: UUID) -> list[PayoutInfo]:
        rows = self.session.execute(
            select(PayoutRequestModel)
            .where(PayoutRequestModel.profile_id == profile_id)
            .order_by(PayoutRequestModel.created_at)
        ).scalars()
        return [PayoutInfo.from_model(p) for p in rows]

    def _pending(self, payout_id: UUID, action: str) -> PayoutRequestModel:
        payout = self.session.execute(
            select(PayoutRequestModel)
            .where(PayoutRequestModel.id == payout_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if payout is None:
            raise PayoutNotFoundError(str(payout_id))
        if payout.status != PayoutStatus.PENDING.value:
            raise PayoutStateError(str(payout_id), payout.status, action)
        return payout

    def _mark_reviewed(self, payout: PayoutRequestModel, reviewer_id: UUID) -> None:
        payout.reviewed_by = reviewer_id
        payout.reviewed_at = self.clock.now_utc()
        payout.updated_by_id = reviewer_id
        self.session.flush()
