"""Payout request ORM model: a doer or supervisor withdrawing earnings."""

from datetime import datetime
from enum import Enum
from uuid import UUID

from sqlalchemy import CheckConstraint, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from assignx_kernel.db.base import TrackedBase, UUIDString


class PayoutStatus(str, Enum):
    """PENDING -> COMPLETED | REJECTED. No other transitions."""

    PENDING = "pending"
    COMPLETED = "completed"
    REJECTED = "rejected"


class PayoutRequestModel(TrackedBase):
    """
    A withdrawal request.

    The requested amount is held on the wallet while PENDING.  Approval
    converts the approved part of the hold into a withdrawal and refunds
    the rest; rejection refunds all of it.
    """

    __tablename__ = "payout_requests"

    __table_args__ = (
        Index("idx_payout_profile", "profile_id"),
        Index("idx_payout_status", "status"),
        CheckConstraint("requested_amount > 0", name="ck_payout_requested_positive"),
        CheckConstraint(
            "approved_amount IS NULL OR (approved_amount > 0 AND approved_amount <= requested_amount)",
            name="ck_payout_approved_within_requested",
        ),
    )

    profile_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    wallet_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("wallets.id"),
        nullable=False,
    )
    requester_type: Mapped[str] = mapped_column(String(20), nullable=False)
    requested_amount: Mapped[int] = mapped_column(nullable=False)
    approved_amount: Mapped[int | None] = mapped_column(nullable=True)
    status: Mapped[PayoutStatus] = mapped_column(
        String(20),
        nullable=False,
        default=PayoutStatus.PENDING.value,
    )
    reviewed_by: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    reviewed_at: Mapped[datetime | None] = mapped_column(nullable=True)
    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
