"""Quote ORM model: an immutable priced offer for one project."""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import CheckConstraint, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from assignx_kernel.db.base import Base, UUIDString


class QuoteModel(Base):
    """
    A priced offer produced by the quote calculator.

    Contract:
        Written once by the state machine on the ``quote`` event and never
        updated or deleted (ORM listener).  Re-quoting inserts a new row with
        the next ``quote_number``; the project's ``active_quote_id`` moves.

    Guarantees:
        doer_payout + supervisor_commission + platform_fee == client_price
        (check constraint).
    """

    __tablename__ = "project_quotes"

    __table_args__ = (
        UniqueConstraint("project_id", "quote_number", name="uq_quote_number"),
        Index("idx_quote_project", "project_id"),
        CheckConstraint(
            "doer_payout + supervisor_commission + platform_fee = client_price",
            name="ck_quote_split_exact",
        ),
        CheckConstraint(
            "doer_payout >= 0 AND supervisor_commission >= 0 AND platform_fee >= 0",
            name="ck_quote_non_negative",
        ),
    )

    project_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("projects.id"),
        nullable=False,
    )
    quote_number: Mapped[int] = mapped_column(nullable=False)

    unit: Mapped[str] = mapped_column(String(10), nullable=False)
    unit_count: Mapped[int] = mapped_column(nullable=False)
    rate_per_unit: Mapped[Decimal] = mapped_column(nullable=False)
    base_price: Mapped[Decimal] = mapped_column(nullable=False)
    urgency_tier: Mapped[str] = mapped_column(String(20), nullable=False)
    urgency_multiplier: Mapped[Decimal] = mapped_column(nullable=False)
    complexity: Mapped[str] = mapped_column(String(20), nullable=False)
    complexity_multiplier: Mapped[Decimal] = mapped_column(nullable=False)
    commission_rate: Mapped[Decimal] = mapped_column(nullable=False)
    platform_fee_rate: Mapped[Decimal] = mapped_column(nullable=False)

    client_price: Mapped[int] = mapped_column(nullable=False)
    doer_payout: Mapped[int] = mapped_column(nullable=False)
    supervisor_commission: Mapped[int] = mapped_column(nullable=False)
    platform_fee: Mapped[int] = mapped_column(nullable=False)

    quoted_by: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    created_at: Mapped[datetime] = mapped_column(nullable=False)
