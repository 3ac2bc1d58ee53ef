"""
Wallet and ledger ORM models.

WalletModel caches per-party balances; LedgerEntryModel is the append-only
source of truth.  Every WalletService operation writes one ledger entry and
the matching balance change in the same flush.

Sign convention (per entry):

    kind     disposition  amount  held_delta
    credit   -            +a      0
    debit    -            -a      0
    hold     -            0       +a
    release  refund       0       -a
    release  debit        -a      -a

so ``sum(amount) == available + held`` and ``sum(held_delta) == held``.
"""

from datetime import datetime
from enum import Enum
from uuid import UUID

from sqlalchemy import CheckConstraint, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from assignx_kernel.db.base import Base, TrackedBase, UUIDString

# Owner id of the platform fee pool wallet.
PLATFORM_OWNER_ID = UUID("00000000-0000-0000-0000-00000000a551")


class WalletOwnerType(str, Enum):
    CLIENT = "client"
    DOER = "doer"
    SUPERVISOR = "supervisor"
    PLATFORM = "platform"


class LedgerEntryKind(str, Enum):
    CREDIT = "credit"
    DEBIT = "debit"
    HOLD = "hold"
    RELEASE = "release"


class ReleaseDisposition(str, Enum):
    """What happens to held funds on release."""

    REFUND = "refund"
    DEBIT = "debit"


class LedgerCategory(str, Enum):
    """Business meaning of a ledger entry, for statements and reporting."""

    TOP_UP = "top_up"
    PROJECT_PAYMENT = "project_payment"
    PROJECT_EARNING = "project_earning"
    COMMISSION = "commission"
    PLATFORM_FEE = "platform_fee"
    REFUND = "refund"
    WITHDRAWAL = "withdrawal"
    ADJUSTMENT = "adjustment"


class WalletModel(TrackedBase):
    """
    Cached balances for one party.

    Contract:
        Mutated only by WalletService while the row is locked
        (``SELECT ... FOR UPDATE``).  ``entry_count`` is the per-wallet ledger
        sequence and advances by exactly one per appended entry.
    """

    __tablename__ = "wallets"

    __table_args__ = (
        UniqueConstraint("owner_id", name="uq_wallet_owner"),
        CheckConstraint("available >= 0", name="ck_wallet_available_non_negative"),
        CheckConstraint("held >= 0", name="ck_wallet_held_non_negative"),
    )

    owner_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    owner_type: Mapped[WalletOwnerType] = mapped_column(String(20), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="INR")

    available: Mapped[int] = mapped_column(nullable=False, default=0)
    held: Mapped[int] = mapped_column(nullable=False, default=0)
    total_credited: Mapped[int] = mapped_column(nullable=False, default=0)
    total_debited: Mapped[int] = mapped_column(nullable=False, default=0)
    total_withdrawn: Mapped[int] = mapped_column(nullable=False, default=0)

    entry_count: Mapped[int] = mapped_column(nullable=False, default=0)

    def __repr__(self) -> str:
        return f"<Wallet {self.owner_type}:{self.owner_id} avail={self.available} held={self.held}>"


class LedgerEntryModel(Base):
    """
    One money movement.  Append-only.

    Guarantees:
        - idempotency_key is unique: the same (wallet, kind, disposition,
          reference) is recorded at most once.
        - (wallet_id, seq) is unique and gap-free per wallet.
        - balance_after/held_after are the wallet buckets after this entry.
    """

    __tablename__ = "ledger_entries"

    __table_args__ = (
        UniqueConstraint("idempotency_key", name="uq_ledger_idempotency"),
        UniqueConstraint("wallet_id", "seq", name="uq_ledger_wallet_seq"),
        Index("idx_ledger_wallet", "wallet_id"),
        Index("idx_ledger_hold_reference", "wallet_id", "hold_reference"),
        Index("idx_ledger_reference", "reference"),
    )

    wallet_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("wallets.id"),
        nullable=False,
    )
    seq: Mapped[int] = mapped_column(nullable=False)

    kind: Mapped[LedgerEntryKind] = mapped_column(String(10), nullable=False)
    disposition: Mapped[ReleaseDisposition | None] = mapped_column(String(10), nullable=True)
    category: Mapped[LedgerCategory] = mapped_column(String(20), nullable=False)

    # Signed effect on available + held
    amount: Mapped[int] = mapped_column(nullable=False)
    # Signed effect on held
    held_delta: Mapped[int] = mapped_column(nullable=False)
    balance_after: Mapped[int] = mapped_column(nullable=False)
    held_after: Mapped[int] = mapped_column(nullable=False)

    reference: Mapped[str] = mapped_column(String(200), nullable=False)
    # Set on hold and release entries; groups a hold with its releases
    hold_reference: Mapped[str | None] = mapped_column(String(200), nullable=True)

    idempotency_key: Mapped[str] = mapped_column(String(400), nullable=False)
    recorded_at: Mapped[datetime] = mapped_column(nullable=False)
    actor_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    memo: Mapped[str | None] = mapped_column(String(500), nullable=True)
