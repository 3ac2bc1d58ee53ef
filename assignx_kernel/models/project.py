"""
Project and status-history ORM models.

A project row is the single source of truth for a work request's status.
It is mutated only by ProjectStateMachine, which advances ``version`` with a
compare-and-set on every transition.  ProjectStatusHistoryModel records one
append-only row per applied transition.
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import (
    CheckConstraint,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from assignx_kernel.db.base import Base, TrackedBase, UTCDateTime, UUIDString
from assignx_kernel.domain.project_workflow import ProjectStatus

# Monetary columns frozen once payment is recorded.
PROJECT_MONEY_FIELDS: tuple[str, ...] = (
    "quoted_amount",
    "doer_payout",
    "supervisor_commission",
    "platform_fee",
    "active_quote_id",
    "currency",
)


class ProjectModel(TrackedBase):
    """
    A unit of academic work moving through the lifecycle.

    Contract:
        ``status`` and ``version`` change only through the state machine's
        compare-and-set UPDATE.  Side-effect fields (supervisor_id, amounts,
        timestamps) are written in the same transaction.

    Guarantees:
        - project_number is unique and human readable (``AX-00001``).
        - Rows are never deleted (ORM listener).
        - PROJECT_MONEY_FIELDS are frozen once paid_at is set (ORM listener).
    """

    __tablename__ = "projects"

    __table_args__ = (
        UniqueConstraint("project_number", name="uq_project_number"),
        Index("idx_project_status", "status"),
        Index("idx_project_auto_approve", "status", "auto_approve_at"),
        Index("idx_project_client", "client_id"),
        Index("idx_project_doer", "doer_id"),
        CheckConstraint("version >= 1", name="ck_project_version_positive"),
        CheckConstraint(
            "quoted_amount IS NULL OR quoted_amount > 0",
            name="ck_project_quoted_amount_positive",
        ),
        CheckConstraint(
            "(word_count IS NULL) <> (page_count IS NULL)",
            name="ck_project_single_unit",
        ),
    )

    project_number: Mapped[str] = mapped_column(String(20), nullable=False)

    client_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    supervisor_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    doer_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    title: Mapped[str] = mapped_column(String(255), nullable=False)
    subject: Mapped[str | None] = mapped_column(String(100), nullable=True)
    word_count: Mapped[int | None] = mapped_column(Integer, nullable=True)
    page_count: Mapped[int | None] = mapped_column(Integer, nullable=True)
    deadline: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="INR")

    status: Mapped[ProjectStatus] = mapped_column(
        String(30),
        nullable=False,
        default=ProjectStatus.SUBMITTED.value,
    )
    version: Mapped[int] = mapped_column(nullable=False, default=1)

    active_quote_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    quoted_amount: Mapped[int | None] = mapped_column(nullable=True)
    doer_payout: Mapped[int | None] = mapped_column(nullable=True)
    supervisor_commission: Mapped[int | None] = mapped_column(nullable=True)
    platform_fee: Mapped[int | None] = mapped_column(nullable=True)

    payment_reference: Mapped[str | None] = mapped_column(String(100), nullable=True)
    latest_deliverable_ref: Mapped[str | None] = mapped_column(String(500), nullable=True)

    paid_at: Mapped[datetime | None] = mapped_column(nullable=True)
    doer_assigned_at: Mapped[datetime | None] = mapped_column(nullable=True)
    delivered_at: Mapped[datetime | None] = mapped_column(nullable=True)
    auto_approve_at: Mapped[datetime | None] = mapped_column(nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(nullable=True)
    cancelled_at: Mapped[datetime | None] = mapped_column(nullable=True)
    cancellation_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Settlement-completed marker
    settled_at: Mapped[datetime | None] = mapped_column(nullable=True)

    def __repr__(self) -> str:
        return f"<Project {self.project_number} {self.status} v{self.version}>"


class ProjectStatusHistoryModel(Base):
    """
    Append-only record of an applied transition.

    One row per status change, keyed by the version the change produced, so
    a project's history is totally ordered and gap-free.
    """

    __tablename__ = "project_status_history"

    __table_args__ = (
        UniqueConstraint("project_id", "version", name="uq_status_history_version"),
        Index("idx_status_history_project", "project_id"),
    )

    project_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("projects.id"),
        nullable=False,
    )
    from_status: Mapped[str] = mapped_column(String(30), nullable=False)
    to_status: Mapped[str] = mapped_column(String(30), nullable=False)
    event: Mapped[str] = mapped_column(String(30), nullable=False)
    version: Mapped[int] = mapped_column(nullable=False)
    actor_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    occurred_at: Mapped[datetime] = mapped_column(nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
