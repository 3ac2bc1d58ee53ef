"""
Doer profile, supervisor blacklist, and assignment ORM models.

``DoerProfileModel.active_assignment_count`` is a cached counter that the
assignment resolver increments with a conditional UPDATE in the same
transaction as the AssignmentModel insert, so two projects racing for a
doer's last slot cannot both win.
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from assignx_kernel.db.base import Base, TrackedBase, UUIDString


class DoerNotEligibleReason:
    """Reason codes carried by DoerNotEligibleError."""

    UNAVAILABLE = "unavailable"
    NOT_ACTIVATED = "not_activated"
    BLACKLISTED = "blacklisted"
    AT_CAPACITY = "at_capacity"
    SUBJECT_MISMATCH = "subject_mismatch"


class DoerProfileModel(TrackedBase):
    """Work-facing profile of a doer.  ``profile_id`` is the doer's identity."""

    __tablename__ = "doer_profiles"

    __table_args__ = (
        UniqueConstraint("profile_id", name="uq_doer_profile"),
        CheckConstraint(
            "active_assignment_count >= 0",
            name="ck_doer_active_count_non_negative",
        ),
        CheckConstraint(
            "active_assignment_count <= max_concurrent_projects",
            name="ck_doer_within_capacity",
        ),
        Index("idx_doer_available", "is_available", "is_activated"),
    )

    profile_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    display_name: Mapped[str | None] = mapped_column(String(120), nullable=True)
    is_available: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    is_activated: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    # Subject slugs; empty list means generalist
    subjects: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    max_concurrent_projects: Mapped[int] = mapped_column(Integer, nullable=False, default=3)
    active_assignment_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    average_rating: Mapped[Decimal] = mapped_column(
        Numeric(3, 2),
        nullable=False,
        default=Decimal("0"),
    )
    last_available_at: Mapped[datetime | None] = mapped_column(nullable=True)
    joined_at: Mapped[datetime] = mapped_column(nullable=False)


class SupervisorBlacklistModel(Base):
    """A supervisor's exclusion of a doer from their projects."""

    __tablename__ = "doer_blacklist"

    __table_args__ = (
        UniqueConstraint("supervisor_id", "doer_id", name="uq_blacklist_pair"),
    )

    supervisor_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    doer_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    reason: Mapped[str | None] = mapped_column(String(500), nullable=True)
    created_at: Mapped[datetime] = mapped_column(nullable=False)


class AssignmentModel(Base):
    """
    Binding between a project and a doer.

    ``payout_amount`` is a snapshot of the active quote's doer payout at bind
    time.  ``released_at`` is set once the project settles or otherwise
    leaves active work, freeing the doer's slot.
    """

    __tablename__ = "project_assignments"

    __table_args__ = (
        UniqueConstraint("project_id", name="uq_assignment_project"),
        Index("idx_assignment_doer_active", "doer_id", "released_at"),
        CheckConstraint("payout_amount >= 0", name="ck_assignment_payout_non_negative"),
    )

    project_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("projects.id"),
        nullable=False,
    )
    doer_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    supervisor_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    payout_amount: Mapped[int] = mapped_column(nullable=False)
    assigned_at: Mapped[datetime] = mapped_column(nullable=False)
    released_at: Mapped[datetime | None] = mapped_column(nullable=True)
