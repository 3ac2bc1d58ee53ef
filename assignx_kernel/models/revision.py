"""Revision ORM model: one QC rejection cycle."""

from datetime import datetime
from uuid import UUID

from sqlalchemy import ForeignKey, Index, Text, UniqueConstraint, text
from sqlalchemy.orm import Mapped, mapped_column

from assignx_kernel.db.base import Base, UUIDString


class RevisionModel(Base):
    """
    A QC rejection awaiting (or having received) a resubmission.

    Guarantees:
        - (project_id, revision_number) is unique; numbers start at 1 and
          increase by one per project.
        - At most one row per project has ``resolved_at IS NULL`` (partial
          unique index on PostgreSQL and SQLite).
    """

    __tablename__ = "project_revisions"

    __table_args__ = (
        UniqueConstraint("project_id", "revision_number", name="uq_revision_number"),
        Index(
            "uq_revision_one_open",
            "project_id",
            unique=True,
            postgresql_where=text("resolved_at IS NULL"),
            sqlite_where=text("resolved_at IS NULL"),
        ),
    )

    project_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("projects.id"),
        nullable=False,
    )
    revision_number: Mapped[int] = mapped_column(nullable=False)
    requested_by: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    feedback: Mapped[str] = mapped_column(Text, nullable=False)
    opened_at: Mapped[datetime] = mapped_column(nullable=False)
    resolved_at: Mapped[datetime | None] = mapped_column(nullable=True)
    resolved_by: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    response_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
