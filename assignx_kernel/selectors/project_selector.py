"""
Module: assignx_kernel.selectors.project_selector
Responsibility: Read-only project queries: load by id or number, active
    quote, status history, revisions, and the delivered-and-overdue scan
    used by the auto-approval task.
Architecture position: Kernel > Selectors.  Returns DTOs only.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from sqlalchemy import select

from assignx_kernel.domain.dtos import AssignmentInfo, ProjectInfo, QuoteInfo, RevisionInfo
from assignx_kernel.domain.project_workflow import ProjectStatus
from assignx_kernel.exceptions import ProjectNotFoundError, QuoteNotFoundError
from assignx_kernel.models.assignment import AssignmentModel
from assignx_kernel.models.project import ProjectModel, ProjectStatusHistoryModel
from assignx_kernel.models.quote import QuoteModel
from assignx_kernel.models.revision import RevisionModel
from assignx_kernel.selectors.base import BaseSelector


@dataclass(frozen=True)
class StatusHistoryInfo:
    project_id: UUID
    version: int
    from_status: str
    to_status: str
    event: str
    actor_id: UUID
    occurred_at: datetime
    notes: str | None = None


class ProjectSelector(BaseSelector[ProjectModel]):
    """Read-side queries over projects and their child records."""

    def get(self, project_id: UUID) -> ProjectInfo:
        """loadProject: fresh read of the persisted row."""
        model = self.session.execute(
            select(ProjectModel)
            .where(ProjectModel.id == project_id)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if model is None:
            raise ProjectNotFoundError(str(project_id))
        return ProjectInfo.from_model(model)

    def get_by_number(self, project_number: str) -> ProjectInfo:
        model = self.session.execute(
            select(ProjectModel).where(ProjectModel.project_number == project_number)
        ).scalar_one_or_none()
        if model is None:
            raise ProjectNotFoundError(project_number)
        return ProjectInfo.from_model(model)

    def active_quote(self, project_id: UUID) -> QuoteInfo:
        project = self.get(project_id)
        if project.active_quote_id is None:
            raise QuoteNotFoundError(str(project_id))
        quote = self.session.get(QuoteModel, project.active_quote_id)
        if quote is None:
            raise QuoteNotFoundError(str(project_id))
        return QuoteInfo.from_model(quote)

    def quotes(self, project_id: UUID) -> list[QuoteInfo]:
        rows = self.session.execute(
            select(QuoteModel)
            .where(QuoteModel.project_id == project_id)
            .order_by(QuoteModel.quote_number)
        ).scalars()
        return [QuoteInfo.from_model(q) for q in rows]

    def status_history(self, project_id: UUID) -> list[StatusHistoryInfo]:
        rows = self.session.execute(
            select(ProjectStatusHistoryModel)
            .where(ProjectStatusHistoryModel.project_id == project_id)
            .order_by(ProjectStatusHistoryModel.version)
        ).scalars()
        return [
            StatusHistoryInfo(
                project_id=r.project_id,
                version=r.version,
                from_status=r.from_status,
                to_status=r.to_status,
                event=r.event,
                actor_id=r.actor_id,
                occurred_at=r.occurred_at,
                notes=r.notes,
            )
            for r in rows
        ]

    def revisions(self, project_id: UUID) -> list[RevisionInfo]:
        rows = self.session.execute(
            select(RevisionModel)
            .where(RevisionModel.project_id == project_id)
            .order_by(RevisionModel.revision_number)
        ).scalars()
        return [RevisionInfo.from_model(r) for r in rows]

    def assignment(self, project_id: UUID) -> AssignmentInfo | None:
        model = self.session.execute(
            select(AssignmentModel).where(AssignmentModel.project_id == project_id)
        ).scalar_one_or_none()
        return AssignmentInfo.from_model(model) if model is not None else None

    def by_status(self, status: ProjectStatus) -> list[ProjectInfo]:
        rows = self.session.execute(
            select(ProjectModel)
            .where(ProjectModel.status == ProjectStatus(status).value)
            .order_by(ProjectModel.project_number)
        ).scalars()
        return [ProjectInfo.from_model(p) for p in rows]

    def due_for_auto_approval(self, now: datetime, limit: int | None = None) -> list[UUID]:
        """Delivered projects whose auto-approval deadline has passed."""
        stmt = (
            select(ProjectModel.id)
            .where(
                ProjectModel.status == ProjectStatus.DELIVERED.value,
                ProjectModel.auto_approve_at.is_not(None),
                ProjectModel.auto_approve_at <= now,
            )
            .order_by(ProjectModel.auto_approve_at, ProjectModel.id)
        )
        if limit is not None:
            stmt = stmt.limit(limit)
        return list(self.session.execute(stmt).scalars())
