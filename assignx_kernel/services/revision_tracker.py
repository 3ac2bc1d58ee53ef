"""
RevisionTracker -- bounded QC rejection cycles.

Responsibility:
    Records each QC rejection as an indexed Revision keyed by
    (project_id, revision_number), closes it on resubmission, and counts
    cycles for the state machine's revision-cap guard.

Architecture position:
    Kernel > Services.  Called by the project state machine inside the
    ``qc_reject`` and ``resubmit`` transitions.

Invariants enforced:
    - Revision numbers start at 1 and increase by one per project.
    - At most one open (unresolved) revision per project: checked here and
      backed by a partial unique index.

Failure modes:
    - RevisionAlreadyOpenError: open requested while one is unresolved.
    - NoOpenRevisionError: close requested with nothing open.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import func, select

from assignx_kernel.domain.dtos import RevisionInfo
from assignx_kernel.exceptions import NoOpenRevisionError, RevisionAlreadyOpenError
from assignx_kernel.logging_config import get_logger
from assignx_kernel.models.revision import RevisionModel
from assignx_kernel.services.base import BaseService

logger = get_logger("services.revision")


class RevisionTracker(BaseService[RevisionModel]):

    def _open(self, project_id: UUID) -> RevisionModel | None:
        return self.session.execute(
            select(RevisionModel)
            .where(
                RevisionModel.project_id == project_id,
                RevisionModel.resolved_at.is_(None),
            )
            .order_by(RevisionModel.revision_number.desc())
        ).scalars().first()

    def count_revisions(self, project_id: UUID) -> int:
        """Number of revision cycles opened so far (open and closed)."""
        return int(
            self.session.execute(
                select(func.count(RevisionModel.id)).where(RevisionModel.project_id == project_id)
            ).scalar_one()
        )

    def open_revision_for(self, project_id: UUID) -> RevisionInfo | None:
        model = self._open(project_id)
        return RevisionInfo.from_model(model) if model is not None else None

    def list_revisions(self, project_id: UUID) -> list[RevisionInfo]:
        rows = self.session.execute(
            select(RevisionModel)
            .where(RevisionModel.project_id == project_id)
            .order_by(RevisionModel.revision_number)
        ).scalars()
        return [RevisionInfo.from_model(r) for r in rows]

    def open_revision(self, project_id: UUID, requested_by: UUID, feedback: str) -> RevisionInfo:
        """Open the next revision for ``project_id``."""
        existing = self._open(project_id)
        if existing is not None:
            raise RevisionAlreadyOpenError(str(project_id), existing.revision_number)

        last = self.session.execute(
            select(func.max(RevisionModel.revision_number)).where(
                RevisionModel.project_id == project_id
            )
        ).scalar_one()
        revision = RevisionModel(
            project_id=project_id,
            revision_number=(last or 0) + 1,
            requested_by=requested_by,
            feedback=feedback,
            opened_at=self.clock.now_utc(),
        )
        self.session.add(revision)
        self.session.flush()

        logger.info(
            "revision_opened",
            extra={
                "project_id": str(project_id),
                "revision_number": revision.revision_number,
                "requested_by": str(requested_by),
            },
        )
        return RevisionInfo.from_model(revision)

    def close_revision(
        self,
        project_id: UUID,
        resolved_by: UUID | None = None,
        response_notes: str | None = None,
    ) -> RevisionInfo:
        """Resolve the most recent open revision."""
        revision = self._open(project_id)
        if revision is None:
            raise NoOpenRevisionError(str(project_id))

        revision.resolved_at = self.clock.now_utc()
        revision.resolved_by = resolved_by
        revision.response_notes = response_notes
        self.session.flush()

        logger.info(
            "revision_closed",
            extra={
                "project_id": str(project_id),
                "revision_number": revision.revision_number,
            },
        )
        return RevisionInfo.from_model(revision)
