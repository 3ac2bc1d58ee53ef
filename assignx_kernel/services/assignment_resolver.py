"""
AssignmentResolver -- binds a paid project to an eligible doer.

Responsibility:
    Decides whether a doer may take a project, picks one automatically when
    the supervisor does not name a candidate, and records the binding as an
    AssignmentModel carrying the doer payout snapshot from the active quote.
    Also frees the doer's slot again once the project leaves active work.
    Lists the open pool a doer may self-accept from.

Architecture position:
    Kernel > Services.  Called by the project state machine inside the
    ``assign`` and ``accept_pool_task`` transitions and by the settlement
    service.  Receives its ranking order as an ``AssignmentPolicy`` value;
    never reads config.

Invariants enforced:
    - Capacity: a doer never holds more live assignments than
      ``max_concurrent_projects``.  The live count is checked after locking
      the profile row and the cached counter is bumped with a conditional
      UPDATE (``... WHERE active_assignment_count < max``) in the caller's
      transaction, so two projects racing for the last slot cannot both
      bind.
    - One assignment per project (unique constraint on project_id).

Failure modes:
    - DoerNotFoundError: the named candidate has no profile.
    - DoerNotEligibleError(reason): the named candidate fails a check.
      Reasons are checked in the order unavailable, not_activated,
      blacklisted, at_capacity, subject_mismatch.
    - NoEligibleDoerError: auto-selection found nobody.
    - QuoteNotFoundError: the project has no active quote to snapshot.

Audit relevance:
    ``doer_assigned`` and ``doer_released`` are logged with the project and
    doer ids and the resulting active count.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from assignx_kernel.domain.clock import Clock
from assignx_kernel.domain.dtos import (
    AssignmentInfo,
    AssignmentPolicy,
    DoerProfileInfo,
    ProjectInfo,
    RankingKey,
)
from assignx_kernel.domain.project_workflow import ProjectStatus
from assignx_kernel.exceptions import (
    DoerNotEligibleError,
    DoerNotFoundError,
    NoEligibleDoerError,
    ProjectNotFoundError,
    QuoteNotFoundError,
)
from assignx_kernel.logging_config import get_logger
from assignx_kernel.models.assignment import (
    AssignmentModel,
    DoerNotEligibleReason,
    DoerProfileModel,
    SupervisorBlacklistModel,
)
from assignx_kernel.models.project import ProjectModel
from assignx_kernel.models.quote import QuoteModel
from assignx_kernel.services.base import BaseService

logger = get_logger("services.assignment")


class AssignmentResolver(BaseService[AssignmentModel]):
    """
    Eligibility, ranking and binding of doers.

    Contract:
        ``resolve_assignment`` either returns the new AssignmentInfo with
        the doer's counter already incremented, or raises and leaves no
        trace in the session beyond what the caller rolls back.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        policy: AssignmentPolicy | None = None,
    ):
        super().__init__(session, clock)
        self.policy = policy or AssignmentPolicy()

    # -------------------------------------------------------------------------
    # Doer profiles
    # -------------------------------------------------------------------------

    def register_doer(
        self,
        profile_id: UUID,
        *,
        subjects: list[str] | tuple[str, ...] = (),
        max_concurrent_projects: int = 3,
        is_available: bool = True,
        is_activated: bool = True,
        average_rating: Decimal | str = Decimal("0"),
        display_name: str | None = None,
        joined_at: datetime | None = None,
        actor_id: UUID | None = None,
    ) -> DoerProfileInfo:
        """Create the work-facing profile for an onboarded doer."""
        now = self.clock.now_utc()
        profile = DoerProfileModel(
            profile_id=profile_id,
            display_name=display_name,
            subjects=list(subjects),
            max_concurrent_projects=max_concurrent_projects,
            active_assignment_count=0,
            is_available=is_available,
            is_activated=is_activated,
            average_rating=Decimal(average_rating),
            joined_at=joined_at or now,
            last_available_at=now if is_available else None,
            created_by_id=actor_id or profile_id,
        )
        self.session.add(profile)
        self.session.flush()
        logger.info(
            "doer_registered",
            extra={
                "doer_id": str(profile_id),
                "subjects": list(subjects),
                "max_concurrent_projects": max_concurrent_projects,
            },
        )
        return DoerProfileInfo.from_model(profile)

    def set_availability(self, doer_id: UUID, is_available: bool) -> DoerProfileInfo:
        profile = self._profile(doer_id)
        profile.is_available = is_available
        if is_available:
            profile.last_available_at = self.clock.now_utc()
        self.session.flush()
        return DoerProfileInfo.from_model(profile)

    def blacklist_doer(
        self, supervisor_id: UUID, doer_id: UUID, reason: str | None = None
    ) -> None:
        """Exclude ``doer_id`` from ``supervisor_id``'s projects."""
        if self._is_blacklisted(supervisor_id, doer_id):
            return
        savepoint = self.session.begin_nested()
        try:
            self.session.add(
                SupervisorBlacklistModel(
                    supervisor_id=supervisor_id,
                    doer_id=doer_id,
                    reason=reason,
                    created_at=self.clock.now_utc(),
                )
            )
            self.session.flush()
            savepoint.commit()
        except IntegrityError:
            savepoint.rollback()
            return
        logger.info(
            "doer_blacklisted",
            extra={"supervisor_id": str(supervisor_id), "doer_id": str(doer_id)},
        )

    def get_profile(self, doer_id: UUID) -> DoerProfileInfo:
        return DoerProfileInfo.from_model(self._profile(doer_id))

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def active_assignments_for_doer(self, doer_id: UUID) -> list[AssignmentInfo]:
        """Live (unreleased) assignments held by ``doer_id``."""
        rows = self.session.execute(
            select(AssignmentModel)
            .where(
                AssignmentModel.doer_id == doer_id,
                AssignmentModel.released_at.is_(None),
            )
            .order_by(AssignmentModel.assigned_at)
        ).scalars()
        return [AssignmentInfo.from_model(a) for a in rows]

    def check_eligibility(self, project_id: UUID, doer_id: UUID) -> str | None:
        """Return the first failing reason for ``doer_id``, or None if eligible."""
        project = self.session.get(ProjectModel, project_id)
        if project is None:
            raise ProjectNotFoundError(str(project_id))
        return self._ineligibility(project, self._profile(doer_id))

    def open_pool(self, doer_id: UUID) -> list[ProjectInfo]:
        """Paid, unassigned projects ``doer_id`` could accept, earliest deadline first."""
        profile = self._profile(doer_id)
        rows = self.session.execute(
            select(ProjectModel)
            .where(
                ProjectModel.status == ProjectStatus.PAID.value,
                ProjectModel.doer_id.is_(None),
            )
            .order_by(ProjectModel.deadline, ProjectModel.project_number)
        ).scalars().all()
        return [
            ProjectInfo.from_model(p) for p in rows if self._ineligibility(p, profile) is None
        ]

    # -------------------------------------------------------------------------
    # Binding
    # -------------------------------------------------------------------------

    def resolve_assignment(
        self,
        project_id: UUID,
        candidate_doer_id: UUID | None = None,
    ) -> AssignmentInfo:
        """Bind ``project_id`` to the named candidate or to the best-ranked doer."""
        project = self.session.get(ProjectModel, project_id)
        if project is None:
            raise ProjectNotFoundError(str(project_id))
        payout = self._payout_snapshot(project)

        if candidate_doer_id is not None:
            profile = self._profile(candidate_doer_id)
            reason = self._ineligibility(project, profile)
            if reason is not None:
                logger.info(
                    "doer_not_eligible",
                    extra={
                        "project_id": str(project_id),
                        "doer_id": str(candidate_doer_id),
                        "reason": reason,
                    },
                )
                raise DoerNotEligibleError(str(candidate_doer_id), reason)
            return self._bind(project, profile.profile_id, payout)

        for profile in self._ranked_candidates(project):
            try:
                return self._bind(project, profile.profile_id, payout)
            except DoerNotEligibleError:
                # Lost the slot to a concurrent binding; try the next doer
                continue

        logger.warning(
            "no_eligible_doer",
            extra={"project_id": str(project_id), "subject": project.subject},
        )
        raise NoEligibleDoerError(str(project_id), project.subject)

    def release_assignment(self, project_id: UUID) -> AssignmentInfo | None:
        """Free the doer's slot.  Returns None when nothing was bound."""
        assignment = self.session.execute(
            select(AssignmentModel).where(AssignmentModel.project_id == project_id)
        ).scalar_one_or_none()
        if assignment is None:
            return None
        if assignment.released_at is not None:
            return AssignmentInfo.from_model(assignment)

        assignment.released_at = self.clock.now_utc()
        self.session.execute(
            update(DoerProfileModel)
            .where(
                DoerProfileModel.profile_id == assignment.doer_id,
                DoerProfileModel.active_assignment_count > 0,
            )
            .values(active_assignment_count=DoerProfileModel.active_assignment_count - 1)
            .execution_options(synchronize_session=False)
        )
        self.session.flush()

        logger.info(
            "doer_released",
            extra={"project_id": str(project_id), "doer_id": str(assignment.doer_id)},
        )
        return AssignmentInfo.from_model(assignment)

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _profile(self, doer_id: UUID, lock: bool = False) -> DoerProfileModel:
        stmt = (
            select(DoerProfileModel)
            .where(DoerProfileModel.profile_id == doer_id)
            .execution_options(populate_existing=True)
        )
        if lock:
            stmt = stmt.with_for_update()
        profile = self.session.execute(stmt).scalar_one_or_none()
        if profile is None:
            raise DoerNotFoundError(str(doer_id))
        return profile

    def _is_blacklisted(self, supervisor_id: UUID | None, doer_id: UUID) -> bool:
        if supervisor_id is None:
            return False
        return (
            self.session.execute(
                select(SupervisorBlacklistModel.id).where(
                    SupervisorBlacklistModel.supervisor_id == supervisor_id,
                    SupervisorBlacklistModel.doer_id == doer_id,
                )
            ).first()
            is not None
        )

    def _live_count(self, doer_id: UUID) -> int:
        return int(
            self.session.execute(
                select(func.count(AssignmentModel.id)).where(
                    AssignmentModel.doer_id == doer_id,
                    AssignmentModel.released_at.is_(None),
                )
            ).scalar_one()
        )

    def _ineligibility(self, project: ProjectModel, profile: DoerProfileModel) -> str | None:
        if not profile.is_available:
            return DoerNotEligibleReason.UNAVAILABLE
        if not profile.is_activated:
            return DoerNotEligibleReason.NOT_ACTIVATED
        if self._is_blacklisted(project.supervisor_id, profile.profile_id):
            return DoerNotEligibleReason.BLACKLISTED
        if self._live_count(profile.profile_id) >= profile.max_concurrent_projects:
            return DoerNotEligibleReason.AT_CAPACITY
        subjects = profile.subjects or []
        if subjects and project.subject and project.subject not in subjects:
            return DoerNotEligibleReason.SUBJECT_MISMATCH
        return None

    def _ranked_candidates(self, project: ProjectModel) -> list[DoerProfileModel]:
        pool = self.session.execute(
            select(DoerProfileModel).where(
                DoerProfileModel.is_available.is_(True),
                DoerProfileModel.is_activated.is_(True),
            )
        ).scalars().all()
        eligible = [p for p in pool if self._ineligibility(project, p) is None]
        eligible.sort(key=self._sort_key)
        return eligible

    def _sort_key(self, profile: DoerProfileModel) -> tuple:
        parts: list = []
        for key in self.policy.ranking:
            key = RankingKey(key)
            if key == RankingKey.RATING_DESC:
                parts.append(-Decimal(profile.average_rating))
            elif key == RankingKey.AVAILABILITY_RECENCY:
                seen = profile.last_available_at
                parts.append(-seen.timestamp() if seen is not None else 0.0)
            elif key == RankingKey.LOAD_ASC:
                parts.append(profile.active_assignment_count)
        parts.append(profile.joined_at.timestamp())
        parts.append(str(profile.profile_id))
        return tuple(parts)

    def _payout_snapshot(self, project: ProjectModel) -> int:
        if project.active_quote_id is None:
            raise QuoteNotFoundError(str(project.id))
        quote = self.session.get(QuoteModel, project.active_quote_id)
        if quote is None:
            raise QuoteNotFoundError(str(project.id))
        return quote.doer_payout

    def _bind(self, project: ProjectModel, doer_id: UUID, payout: int) -> AssignmentInfo:
        profile = self._profile(doer_id, lock=True)
        if self._live_count(doer_id) >= profile.max_concurrent_projects:
            raise DoerNotEligibleError(str(doer_id), DoerNotEligibleReason.AT_CAPACITY)

        result = self.session.execute(
            update(DoerProfileModel)
            .where(
                DoerProfileModel.profile_id == doer_id,
                DoerProfileModel.active_assignment_count
                < DoerProfileModel.max_concurrent_projects,
            )
            .values(active_assignment_count=DoerProfileModel.active_assignment_count + 1)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise DoerNotEligibleError(str(doer_id), DoerNotEligibleReason.AT_CAPACITY)

        assignment = AssignmentModel(
            project_id=project.id,
            doer_id=doer_id,
            supervisor_id=project.supervisor_id,
            payout_amount=payout,
            assigned_at=self.clock.now_utc(),
        )
        self.session.add(assignment)
        self.session.flush()
        self.session.refresh(profile)

        logger.info(
            "doer_assigned",
            extra={
                "project_id": str(project.id),
                "doer_id": str(doer_id),
                "payout_amount": payout,
                "active_assignment_count": profile.active_assignment_count,
            },
        )
        return AssignmentInfo.from_model(assignment)
