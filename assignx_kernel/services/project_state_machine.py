"""
ProjectStateMachine -- the single writer of project status.

Responsibility:
    Applies lifecycle events to projects.  For every event it looks up the
    (status, event) pair in ``PROJECT_WORKFLOW``, evaluates the guard,
    advances status and version with a compare-and-set UPDATE, runs the
    transition's side effects (quote persistence, payment hold, doer
    binding, revision bookkeeping, settlement, refund), appends a status
    history row and re-checks the project invariants.

Architecture position:
    Kernel > Services -- imperative shell around the pure lifecycle table
    in ``assignx_kernel.domain.project_workflow``.  Thresholds arrive as
    ``LifecyclePolicy`` / ``PricingPolicy`` / ``AssignmentPolicy`` values.
    Transaction boundaries belong to the caller.

Invariants enforced:
    - Serialized transitions: ``UPDATE projects SET status, version+1
      WHERE id AND version AND status``.  Zero rows affected means another
      writer won; the loser gets ConcurrentModificationError and nothing
      of its transition survives the caller's rollback.
    - doer_id is set only in doer-bound statuses; quoted_amount is unset
      in submitted/analyzing and set everywhere past quoting except after
      a pre-quote cancellation; paid statuses carry paid_at.
    - ``qc_rejected -> in_revision`` is applied in the same unit of work as
      ``qc_reject``; both steps are recorded in the history.

Failure modes:
    - InvalidStateTransitionError: no (status, event) entry, or an
      automatic event requested from outside.  No side effects.
    - GuardNotSatisfiedError / RevisionLimitExceededError /
      PaymentAmountMismatchError / DoerNotEligibleError: guard failures.
    - ConcurrentModificationError: stale ``expected_version`` or lost CAS.
    - ProjectInvariantViolationError: post-transition check failed.

Audit relevance:
    ``project_transition_applied`` is logged for every step with from/to
    status, event, actor and resulting version, and the same facts land in
    ``project_status_history``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Callable
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from assignx_kernel.domain.clock import Clock
from assignx_kernel.domain.dtos import (
    AssignmentInfo,
    AssignmentPolicy,
    LifecyclePolicy,
    NotificationIntent,
    NotificationKind,
    PaymentConfirmation,
    PricingPolicy,
    ProjectInfo,
    QuoteInfo,
    RevisionInfo,
    SettlementResult,
    TransitionResult,
)
from assignx_kernel.domain.project_workflow import (
    AMOUNT_MATCHES_QUOTE,
    AUTO_APPROVE_WINDOW_ELAPSED,
    CLIENT_OWNS,
    DELIVERABLE_ATTACHED,
    DOER_BOUND_STATES,
    DOER_OWNS,
    DOER_SELF_ASSIGNS,
    ELIGIBLE_DOER,
    FEEDBACK_WITHIN_CAP,
    PROJECT_WORKFLOW,
    SUPERVISOR_CLAIMS,
    SUPERVISOR_OWNS,
    UNQUOTED_STATES,
    ProjectEvent,
    ProjectStatus,
)
from assignx_kernel.domain.quote_calculator import (
    QuoteBreakdown,
    QuoteUnit,
    compute_quote,
    urgency_tier_for_deadline,
)
from assignx_kernel.domain.workflow import Guard
from assignx_kernel.exceptions import (
    ConcurrentModificationError,
    DoerNotEligibleError,
    GuardNotSatisfiedError,
    InvalidQuoteInputError,
    InvalidStateTransitionError,
    PaymentAmountMismatchError,
    ProjectInvariantViolationError,
    ProjectNotFoundError,
    RevisionLimitExceededError,
)
from assignx_kernel.logging_config import LogContext, get_logger
from assignx_kernel.models.project import ProjectModel, ProjectStatusHistoryModel
from assignx_kernel.models.quote import QuoteModel
from assignx_kernel.models.wallet import LedgerCategory, ReleaseDisposition, WalletOwnerType
from assignx_kernel.services.assignment_resolver import AssignmentResolver
from assignx_kernel.services.base import BaseService
from assignx_kernel.services.revision_tracker import RevisionTracker
from assignx_kernel.services.sequence_service import SequenceService
from assignx_kernel.services.settlement_service import PAYMENT_PURPOSE, SettlementService
from assignx_kernel.services.wallet_service import WalletService
from assignx_kernel.utils.idempotency import project_reference

logger = get_logger("services.project_state_machine")

# Actor recorded for transitions the engine fires on its own (auto-approval).
SYSTEM_ACTOR_ID = UUID("00000000-0000-0000-0000-000000000000")

TOP_UP_PURPOSE = "gateway_top_up"

# Statuses that require a recorded payment.
_PAID_STATES = frozenset(DOER_BOUND_STATES) | {ProjectStatus.PAID}


@dataclass
class _Outcome:
    """Mutable accumulator for one apply() call."""

    path: list[ProjectStatus]
    notifications: list[NotificationIntent] = field(default_factory=list)
    settlement: SettlementResult | None = None
    assignment: AssignmentInfo | None = None
    revision: RevisionInfo | None = None
    quote: QuoteInfo | None = None
    prepared: Any = None


def _recipients(*ids: UUID | None) -> tuple[UUID, ...]:
    return tuple(dict.fromkeys(i for i in ids if i is not None))


class ProjectStateMachine(BaseService[ProjectModel]):
    """
    Event application for projects.

    Contract:
        ``apply`` returns a TransitionResult or raises a typed error.  It
        flushes but never commits; callers own the transaction.

    Non-goals:
        - Authentication.  Actor ids are trusted; ownership guards only
          compare them with the project's recorded parties.
        - Notification delivery.  Intents are returned for the caller to
          dispatch after commit.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        policy: LifecyclePolicy | None = None,
        pricing: PricingPolicy | None = None,
        assignment_policy: AssignmentPolicy | None = None,
        wallet: WalletService | None = None,
        resolver: AssignmentResolver | None = None,
        revisions: RevisionTracker | None = None,
        settlement: SettlementService | None = None,
    ):
        super().__init__(session, clock)
        self.policy = policy or LifecyclePolicy()
        self.pricing = pricing or PricingPolicy()
        self.wallet = wallet or WalletService(session, self.clock)
        self.resolver = resolver or AssignmentResolver(session, self.clock, assignment_policy)
        self.revisions = revisions or RevisionTracker(session, self.clock)
        self.settlement = settlement or SettlementService(
            session, self.clock, self.wallet, self.resolver
        )

        self._guards: dict[ProjectEvent, Callable[[ProjectModel, str, UUID, dict], Any]] = {
            ProjectEvent.ANALYZE: self._guard_analyze,
            ProjectEvent.QUOTE: self._guard_quote,
            ProjectEvent.REQUOTE: self._guard_supervisor,
            ProjectEvent.INITIATE_PAYMENT: self._guard_client,
            ProjectEvent.PAYMENT_CONFIRMED: self._guard_payment,
            ProjectEvent.ASSIGN: self._guard_assign,
            ProjectEvent.ACCEPT_POOL_TASK: self._guard_pool_accept,
            ProjectEvent.START_WORK: self._guard_doer,
            ProjectEvent.SUBMIT_WORK: self._guard_deliverable,
            ProjectEvent.QC_APPROVE: self._guard_supervisor,
            ProjectEvent.QC_REJECT: self._guard_qc_reject,
            ProjectEvent.RESUBMIT: self._guard_deliverable,
            ProjectEvent.DELIVER: self._guard_supervisor,
            ProjectEvent.CLIENT_ACCEPT: self._guard_client,
            ProjectEvent.DEADLINE_ELAPSED: self._guard_deadline,
        }
        self._effects: dict[ProjectEvent, Callable[[ProjectModel, UUID, dict, _Outcome], None]] = {
            ProjectEvent.ANALYZE: self._effect_analyze,
            ProjectEvent.QUOTE: self._effect_quote,
            ProjectEvent.REQUOTE: self._effect_requote,
            ProjectEvent.PAYMENT_CONFIRMED: self._effect_payment,
            ProjectEvent.ASSIGN: self._effect_assign,
            ProjectEvent.ACCEPT_POOL_TASK: self._effect_pool_accept,
            ProjectEvent.SUBMIT_WORK: self._effect_submit,
            ProjectEvent.QC_APPROVE: self._effect_qc_approve,
            ProjectEvent.QC_REJECT: self._effect_qc_reject,
            ProjectEvent.RESUBMIT: self._effect_resubmit,
            ProjectEvent.DELIVER: self._effect_deliver,
            ProjectEvent.CLIENT_ACCEPT: self._effect_settle,
            ProjectEvent.DEADLINE_ELAPSED: self._effect_settle,
            ProjectEvent.CANCEL: self._effect_cancel,
            ProjectEvent.ESCALATE: self._effect_escalate,
        }

    # -------------------------------------------------------------------------
    # Creation
    # -------------------------------------------------------------------------

    def submit_project(
        self,
        *,
        client_id: UUID,
        title: str,
        deadline: datetime,
        word_count: int | None = None,
        page_count: int | None = None,
        subject: str | None = None,
        currency: str = "INR",
    ) -> ProjectInfo:
        """Create a project in ``submitted`` with version 1."""
        if (word_count is None) == (page_count is None):
            raise InvalidQuoteInputError("exactly one of word_count or page_count is required")
        count = word_count if word_count is not None else page_count
        if isinstance(count, bool) or not isinstance(count, int) or count <= 0:
            raise InvalidQuoteInputError(f"unit count must be a positive integer, got {count!r}")
        if not title or not title.strip():
            raise InvalidQuoteInputError("title is required")

        project = ProjectModel(
            project_number=SequenceService(self.session).next_project_number(),
            client_id=client_id,
            title=title.strip(),
            subject=subject,
            word_count=word_count,
            page_count=page_count,
            deadline=deadline,
            currency=currency,
            status=ProjectStatus.SUBMITTED.value,
            version=1,
            created_by_id=client_id,
        )
        self.session.add(project)
        self.session.flush()

        logger.info(
            "project_submitted",
            extra={
                "project_id": str(project.id),
                "project_number": project.project_number,
                "client_id": str(client_id),
                "subject": subject,
            },
        )
        return ProjectInfo.from_model(project)

    # -------------------------------------------------------------------------
    # Event application
    # -------------------------------------------------------------------------

    def apply(
        self,
        project_id: UUID,
        event: ProjectEvent | str,
        actor_id: UUID,
        expected_version: int | None = None,
        **payload: Any,
    ) -> TransitionResult:
        """Apply ``event`` to ``project_id`` on behalf of ``actor_id``."""
        with LogContext.bind(project_id=str(project_id), actor_id=str(actor_id)):
            project = self._load(project_id)
            current = ProjectStatus(project.status)

            if expected_version is not None and expected_version != project.version:
                logger.warning(
                    "project_version_stale",
                    extra={
                        "project_id": str(project_id),
                        "expected_version": expected_version,
                        "actual_version": project.version,
                    },
                )
                raise ConcurrentModificationError(
                    "project", str(project_id), expected_version, project.version
                )

            try:
                event = ProjectEvent(event)
            except ValueError:
                raise InvalidStateTransitionError(str(project_id), current.value, str(event)) from None

            transition = PROJECT_WORKFLOW.find(current.value, event.value)
            if transition is None or transition.automatic:
                logger.warning(
                    "invalid_state_transition",
                    extra={
                        "project_id": str(project_id),
                        "status": current.value,
                        "event": event.value,
                    },
                )
                raise InvalidStateTransitionError(str(project_id), current.value, event.value)

            guard = self._guards.get(event)
            prepared = guard(project, event.value, actor_id, payload) if guard is not None else None

            outcome = _Outcome(path=[current], prepared=prepared)
            self._step(project, event, ProjectStatus(transition.to_state), actor_id,
                       payload.get("notes"), outcome)

            effect = self._effects.get(event)
            if effect is not None:
                effect(project, actor_id, payload, outcome)

            self._check_invariants(project)
            self.session.flush()

            final = ProjectStatus(project.status)
            return TransitionResult(
                project=ProjectInfo.from_model(project),
                event=event.value,
                from_status=current,
                to_status=final,
                version=project.version,
                path=tuple(outcome.path),
                notifications=tuple(outcome.notifications),
                settlement=outcome.settlement,
                assignment=outcome.assignment,
                revision=outcome.revision,
                quote=outcome.quote,
            )

    def accepted_events(self, project_id: UUID) -> frozenset[str]:
        project = self._load(project_id)
        return PROJECT_WORKFLOW.actions_from(project.status)

    # -------------------------------------------------------------------------
    # Persistence steps
    # -------------------------------------------------------------------------

    def _load(self, project_id: UUID) -> ProjectModel:
        project = self.session.execute(
            select(ProjectModel)
            .where(ProjectModel.id == project_id)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if project is None:
            raise ProjectNotFoundError(str(project_id))
        return project

    def _step(
        self,
        project: ProjectModel,
        event: ProjectEvent,
        to_status: ProjectStatus,
        actor_id: UUID,
        notes: str | None,
        outcome: _Outcome,
    ) -> None:
        """Compare-and-set one status change and record it in the history."""
        from_status = ProjectStatus(project.status)
        seen_version = project.version
        # Pending attribute changes must reach the row before the CAS refresh
        self.session.flush()

        now = self.clock.now_utc()
        result = self.session.execute(
            update(ProjectModel)
            .where(
                ProjectModel.id == project.id,
                ProjectModel.version == seen_version,
                ProjectModel.status == from_status.value,
            )
            .values(
                status=to_status.value,
                version=ProjectModel.version + 1,
                updated_at=now,
                updated_by_id=actor_id,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            actual = self.session.execute(
                select(ProjectModel.version).where(ProjectModel.id == project.id)
            ).scalar_one_or_none()
            logger.warning(
                "project_transition_conflict",
                extra={
                    "project_id": str(project.id),
                    "event": event.value,
                    "expected_version": seen_version,
                    "actual_version": actual,
                },
            )
            raise ConcurrentModificationError("project", str(project.id), seen_version, actual)

        self.session.refresh(project)
        self.session.add(
            ProjectStatusHistoryModel(
                project_id=project.id,
                from_status=from_status.value,
                to_status=to_status.value,
                event=event.value,
                version=project.version,
                actor_id=actor_id,
                occurred_at=now,
                notes=notes,
            )
        )
        outcome.path.append(to_status)

        logger.info(
            "project_transition_applied",
            extra={
                "project_id": str(project.id),
                "event": event.value,
                "from_status": from_status.value,
                "to_status": to_status.value,
                "version": project.version,
            },
        )

    def _check_invariants(self, project: ProjectModel) -> None:
        status = ProjectStatus(project.status)
        violated = None
        if project.doer_id is not None and status not in DOER_BOUND_STATES:
            violated = "doer_only_in_bound_states"
        elif status in DOER_BOUND_STATES and project.doer_id is None:
            violated = "doer_required_in_bound_states"
        elif project.quoted_amount is not None and status in UNQUOTED_STATES:
            violated = "no_quote_before_quoting"
        elif (
            project.quoted_amount is None
            and status not in UNQUOTED_STATES
            and status != ProjectStatus.CANCELLED
        ):
            violated = "quote_required_after_quoting"
        elif status in _PAID_STATES and project.paid_at is None:
            violated = "payment_recorded"

        if violated is not None:
            logger.error(
                "project_invariant_violated",
                extra={"project_id": str(project.id), "rule": violated, "status": status.value},
            )
            raise ProjectInvariantViolationError(str(project.id), violated, status.value)

    # -------------------------------------------------------------------------
    # Guards (no mutation)
    # -------------------------------------------------------------------------

    @staticmethod
    def _require(project: ProjectModel, event: str, guard: Guard, ok: bool, reason: str) -> None:
        if not ok:
            logger.info(
                "transition_guard_failed",
                extra={"project_id": str(project.id), "event": event, "guard": guard.name},
            )
            raise GuardNotSatisfiedError(str(project.id), event, guard.name, reason)

    def _guard_analyze(self, project, event, actor_id, payload):
        self._require(project, event, SUPERVISOR_CLAIMS,
                      project.supervisor_id in (None, actor_id),
                      "project is claimed by another supervisor")

    def _guard_supervisor(self, project, event, actor_id, payload):
        self._require(project, event, SUPERVISOR_OWNS,
                      project.supervisor_id is not None and project.supervisor_id == actor_id,
                      "actor is not the project's supervisor")

    def _guard_client(self, project, event, actor_id, payload):
        self._require(project, event, CLIENT_OWNS,
                      project.client_id == actor_id,
                      "actor is not the project's client")

    def _guard_doer(self, project, event, actor_id, payload):
        self._require(project, event, DOER_OWNS,
                      project.doer_id is not None and project.doer_id == actor_id,
                      "actor is not the assigned doer")

    def _guard_deliverable(self, project, event, actor_id, payload):
        self._guard_doer(project, event, actor_id, payload)
        ref = payload.get("deliverable_ref")
        self._require(project, event, DELIVERABLE_ATTACHED,
                      bool(ref and str(ref).strip()),
                      "a deliverable reference is required")

    def _guard_quote(self, project, event, actor_id, payload) -> QuoteBreakdown:
        self._guard_supervisor(project, event, actor_id, payload)
        pricing = self.pricing
        tier = payload.get("urgency_tier")
        if tier is None:
            tier = urgency_tier_for_deadline(project.deadline, self.clock.now_utc())
        rate = payload.get("rate_per_unit")
        if rate is None:
            rate = pricing.rate_per_word if project.word_count is not None else pricing.rate_per_page
        complexity = payload.get("complexity")
        if complexity is None:
            complexity = "standard"
        return compute_quote(
            word_count=project.word_count,
            page_count=project.page_count,
            urgency_tier=tier,
            rate_per_unit=rate,
            commission_rate=pricing.commission_rate,
            platform_fee_rate=pricing.platform_fee_rate,
            complexity=complexity,
            urgency_multipliers=pricing.urgency_multipliers,
            complexity_multipliers=pricing.complexity_multipliers,
        )

    def _guard_payment(self, project, event, actor_id, payload) -> PaymentConfirmation:
        confirmation = payload.get("confirmation")
        self._require(project, event, AMOUNT_MATCHES_QUOTE,
                      isinstance(confirmation, PaymentConfirmation)
                      and confirmation.project_id == project.id,
                      "a payment confirmation for this project is required")
        if confirmation.confirmed_amount != project.quoted_amount:
            logger.warning(
                "payment_amount_mismatch",
                extra={
                    "project_id": str(project.id),
                    "expected": project.quoted_amount,
                    "received": confirmation.confirmed_amount,
                },
            )
            raise PaymentAmountMismatchError(
                str(project.id), project.quoted_amount, confirmation.confirmed_amount
            )
        return confirmation

    def _guard_assign(self, project, event, actor_id, payload):
        self._guard_supervisor(project, event, actor_id, payload)
        candidate = payload.get("doer_id")
        if candidate is not None:
            reason = self.resolver.check_eligibility(project.id, candidate)
            if reason is not None:
                logger.info(
                    "transition_guard_failed",
                    extra={
                        "project_id": str(project.id),
                        "event": ProjectEvent.ASSIGN.value,
                        "guard": ELIGIBLE_DOER.name,
                        "reason": reason,
                    },
                )
                raise DoerNotEligibleError(str(candidate), reason)

    def _guard_pool_accept(self, project, event, actor_id, payload):
        self._require(project, event, DOER_SELF_ASSIGNS,
                      project.doer_id is None,
                      "project already has a doer")
        reason = self.resolver.check_eligibility(project.id, actor_id)
        if reason is not None:
            logger.info(
                "transition_guard_failed",
                extra={
                    "project_id": str(project.id),
                    "event": event,
                    "guard": DOER_SELF_ASSIGNS.name,
                    "reason": reason,
                },
            )
            raise DoerNotEligibleError(str(actor_id), reason)

    def _guard_qc_reject(self, project, event, actor_id, payload):
        self._guard_supervisor(project, event, actor_id, payload)
        feedback = payload.get("feedback")
        self._require(project, event, FEEDBACK_WITHIN_CAP,
                      bool(feedback and str(feedback).strip()),
                      "rejection feedback is required")
        count = self.revisions.count_revisions(project.id)
        if count >= self.policy.max_revisions:
            logger.warning(
                "revision_limit_exceeded",
                extra={
                    "project_id": str(project.id),
                    "revision_count": count,
                    "max_revisions": self.policy.max_revisions,
                },
            )
            raise RevisionLimitExceededError(str(project.id), count, self.policy.max_revisions)

    def _guard_deadline(self, project, event, actor_id, payload):
        now = self.clock.now_utc()
        self._require(project, event, AUTO_APPROVE_WINDOW_ELAPSED,
                      project.auto_approve_at is not None and now >= project.auto_approve_at,
                      "auto-approval window has not elapsed")

    # -------------------------------------------------------------------------
    # Side effects (after the CAS)
    # -------------------------------------------------------------------------

    def _effect_analyze(self, project, actor_id, payload, outcome):
        project.supervisor_id = actor_id

    def _effect_quote(self, project, actor_id, payload, outcome):
        breakdown: QuoteBreakdown = outcome.prepared
        last = self.session.execute(
            select(func.max(QuoteModel.quote_number)).where(QuoteModel.project_id == project.id)
        ).scalar_one()
        quote = QuoteModel(
            project_id=project.id,
            quote_number=(last or 0) + 1,
            unit=QuoteUnit(breakdown.unit).value,
            unit_count=breakdown.unit_count,
            rate_per_unit=breakdown.rate_per_unit,
            base_price=breakdown.base_price,
            urgency_tier=breakdown.urgency_tier,
            urgency_multiplier=breakdown.urgency_multiplier,
            complexity=breakdown.complexity,
            complexity_multiplier=breakdown.complexity_multiplier,
            commission_rate=breakdown.commission_rate,
            platform_fee_rate=breakdown.platform_fee_rate,
            client_price=breakdown.client_price,
            doer_payout=breakdown.doer_payout,
            supervisor_commission=breakdown.supervisor_commission,
            platform_fee=breakdown.platform_fee,
            quoted_by=actor_id,
            created_at=self.clock.now_utc(),
        )
        self.session.add(quote)
        self.session.flush()

        project.active_quote_id = quote.id
        project.quoted_amount = breakdown.client_price
        project.doer_payout = breakdown.doer_payout
        project.supervisor_commission = breakdown.supervisor_commission
        project.platform_fee = breakdown.platform_fee

        outcome.quote = QuoteInfo.from_model(quote)
        outcome.notifications.append(
            NotificationIntent(
                kind=NotificationKind.QUOTE_READY,
                project_id=project.id,
                recipient_ids=_recipients(project.client_id),
                payload={
                    "quoted_amount": breakdown.client_price,
                    "currency": project.currency,
                    "quote_number": quote.quote_number,
                },
            )
        )

    def _effect_requote(self, project, actor_id, payload, outcome):
        project.active_quote_id = None
        project.quoted_amount = None
        project.doer_payout = None
        project.supervisor_commission = None
        project.platform_fee = None

    def _effect_payment(self, project, actor_id, payload, outcome):
        confirmation: PaymentConfirmation = outcome.prepared
        client_wallet = self.wallet.get_or_create_wallet(
            project.client_id, WalletOwnerType.CLIENT, project.currency
        )
        if not confirmation.funded_from_wallet:
            self.wallet.credit(
                client_wallet.wallet_id,
                confirmation.confirmed_amount,
                project_reference(project.id, TOP_UP_PURPOSE),
                category=LedgerCategory.TOP_UP,
                actor_id=actor_id,
                memo=confirmation.reference,
            )
        self.wallet.hold(
            client_wallet.wallet_id,
            project.quoted_amount,
            project_reference(project.id, PAYMENT_PURPOSE),
            category=LedgerCategory.PROJECT_PAYMENT,
            actor_id=actor_id,
            memo=confirmation.reference,
        )
        project.paid_at = self.clock.now_utc()
        project.payment_reference = confirmation.reference
        outcome.notifications.append(
            NotificationIntent(
                kind=NotificationKind.PAYMENT_RECEIVED,
                project_id=project.id,
                recipient_ids=_recipients(project.client_id, project.supervisor_id),
                payload={"amount": confirmation.confirmed_amount, "reference": confirmation.reference},
            )
        )

    def _effect_assign(self, project, actor_id, payload, outcome):
        assignment = self.resolver.resolve_assignment(project.id, payload.get("doer_id"))
        project.doer_id = assignment.doer_id
        project.doer_assigned_at = assignment.assigned_at
        outcome.assignment = assignment
        outcome.notifications.append(
            NotificationIntent(
                kind=NotificationKind.DOER_ASSIGNED,
                project_id=project.id,
                recipient_ids=_recipients(assignment.doer_id, project.client_id),
                payload={"payout_amount": assignment.payout_amount},
            )
        )

    def _effect_pool_accept(self, project, actor_id, payload, outcome):
        self._effect_assign(project, actor_id, {"doer_id": actor_id}, outcome)

    def _effect_submit(self, project, actor_id, payload, outcome):
        project.latest_deliverable_ref = str(payload["deliverable_ref"]).strip()
        outcome.notifications.append(
            NotificationIntent(
                kind=NotificationKind.WORK_SUBMITTED,
                project_id=project.id,
                recipient_ids=_recipients(project.supervisor_id),
                payload={"deliverable_ref": project.latest_deliverable_ref},
            )
        )

    def _effect_resubmit(self, project, actor_id, payload, outcome):
        outcome.revision = self.revisions.close_revision(
            project.id, resolved_by=actor_id, response_notes=payload.get("response_notes")
        )
        self._effect_submit(project, actor_id, payload, outcome)

    def _effect_qc_approve(self, project, actor_id, payload, outcome):
        outcome.notifications.append(
            NotificationIntent(
                kind=NotificationKind.QC_APPROVED,
                project_id=project.id,
                recipient_ids=_recipients(project.doer_id),
            )
        )
        if self.policy.auto_deliver_on_qc_approval:
            self._step(project, ProjectEvent.DELIVER, ProjectStatus.DELIVERED, actor_id,
                       "auto-delivered on QC approval", outcome)
            self._effect_deliver(project, actor_id, payload, outcome)

    def _effect_qc_reject(self, project, actor_id, payload, outcome):
        feedback = str(payload["feedback"]).strip()
        outcome.revision = self.revisions.open_revision(project.id, actor_id, feedback)
        self._step(project, ProjectEvent.BEGIN_REVISION, ProjectStatus.IN_REVISION, actor_id,
                   None, outcome)
        outcome.notifications.append(
            NotificationIntent(
                kind=NotificationKind.QC_REJECTED,
                project_id=project.id,
                recipient_ids=_recipients(project.doer_id),
                payload={
                    "feedback": feedback,
                    "revision_number": outcome.revision.revision_number,
                },
            )
        )

    def _effect_deliver(self, project, actor_id, payload, outcome):
        now = self.clock.now_utc()
        project.delivered_at = now
        project.auto_approve_at = now + timedelta(hours=self.policy.auto_approve_hours)
        outcome.notifications.append(
            NotificationIntent(
                kind=NotificationKind.DELIVERED,
                project_id=project.id,
                recipient_ids=_recipients(project.client_id),
                payload={"auto_approve_at": project.auto_approve_at.isoformat()},
            )
        )

    def _effect_settle(self, project, actor_id, payload, outcome):
        project.completed_at = self.clock.now_utc()
        self.session.flush()
        outcome.settlement = self.settlement.settle(project.id, actor_id)
        outcome.notifications.append(
            NotificationIntent(
                kind=NotificationKind.SETTLED,
                project_id=project.id,
                recipient_ids=_recipients(project.client_id, project.doer_id, project.supervisor_id),
                payload={"status": project.status, "amount": project.quoted_amount},
            )
        )

    def _effect_cancel(self, project, actor_id, payload, outcome):
        origin = outcome.path[0]
        project.cancelled_at = self.clock.now_utc()
        project.cancellation_reason = payload.get("reason")
        if origin == ProjectStatus.PAID:
            client_wallet = self.wallet.get_or_create_wallet(
                project.client_id, WalletOwnerType.CLIENT, project.currency
            )
            reference = project_reference(project.id, PAYMENT_PURPOSE)
            held = self.wallet.held_for_reference(client_wallet.wallet_id, reference)
            if held > 0:
                self.wallet.release_hold(
                    client_wallet.wallet_id,
                    held,
                    reference,
                    ReleaseDisposition.REFUND,
                    actor_id=actor_id,
                    memo=project.cancellation_reason,
                )
        outcome.notifications.append(
            NotificationIntent(
                kind=NotificationKind.CANCELLED,
                project_id=project.id,
                recipient_ids=_recipients(project.client_id, project.supervisor_id),
                payload={"reason": project.cancellation_reason, "refunded": origin == ProjectStatus.PAID},
            )
        )

    def _effect_escalate(self, project, actor_id, payload, outcome):
        outcome.notifications.append(
            NotificationIntent(
                kind=NotificationKind.ESCALATED,
                project_id=project.id,
                recipient_ids=_recipients(project.supervisor_id),
                payload={"notes": payload.get("notes")},
            )
        )
