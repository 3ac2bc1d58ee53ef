"""
assignx_services.lifecycle_service -- transaction-owning facade.

Responsibility:
    One public method per lifecycle operation.  Wires the kernel services
    together from configuration, runs the operation, commits on success,
    rolls back and re-raises on failure, and dispatches notification
    intents only after the commit.

Architecture position:
    Services -- above the kernel and the config layer.  This is the only
    layer that calls ``session.commit()`` / ``session.rollback()``.

Invariants enforced:
    - Atomic unit: a transition, its ledger entries, its revision and
      assignment rows and its history row are committed together or not at
      all.
    - Notifications never fire for a rolled-back change.

Failure modes:
    - Every kernel error propagates unchanged after rollback.
    - A failing notification sink is logged and otherwise ignored.

Usage:
    service = ProjectLifecycleService(session, config=get_active_config())
    project = service.submit_project(client_id=..., title=..., deadline=..., word_count=2000)
    service.claim_project(project.id, supervisor_id)
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any, Callable, TypeVar
from uuid import UUID, uuid4

from sqlalchemy.orm import Session

from assignx_config import EngineConfig, get_active_config
from assignx_config.bridges import (
    build_assignment_policy,
    build_lifecycle_policy,
    build_pricing_policy,
)
from assignx_kernel.domain.clock import Clock, SystemClock
from assignx_kernel.domain.dtos import (
    AssignmentInfo,
    DoerProfileInfo,
    NotificationIntent,
    NotificationKind,
    PaymentConfirmation,
    PayoutInfo,
    ProjectInfo,
    SettlementResult,
    TransitionResult,
    WalletBalance,
)
from assignx_kernel.domain.project_workflow import ProjectEvent, ProjectStatus
from assignx_kernel.exceptions import InvalidStateTransitionError
from assignx_kernel.logging_config import LogContext, get_logger
from assignx_kernel.selectors.ledger_selector import LedgerSelector
from assignx_kernel.selectors.project_selector import ProjectSelector, StatusHistoryInfo
from assignx_kernel.services.assignment_resolver import AssignmentResolver
from assignx_kernel.services.payout_service import PayoutService
from assignx_kernel.services.project_state_machine import SYSTEM_ACTOR_ID, ProjectStateMachine
from assignx_kernel.services.revision_tracker import RevisionTracker
from assignx_kernel.services.settlement_service import SettlementService
from assignx_kernel.services.wallet_service import WalletService
from assignx_services.notifications import (
    LoggingNotificationSink,
    NotificationSink,
    dispatch_notifications,
)

logger = get_logger("services.lifecycle")

T = TypeVar("T")


class ProjectLifecycleService:
    """
    Public operations of the engine.

    Contract:
        Each method is one unit of work on ``session``.  Callers may reuse
        the service for many operations; each one starts where the last
        committed.

    Non-goals:
        - Does NOT authenticate actors.
        - Does NOT own the session's lifetime (no close).
    """

    def __init__(
        self,
        session: Session,
        config: EngineConfig | None = None,
        clock: Clock | None = None,
        notification_sink: NotificationSink | None = None,
    ) -> None:
        self.session = session
        self.config = config or get_active_config()
        self.clock = clock or SystemClock()
        self.sink = notification_sink or LoggingNotificationSink()

        # Shared instances; order follows the dependency graph
        self.wallets = WalletService(session, self.clock)
        self.resolver = AssignmentResolver(
            session, self.clock, build_assignment_policy(self.config)
        )
        self.revisions = RevisionTracker(session, self.clock)
        self.settlement = SettlementService(session, self.clock, self.wallets, self.resolver)
        self.machine = ProjectStateMachine(
            session,
            self.clock,
            policy=build_lifecycle_policy(self.config),
            pricing=build_pricing_policy(self.config),
            wallet=self.wallets,
            resolver=self.resolver,
            revisions=self.revisions,
            settlement=self.settlement,
        )
        self.payouts = PayoutService(
            session, self.clock, self.wallets, self.config.payout.minimum_payout
        )
        self.projects = ProjectSelector(session)
        self.ledger = LedgerSelector(session)

    # -------------------------------------------------------------------------
    # Unit of work
    # -------------------------------------------------------------------------

    def _run(self, operation: str, fn: Callable[[], T]) -> T:
        with LogContext.bind(correlation_id=str(uuid4())):
            try:
                result = fn()
                self.session.commit()
            except Exception as exc:
                self.session.rollback()
                logger.warning(
                    "operation_rolled_back",
                    extra={
                        "operation": operation,
                        "error_code": getattr(exc, "code", type(exc).__name__),
                    },
                )
                raise
            logger.debug("operation_committed", extra={"operation": operation})
            return result

    def _transition(
        self,
        project_id: UUID,
        event: ProjectEvent,
        actor_id: UUID,
        expected_version: int | None = None,
        **payload: Any,
    ) -> TransitionResult:
        result = self._run(
            event.value,
            lambda: self.machine.apply(
                project_id, event, actor_id, expected_version=expected_version, **payload
            ),
        )
        self._dispatch(result.notifications)
        return result

    def _dispatch(self, intents: tuple[NotificationIntent, ...] | list[NotificationIntent]) -> None:
        dispatch_notifications(self.sink, intents)

    # -------------------------------------------------------------------------
    # Lifecycle operations
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
    ) -> ProjectInfo:
        return self._run(
            "submit_project",
            lambda: self.machine.submit_project(
                client_id=client_id,
                title=title,
                deadline=deadline,
                word_count=word_count,
                page_count=page_count,
                subject=subject,
                currency=self.config.pricing.currency,
            ),
        )

    def claim_project(
        self, project_id: UUID, supervisor_id: UUID, expected_version: int | None = None
    ) -> TransitionResult:
        return self._transition(project_id, ProjectEvent.ANALYZE, supervisor_id, expected_version)

    def quote_project(
        self,
        project_id: UUID,
        supervisor_id: UUID,
        *,
        urgency_tier: str | None = None,
        complexity: str | None = None,
        rate_per_unit: Decimal | None = None,
        expected_version: int | None = None,
    ) -> TransitionResult:
        """Price the project.  ``rate_per_unit`` overrides the configured rate."""
        return self._transition(
            project_id,
            ProjectEvent.QUOTE,
            supervisor_id,
            expected_version,
            urgency_tier=urgency_tier,
            complexity=complexity,
            rate_per_unit=rate_per_unit,
        )

    def requote_project(
        self, project_id: UUID, supervisor_id: UUID, reason: str | None = None
    ) -> TransitionResult:
        return self._transition(project_id, ProjectEvent.REQUOTE, supervisor_id, notes=reason)

    def initiate_payment(self, project_id: UUID, client_id: UUID) -> TransitionResult:
        return self._transition(project_id, ProjectEvent.INITIATE_PAYMENT, client_id)

    def confirm_payment(
        self, confirmation: PaymentConfirmation, actor_id: UUID = SYSTEM_ACTOR_ID
    ) -> TransitionResult:
        return self._transition(
            confirmation.project_id,
            ProjectEvent.PAYMENT_CONFIRMED,
            actor_id,
            confirmation=confirmation,
        )

    def assign_doer(
        self,
        project_id: UUID,
        supervisor_id: UUID,
        doer_id: UUID | None = None,
        expected_version: int | None = None,
    ) -> TransitionResult:
        """Bind a doer.  Without ``doer_id`` the best-ranked eligible doer is chosen."""
        return self._transition(
            project_id, ProjectEvent.ASSIGN, supervisor_id, expected_version, doer_id=doer_id
        )

    def accept_pool_task(
        self, project_id: UUID, doer_id: UUID, expected_version: int | None = None
    ) -> TransitionResult:
        """A doer takes a paid, unassigned project from the open pool."""
        return self._transition(
            project_id, ProjectEvent.ACCEPT_POOL_TASK, doer_id, expected_version
        )

    def open_pool(self, doer_id: UUID) -> list[ProjectInfo]:
        return self.resolver.open_pool(doer_id)

    def start_work(self, project_id: UUID, doer_id: UUID) -> TransitionResult:
        return self._transition(project_id, ProjectEvent.START_WORK, doer_id)

    def submit_work(self, project_id: UUID, doer_id: UUID, deliverable_ref: str) -> TransitionResult:
        return self._transition(
            project_id, ProjectEvent.SUBMIT_WORK, doer_id, deliverable_ref=deliverable_ref
        )

    def approve_qc(self, project_id: UUID, supervisor_id: UUID) -> TransitionResult:
        return self._transition(project_id, ProjectEvent.QC_APPROVE, supervisor_id)

    def reject_qc(self, project_id: UUID, supervisor_id: UUID, feedback: str) -> TransitionResult:
        return self._transition(project_id, ProjectEvent.QC_REJECT, supervisor_id, feedback=feedback)

    def resubmit_work(
        self,
        project_id: UUID,
        doer_id: UUID,
        deliverable_ref: str,
        response_notes: str | None = None,
    ) -> TransitionResult:
        return self._transition(
            project_id,
            ProjectEvent.RESUBMIT,
            doer_id,
            deliverable_ref=deliverable_ref,
            response_notes=response_notes,
        )

    def deliver(self, project_id: UUID, supervisor_id: UUID) -> TransitionResult:
        return self._transition(project_id, ProjectEvent.DELIVER, supervisor_id)

    def accept_delivery(
        self, project_id: UUID, client_id: UUID, expected_version: int | None = None
    ) -> TransitionResult:
        return self._transition(project_id, ProjectEvent.CLIENT_ACCEPT, client_id, expected_version)

    def auto_approve(
        self, project_id: UUID, expected_version: int | None = None
    ) -> TransitionResult:
        return self._transition(
            project_id, ProjectEvent.DEADLINE_ELAPSED, SYSTEM_ACTOR_ID, expected_version
        )

    def cancel_project(
        self, project_id: UUID, actor_id: UUID, reason: str | None = None
    ) -> TransitionResult:
        return self._transition(project_id, ProjectEvent.CANCEL, actor_id, reason=reason, notes=reason)

    def escalate(self, project_id: UUID, actor_id: UUID, notes: str | None = None) -> TransitionResult:
        return self._transition(project_id, ProjectEvent.ESCALATE, actor_id, notes=notes)

    def release_escalated_assignment(
        self, project_id: UUID, actor_id: UUID
    ) -> AssignmentInfo | None:
        """
        Free the doer slot held by an escalated project.

        Escalation is terminal for the engine, so the slot stays counted
        against the doer until the admin resolving the escalation calls this.
        """

        def release() -> AssignmentInfo | None:
            project = self.projects.get(project_id)
            if project.status != ProjectStatus.ESCALATED:
                raise InvalidStateTransitionError(
                    str(project_id), project.status.value, "release_assignment"
                )
            released = self.resolver.release_assignment(project_id)
            logger.info(
                "escalated_assignment_released",
                extra={
                    "project_id": str(project_id),
                    "actor_id": str(actor_id),
                    "released": released is not None,
                },
            )
            return released

        return self._run("release_escalated_assignment", release)

    def settle(self, project_id: UUID, actor_id: UUID | None = None) -> SettlementResult:
        """Re-run settlement.  A settled project reports ALREADY_SETTLED."""
        return self._run("settle", lambda: self.settlement.settle(project_id, actor_id))

    # -------------------------------------------------------------------------
    # Doers
    # -------------------------------------------------------------------------

    def register_doer(self, profile_id: UUID, **kwargs: Any) -> DoerProfileInfo:
        return self._run("register_doer", lambda: self.resolver.register_doer(profile_id, **kwargs))

    def set_doer_availability(self, doer_id: UUID, is_available: bool) -> DoerProfileInfo:
        return self._run(
            "set_doer_availability",
            lambda: self.resolver.set_availability(doer_id, is_available),
        )

    def blacklist_doer(self, supervisor_id: UUID, doer_id: UUID, reason: str | None = None) -> None:
        self._run(
            "blacklist_doer",
            lambda: self.resolver.blacklist_doer(supervisor_id, doer_id, reason),
        )

    # -------------------------------------------------------------------------
    # Payouts
    # -------------------------------------------------------------------------

    def request_payout(self, profile_id: UUID, amount: int) -> PayoutInfo:
        return self._run("request_payout", lambda: self.payouts.request_payout(profile_id, amount))

    def approve_payout(
        self, payout_id: UUID, reviewer_id: UUID, approved_amount: int | None = None
    ) -> PayoutInfo:
        payout = self._run(
            "approve_payout",
            lambda: self.payouts.approve_payout(payout_id, reviewer_id, approved_amount),
        )
        self._dispatch([self._payout_intent(payout)])
        return payout

    def reject_payout(self, payout_id: UUID, reviewer_id: UUID, reason: str) -> PayoutInfo:
        payout = self._run(
            "reject_payout",
            lambda: self.payouts.reject_payout(payout_id, reviewer_id, reason),
        )
        self._dispatch([self._payout_intent(payout)])
        return payout

    @staticmethod
    def _payout_intent(payout: PayoutInfo) -> NotificationIntent:
        return NotificationIntent(
            kind=NotificationKind.PAYOUT_REVIEWED,
            project_id=None,
            recipient_ids=(payout.profile_id,),
            payload={"status": payout.status, "approved_amount": payout.approved_amount},
        )

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def get_project(self, project_id: UUID) -> ProjectInfo:
        return self.projects.get(project_id)

    def project_history(self, project_id: UUID) -> list[StatusHistoryInfo]:
        return self.projects.status_history(project_id)

    def wallet_balance(self, owner_id: UUID) -> WalletBalance:
        return self.wallets.wallet_for_owner(owner_id)

    def verify_wallet(self, wallet_id: UUID) -> int:
        """Replay ``wallet_id``'s ledger; raises on any drift."""
        return self.ledger.verify_history(wallet_id)
