"""
SettlementService -- turns a completed project's hold into payouts.

Responsibility:
    On entry into ``completed`` or ``auto_approved`` converts the client's
    held payment into credits for the doer, the supervisor and the
    platform, then frees the doer's assignment slot.

Architecture position:
    Kernel > Services.  Invoked by the project state machine as the side
    effect of ``client_accept`` and ``deadline_elapsed``, within the same
    transaction as the status change.

Invariants enforced:
    - Settle once: each step carries a deterministic project reference, so
      the wallet service skips a step that was already applied, and the
      project's ``settled_at`` marker makes a repeated call a no-op that
      reports ALREADY_SETTLED.
    - Conservation: client debit == doer credit + supervisor credit +
      platform credit.  The platform share is the residual.

Failure modes:
    - GuardNotSatisfiedError: the project is not in a settlement status.
    - ProjectInvariantViolationError: no assignment or no quoted amount.
    - Any wallet error propagates; the caller rolls back the whole unit.

Audit relevance:
    ``project_settled`` records every share.  The ledger entries themselves
    carry ``project:<id>:<purpose>`` references for reconciliation.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from assignx_kernel.domain.clock import Clock
from assignx_kernel.domain.dtos import SettlementResult, SettlementStatus
from assignx_kernel.domain.project_workflow import SETTLEMENT_STATES, ProjectStatus
from assignx_kernel.exceptions import (
    GuardNotSatisfiedError,
    ProjectInvariantViolationError,
    ProjectNotFoundError,
)
from assignx_kernel.logging_config import get_logger
from assignx_kernel.models.assignment import AssignmentModel
from assignx_kernel.models.project import ProjectModel
from assignx_kernel.models.wallet import LedgerCategory, ReleaseDisposition, WalletOwnerType
from assignx_kernel.services.assignment_resolver import AssignmentResolver
from assignx_kernel.services.base import BaseService
from assignx_kernel.services.wallet_service import WalletService
from assignx_kernel.utils.idempotency import project_reference

logger = get_logger("services.settlement")

PAYMENT_PURPOSE = "payment"
DOER_PAYOUT_PURPOSE = "doer_payout"
SUPERVISOR_COMMISSION_PURPOSE = "supervisor_commission"
PLATFORM_FEE_PURPOSE = "platform_fee"


class SettlementService(BaseService[ProjectModel]):

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        wallet: WalletService | None = None,
        resolver: AssignmentResolver | None = None,
    ):
        super().__init__(session, clock)
        self.wallet = wallet or WalletService(session, self.clock)
        self.resolver = resolver or AssignmentResolver(session, self.clock)

    def settle(self, project_id: UUID, actor_id: UUID | None = None) -> SettlementResult:
        project = self.session.execute(
            select(ProjectModel)
            .where(ProjectModel.id == project_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if project is None:
            raise ProjectNotFoundError(str(project_id))

        if project.settled_at is not None:
            logger.info("settlement_already_applied", extra={"project_id": str(project_id)})
            return SettlementResult(project_id=project_id, status=SettlementStatus.ALREADY_SETTLED)

        status = ProjectStatus(project.status)
        if status not in SETTLEMENT_STATES:
            raise GuardNotSatisfiedError(
                str(project_id), "settle", "settlement_status",
                f"project is {status.value}",
            )
        if project.quoted_amount is None:
            raise ProjectInvariantViolationError(str(project_id), "quoted_amount_set", status.value)

        assignment = self.session.execute(
            select(AssignmentModel).where(AssignmentModel.project_id == project_id)
        ).scalar_one_or_none()
        if assignment is None:
            raise ProjectInvariantViolationError(str(project_id), "doer_bound", status.value)

        total = project.quoted_amount
        doer_share = assignment.payout_amount
        supervisor_share = project.supervisor_commission or 0
        platform_share = total - doer_share - supervisor_share
        if platform_share < 0:
            raise ProjectInvariantViolationError(str(project_id), "shares_within_total", status.value)

        currency = project.currency
        client_wallet = self.wallet.get_or_create_wallet(
            project.client_id, WalletOwnerType.CLIENT, currency
        )
        applied = 0
        skipped = 0

        def tally(result) -> None:
            nonlocal applied, skipped
            if result.applied:
                applied += 1
            else:
                skipped += 1

        tally(
            self.wallet.release_hold(
                client_wallet.wallet_id,
                total,
                project_reference(project_id, PAYMENT_PURPOSE),
                ReleaseDisposition.DEBIT,
                category=LedgerCategory.PROJECT_PAYMENT,
                actor_id=actor_id,
            )
        )

        shares = (
            (assignment.doer_id, WalletOwnerType.DOER, doer_share,
             DOER_PAYOUT_PURPOSE, LedgerCategory.PROJECT_EARNING),
            (project.supervisor_id, WalletOwnerType.SUPERVISOR, supervisor_share,
             SUPERVISOR_COMMISSION_PURPOSE, LedgerCategory.COMMISSION),
        )
        for owner_id, owner_type, amount, purpose, category in shares:
            if amount == 0:
                continue
            if owner_id is None:
                raise ProjectInvariantViolationError(
                    str(project_id), f"{owner_type.value}_bound", status.value
                )
            target = self.wallet.get_or_create_wallet(owner_id, owner_type, currency)
            tally(
                self.wallet.credit(
                    target.wallet_id,
                    amount,
                    project_reference(project_id, purpose),
                    category=category,
                    actor_id=actor_id,
                )
            )

        if platform_share > 0:
            platform = self.wallet.platform_wallet(currency)
            tally(
                self.wallet.credit(
                    platform.wallet_id,
                    platform_share,
                    project_reference(project_id, PLATFORM_FEE_PURPOSE),
                    category=LedgerCategory.PLATFORM_FEE,
                    actor_id=actor_id,
                )
            )

        project.settled_at = self.clock.now_utc()
        if actor_id is not None:
            project.updated_by_id = actor_id
        self.resolver.release_assignment(project_id)
        self.session.flush()

        logger.info(
            "project_settled",
            extra={
                "project_id": str(project_id),
                "client_debited": total,
                "doer_credited": doer_share,
                "supervisor_credited": supervisor_share,
                "platform_credited": platform_share,
                "steps_applied": applied,
                "steps_skipped": skipped,
            },
        )
        return SettlementResult(
            project_id=project_id,
            status=SettlementStatus.SETTLED,
            client_debited=total,
            doer_credited=doer_share,
            supervisor_credited=supervisor_share,
            platform_credited=platform_share,
            steps_applied=applied,
            steps_skipped=skipped,
        )
