"""Services for the AssignX kernel (write side)."""

from assignx_kernel.services.assignment_resolver import AssignmentResolver
from assignx_kernel.services.payout_service import DEFAULT_MINIMUM_PAYOUT, PayoutService
from assignx_kernel.services.project_state_machine import SYSTEM_ACTOR_ID, ProjectStateMachine
from assignx_kernel.services.revision_tracker import RevisionTracker
from assignx_kernel.services.sequence_service import SequenceService
from assignx_kernel.services.settlement_service import SettlementService
from assignx_kernel.services.wallet_service import WalletService

__all__ = [
    "AssignmentResolver",
    "DEFAULT_MINIMUM_PAYOUT",
    "PayoutService",
    "ProjectStateMachine",
    "RevisionTracker",
    "SYSTEM_ACTOR_ID",
    "SequenceService",
    "SettlementService",
    "WalletService",
]
