"""ORM models for the AssignX kernel."""

from assignx_kernel.models.assignment import (
    AssignmentModel,
    DoerNotEligibleReason,
    DoerProfileModel,
    SupervisorBlacklistModel,
)
from assignx_kernel.models.payout import PayoutRequestModel, PayoutStatus
from assignx_kernel.models.project import (
    PROJECT_MONEY_FIELDS,
    ProjectModel,
    ProjectStatusHistoryModel,
)
from assignx_kernel.models.quote import QuoteModel
from assignx_kernel.models.revision import RevisionModel
from assignx_kernel.models.sequence import SequenceCounter
from assignx_kernel.models.wallet import (
    PLATFORM_OWNER_ID,
    LedgerCategory,
    LedgerEntryKind,
    LedgerEntryModel,
    ReleaseDisposition,
    WalletModel,
    WalletOwnerType,
)

__all__ = [
    "AssignmentModel",
    "DoerNotEligibleReason",
    "DoerProfileModel",
    "LedgerCategory",
    "LedgerEntryKind",
    "LedgerEntryModel",
    "PLATFORM_OWNER_ID",
    "PROJECT_MONEY_FIELDS",
    "PayoutRequestModel",
    "PayoutStatus",
    "ProjectModel",
    "ProjectStatusHistoryModel",
    "QuoteModel",
    "ReleaseDisposition",
    "RevisionModel",
    "SequenceCounter",
    "SupervisorBlacklistModel",
    "WalletModel",
    "WalletOwnerType",
]
