"""
DTOs -- Pure domain data transfer objects.

Responsibility:
    Immutable data structures that cross the kernel boundary: read models
    returned by selectors and services (ProjectInfo, WalletBalance,
    LedgerEntryInfo ...), inputs from external collaborators
    (PaymentConfirmation), results of state-changing operations
    (TransitionResult, LedgerOperationResult, SettlementResult), outbound
    notification intents, and the policy values the kernel receives instead
    of reading configuration itself.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.  ``from_model``
    class methods are boundary converters invoked only from services and
    selectors.

Invariants enforced:
    - Services and selectors return DTOs, never live ORM entities.
    - Amounts are integer minor units.

Audit relevance:
    TransitionResult carries from/to status and the resulting version, which
    is exactly what the status history row records.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, Any, Mapping
from uuid import UUID

from assignx_kernel.domain.project_workflow import ProjectStatus
from assignx_kernel.domain.quote_calculator import (
    DEFAULT_COMPLEXITY_MULTIPLIERS,
    DEFAULT_URGENCY_MULTIPLIERS,
)

if TYPE_CHECKING:
    from assignx_kernel.models.assignment import AssignmentModel, DoerProfileModel
    from assignx_kernel.models.payout import PayoutRequestModel
    from assignx_kernel.models.project import ProjectModel
    from assignx_kernel.models.quote import QuoteModel
    from assignx_kernel.models.revision import RevisionModel
    from assignx_kernel.models.wallet import LedgerEntryModel, WalletModel


# =============================================================================
# Policies (values supplied by the outer layer from configuration)
# =============================================================================


@dataclass(frozen=True)
class LifecyclePolicy:
    """Thresholds the state machine applies. Defaults match the shipped config."""

    max_revisions: int = 3
    auto_approve_hours: int = 48
    auto_deliver_on_qc_approval: bool = False

    def __post_init__(self) -> None:
        if self.max_revisions < 0:
            raise ValueError("max_revisions must be >= 0")
        if self.auto_approve_hours <= 0:
            raise ValueError("auto_approve_hours must be positive")


@dataclass(frozen=True)
class PricingPolicy:
    """Rates the quote event prices with.  Rates are minor units per unit."""

    rate_per_word: Decimal = Decimal("50")
    rate_per_page: Decimal = Decimal("12500")
    commission_rate: Decimal = Decimal("0.15")
    platform_fee_rate: Decimal = Decimal("0.20")
    urgency_multipliers: Mapping[str, Decimal] = field(
        default_factory=lambda: dict(DEFAULT_URGENCY_MULTIPLIERS)
    )
    complexity_multipliers: Mapping[str, Decimal] = field(
        default_factory=lambda: dict(DEFAULT_COMPLEXITY_MULTIPLIERS)
    )


class RankingKey(str, Enum):
    """Keys the assignment resolver can order eligible doers by."""

    RATING_DESC = "rating_desc"
    AVAILABILITY_RECENCY = "availability_recency"
    LOAD_ASC = "load_asc"


@dataclass(frozen=True)
class AssignmentPolicy:
    ranking: tuple[RankingKey, ...] = (
        RankingKey.RATING_DESC,
        RankingKey.AVAILABILITY_RECENCY,
    )


# =============================================================================
# Inputs from collaborators
# =============================================================================


@dataclass(frozen=True)
class PaymentConfirmation:
    """Delivered by the payment gateway collaborator.

    ``funded_from_wallet`` is True when the client paid from an existing
    wallet balance rather than through the gateway; no top-up credit is
    recorded in that case.
    """

    project_id: UUID
    confirmed_amount: int
    reference: str
    funded_from_wallet: bool = False


# =============================================================================
# Read models
# =============================================================================


@dataclass(frozen=True)
class ProjectInfo:
    id: UUID
    project_number: str
    client_id: UUID
    title: str
    subject: str | None
    status: ProjectStatus
    version: int
    deadline: datetime
    word_count: int | None = None
    page_count: int | None = None
    supervisor_id: UUID | None = None
    doer_id: UUID | None = None
    active_quote_id: UUID | None = None
    quoted_amount: int | None = None
    doer_payout: int | None = None
    supervisor_commission: int | None = None
    platform_fee: int | None = None
    currency: str = "INR"
    payment_reference: str | None = None
    latest_deliverable_ref: str | None = None
    paid_at: datetime | None = None
    doer_assigned_at: datetime | None = None
    delivered_at: datetime | None = None
    auto_approve_at: datetime | None = None
    completed_at: datetime | None = None
    cancelled_at: datetime | None = None
    cancellation_reason: str | None = None
    settled_at: datetime | None = None

    @classmethod
    def from_model(cls, model: ProjectModel) -> ProjectInfo:
        return cls(
            id=model.id,
            project_number=model.project_number,
            client_id=model.client_id,
            title=model.title,
            subject=model.subject,
            status=ProjectStatus(model.status),
            version=model.version,
            deadline=model.deadline,
            word_count=model.word_count,
            page_count=model.page_count,
            supervisor_id=model.supervisor_id,
            doer_id=model.doer_id,
            active_quote_id=model.active_quote_id,
            quoted_amount=model.quoted_amount,
            doer_payout=model.doer_payout,
            supervisor_commission=model.supervisor_commission,
            platform_fee=model.platform_fee,
            currency=model.currency,
            payment_reference=model.payment_reference,
            latest_deliverable_ref=model.latest_deliverable_ref,
            paid_at=model.paid_at,
            doer_assigned_at=model.doer_assigned_at,
            delivered_at=model.delivered_at,
            auto_approve_at=model.auto_approve_at,
            completed_at=model.completed_at,
            cancelled_at=model.cancelled_at,
            cancellation_reason=model.cancellation_reason,
            settled_at=model.settled_at,
        )


@dataclass(frozen=True)
class QuoteInfo:
    id: UUID
    project_id: UUID
    quote_number: int
    unit: str
    unit_count: int
    rate_per_unit: Decimal
    base_price: Decimal
    urgency_tier: str
    urgency_multiplier: Decimal
    complexity: str
    complexity_multiplier: Decimal
    commission_rate: Decimal
    platform_fee_rate: Decimal
    client_price: int
    doer_payout: int
    supervisor_commission: int
    platform_fee: int
    quoted_by: UUID
    created_at: datetime

    @classmethod
    def from_model(cls, model: QuoteModel) -> QuoteInfo:
        return cls(
            id=model.id,
            project_id=model.project_id,
            quote_number=model.quote_number,
            unit=model.unit,
            unit_count=model.unit_count,
            rate_per_unit=model.rate_per_unit,
            base_price=model.base_price,
            urgency_tier=model.urgency_tier,
            urgency_multiplier=model.urgency_multiplier,
            complexity=model.complexity,
            complexity_multiplier=model.complexity_multiplier,
            commission_rate=model.commission_rate,
            platform_fee_rate=model.platform_fee_rate,
            client_price=model.client_price,
            doer_payout=model.doer_payout,
            supervisor_commission=model.supervisor_commission,
            platform_fee=model.platform_fee,
            quoted_by=model.quoted_by,
            created_at=model.created_at,
        )


@dataclass(frozen=True)
class WalletBalance:
    wallet_id: UUID
    owner_id: UUID
    owner_type: str
    currency: str
    available: int
    held: int
    total_credited: int
    total_debited: int
    total_withdrawn: int

    @property
    def total(self) -> int:
        return self.available + self.held

    @classmethod
    def from_model(cls, model: WalletModel) -> WalletBalance:
        return cls(
            wallet_id=model.id,
            owner_id=model.owner_id,
            owner_type=model.owner_type,
            currency=model.currency,
            available=model.available,
            held=model.held,
            total_credited=model.total_credited,
            total_debited=model.total_debited,
            total_withdrawn=model.total_withdrawn,
        )


@dataclass(frozen=True)
class LedgerEntryInfo:
    id: UUID
    wallet_id: UUID
    seq: int
    kind: str
    disposition: str | None
    category: str
    amount: int
    held_delta: int
    balance_after: int
    held_after: int
    reference: str
    hold_reference: str | None
    idempotency_key: str
    recorded_at: datetime

    @classmethod
    def from_model(cls, model: LedgerEntryModel) -> LedgerEntryInfo:
        return cls(
            id=model.id,
            wallet_id=model.wallet_id,
            seq=model.seq,
            kind=model.kind,
            disposition=model.disposition,
            category=model.category,
            amount=model.amount,
            held_delta=model.held_delta,
            balance_after=model.balance_after,
            held_after=model.held_after,
            reference=model.reference,
            hold_reference=model.hold_reference,
            idempotency_key=model.idempotency_key,
            recorded_at=model.recorded_at,
        )


@dataclass(frozen=True)
class AssignmentInfo:
    id: UUID
    project_id: UUID
    doer_id: UUID
    supervisor_id: UUID | None
    payout_amount: int
    assigned_at: datetime
    released_at: datetime | None = None

    @classmethod
    def from_model(cls, model: AssignmentModel) -> AssignmentInfo:
        return cls(
            id=model.id,
            project_id=model.project_id,
            doer_id=model.doer_id,
            supervisor_id=model.supervisor_id,
            payout_amount=model.payout_amount,
            assigned_at=model.assigned_at,
            released_at=model.released_at,
        )


@dataclass(frozen=True)
class RevisionInfo:
    id: UUID
    project_id: UUID
    revision_number: int
    requested_by: UUID
    feedback: str
    opened_at: datetime
    resolved_at: datetime | None = None
    response_notes: str | None = None

    @property
    def is_open(self) -> bool:
        return self.resolved_at is None

    @classmethod
    def from_model(cls, model: RevisionModel) -> RevisionInfo:
        return cls(
            id=model.id,
            project_id=model.project_id,
            revision_number=model.revision_number,
            requested_by=model.requested_by,
            feedback=model.feedback,
            opened_at=model.opened_at,
            resolved_at=model.resolved_at,
            response_notes=model.response_notes,
        )


@dataclass(frozen=True)
class PayoutInfo:
    id: UUID
    profile_id: UUID
    wallet_id: UUID
    requested_amount: int
    status: str
    approved_amount: int | None = None
    reviewed_by: UUID | None = None
    reviewed_at: datetime | None = None
    rejection_reason: str | None = None

    @classmethod
    def from_model(cls, model: PayoutRequestModel) -> PayoutInfo:
        return cls(
            id=model.id,
            profile_id=model.profile_id,
            wallet_id=model.wallet_id,
            requested_amount=model.requested_amount,
            status=model.status,
            approved_amount=model.approved_amount,
            reviewed_by=model.reviewed_by,
            reviewed_at=model.reviewed_at,
            rejection_reason=model.rejection_reason,
        )


# =============================================================================
# Operation results
# =============================================================================


class LedgerOperationStatus(str, Enum):
    APPLIED = "applied"
    ALREADY_APPLIED = "already_applied"


@dataclass(frozen=True)
class LedgerOperationResult:
    """Outcome of one WalletService call."""

    status: LedgerOperationStatus
    entry: LedgerEntryInfo
    balance: WalletBalance

    @property
    def applied(self) -> bool:
        return self.status == LedgerOperationStatus.APPLIED


class SettlementStatus(str, Enum):
    SETTLED = "settled"
    ALREADY_SETTLED = "already_settled"


@dataclass(frozen=True)
class SettlementResult:
    project_id: UUID
    status: SettlementStatus
    client_debited: int = 0
    doer_credited: int = 0
    supervisor_credited: int = 0
    platform_credited: int = 0
    steps_applied: int = 0
    steps_skipped: int = 0


class NotificationKind(str, Enum):
    QUOTE_READY = "quote_ready"
    PAYMENT_RECEIVED = "payment_received"
    DOER_ASSIGNED = "doer_assigned"
    WORK_SUBMITTED = "work_submitted"
    QC_APPROVED = "qc_approved"
    QC_REJECTED = "qc_rejected"
    DELIVERED = "delivered"
    SETTLED = "settled"
    CANCELLED = "cancelled"
    ESCALATED = "escalated"
    PAYOUT_REVIEWED = "payout_reviewed"


@dataclass(frozen=True)
class NotificationIntent:
    """Fire-and-forget message for the notification collaborator."""

    kind: NotificationKind
    project_id: UUID | None
    recipient_ids: tuple[UUID, ...]
    payload: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class TransitionResult:
    """Outcome of an applied project transition.

    ``path`` lists every status passed through, so a QC rejection reports
    ``(submitted_for_qc, qc_rejected, in_revision)``.
    """

    project: ProjectInfo
    event: str
    from_status: ProjectStatus
    to_status: ProjectStatus
    version: int
    path: tuple[ProjectStatus, ...] = ()
    notifications: tuple[NotificationIntent, ...] = ()
    settlement: SettlementResult | None = None
    assignment: AssignmentInfo | None = None
    revision: RevisionInfo | None = None
    quote: QuoteInfo | None = None


@dataclass(frozen=True)
class DoerProfileInfo:
    profile_id: UUID
    is_available: bool
    is_activated: bool
    subjects: tuple[str, ...]
    max_concurrent_projects: int
    active_assignment_count: int
    average_rating: Decimal
    joined_at: datetime
    last_available_at: datetime | None = None
    display_name: str | None = None

    @property
    def has_capacity(self) -> bool:
        return self.active_assignment_count < self.max_concurrent_projects

    @classmethod
    def from_model(cls, model: DoerProfileModel) -> DoerProfileInfo:
        return cls(
            profile_id=model.profile_id,
            is_available=model.is_available,
            is_activated=model.is_activated,
            subjects=tuple(model.subjects or ()),
            max_concurrent_projects=model.max_concurrent_projects,
            active_assignment_count=model.active_assignment_count,
            average_rating=Decimal(model.average_rating),
            joined_at=model.joined_at,
            last_available_at=model.last_available_at,
            display_name=model.display_name,
        )
