"""
Typed Exception Hierarchy for the AssignX lifecycle kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

A caller (API layer, scheduled task, admin tool) must be able to tell a
business-rule rejection from a transient conflict from a corrupted ledger
without parsing message strings.  Every error therefore has:

  1. A TYPED exception class (catch by type, not message)
  2. A CODE attribute (machine-readable, API-safe)
  3. Structured DATA attributes (project_id, wallet_id, amounts ...)

Example:
    try:
        lifecycle.confirm_payment(confirmation, actor_id=client_id)
    except PaymentAmountMismatchError as e:
        api_response(code=e.code, expected=e.expected, received=e.received)

The kernel never substitutes a placeholder value for a failed operation.
It raises; the outer layer decides presentation.

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    AssignXError (base)
    |
    +-- ValidationError                 (rejected synchronously, no state change)
    |   +-- InvalidQuoteInputError
    |   +-- InvalidUrgencyTierError
    |   +-- InvalidAmountError
    |
    +-- GuardViolationError             (business rule, no side effects applied)
    |   +-- InvalidStateTransitionError
    |   +-- GuardNotSatisfiedError
    |   +-- DoerNotEligibleError
    |   +-- NoEligibleDoerError
    |   +-- RevisionLimitExceededError
    |   +-- RevisionAlreadyOpenError
    |   +-- NoOpenRevisionError
    |   +-- PayoutBelowMinimumError
    |   +-- PayoutStateError
    |
    +-- ConcurrencyError                (transient: re-read and retry)
    |   +-- ConcurrentModificationError
    |   +-- InsufficientBalanceError
    |
    +-- LedgerIntegrityError            (fatal: manual reconciliation)
    |   +-- InvalidHoldStateError
    |   +-- LedgerBalanceMismatchError
    |   +-- IdempotencyConflictError
    |   +-- ProjectInvariantViolationError
    |
    +-- PaymentError
    |   +-- PaymentAmountMismatchError
    |
    +-- NotFoundError
    |   +-- ProjectNotFoundError
    |   +-- WalletNotFoundError
    |   +-- DoerNotFoundError
    |   +-- QuoteNotFoundError
    |   +-- PayoutNotFoundError
    |
    +-- ImmutabilityViolationError
    |
    +-- ConfigurationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category     | Code                       | When Raised
-------------|----------------------------|------------------------------------------
Validation   | INVALID_QUOTE_INPUT        | Bad unit count, rate, or complexity
             | INVALID_URGENCY_TIER       | Unknown urgency tier
             | INVALID_AMOUNT             | Amount is not a positive integer
-------------|----------------------------|------------------------------------------
Guard        | INVALID_STATE_TRANSITION   | Event not accepted from current status
             | GUARD_NOT_SATISFIED        | Event accepted but its guard failed
             | DOER_NOT_ELIGIBLE          | Candidate doer fails eligibility
             | NO_ELIGIBLE_DOER           | Auto-selection found nobody
             | REVISION_LIMIT_EXCEEDED    | QC reject past max_revisions
             | REVISION_ALREADY_OPEN      | Second open revision attempted
             | NO_OPEN_REVISION           | Close with nothing open
             | PAYOUT_BELOW_MINIMUM       | Withdrawal under configured minimum
             | PAYOUT_STATE               | Review of a non-pending payout
-------------|----------------------------|------------------------------------------
Concurrency  | CONCURRENT_MODIFICATION    | Version/status check-and-set lost
             | INSUFFICIENT_BALANCE       | Available balance below amount
-------------|----------------------------|------------------------------------------
Integrity    | INVALID_HOLD_STATE         | Release exceeds held-for-reference
             | LEDGER_BALANCE_MISMATCH    | Cached balance drifted from ledger
             | IDEMPOTENCY_CONFLICT       | Same ledger key, different amount
             | PROJECT_INVARIANT_VIOLATION| Project row violates a status rule
-------------|----------------------------|------------------------------------------
Payment      | PAYMENT_AMOUNT_MISMATCH    | Confirmed amount != quoted amount
-------------|----------------------------|------------------------------------------
Not found    | *_NOT_FOUND                | Unknown identifier
-------------|----------------------------|------------------------------------------
Immutability | IMMUTABILITY_VIOLATION     | Ledger/quote/history edit, money edit
             |                            | after payment, project deletion
-------------|----------------------------|------------------------------------------
Config       | CONFIGURATION_ERROR        | Invalid engine configuration
"""

from __future__ import annotations

from typing import Any


class AssignXError(Exception):
    """Base exception for all AssignX kernel errors."""

    code: str = "ASSIGNX_ERROR"

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


# =============================================================================
# Validation
# =============================================================================


class ValidationError(AssignXError):
    """Base for synchronous input validation failures."""

    code: str = "VALIDATION_ERROR"


class InvalidQuoteInputError(ValidationError):
    """Quote inputs are malformed (unit count, rate, complexity)."""

    code: str = "INVALID_QUOTE_INPUT"

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Invalid quote input: {reason}")


class InvalidUrgencyTierError(ValidationError):
    """Urgency tier is not one of the configured tiers."""

    code: str = "INVALID_URGENCY_TIER"

    def __init__(self, tier: str, known_tiers: tuple[str, ...] = ()):
        self.tier = tier
        self.known_tiers = known_tiers
        super().__init__(
            f"Unknown urgency tier {tier!r}; expected one of {list(known_tiers)}"
        )


class InvalidAmountError(ValidationError):
    """Money amount is not a positive integer of minor units."""

    code: str = "INVALID_AMOUNT"

    def __init__(self, amount: Any, operation: str):
        self.amount = amount
        self.operation = operation
        super().__init__(
            f"Amount for {operation} must be a positive integer of minor units, got {amount!r}"
        )


# =============================================================================
# Guard violations
# =============================================================================


class GuardViolationError(AssignXError):
    """Base for business-rule rejections. No side effects were applied."""

    code: str = "GUARD_VIOLATION"


class InvalidStateTransitionError(GuardViolationError):
    """Event is not accepted from the project's current status."""

    code: str = "INVALID_STATE_TRANSITION"

    def __init__(self, project_id: str, current_status: str, event: str):
        self.project_id = project_id
        self.current_status = current_status
        self.event = event
        super().__init__(
            f"Project {project_id}: event {event!r} is not valid from status {current_status!r}"
        )


class GuardNotSatisfiedError(GuardViolationError):
    """The transition exists but its guard rejected the request."""

    code: str = "GUARD_NOT_SATISFIED"

    def __init__(self, project_id: str, event: str, guard: str, reason: str):
        self.project_id = project_id
        self.event = event
        self.guard = guard
        self.reason = reason
        super().__init__(
            f"Project {project_id}: guard {guard!r} blocked {event!r}: {reason}"
        )


class DoerNotEligibleError(GuardViolationError):
    """Candidate doer fails an eligibility rule. ``reason`` names which."""

    code: str = "DOER_NOT_ELIGIBLE"

    def __init__(self, doer_id: str, reason: str):
        self.doer_id = doer_id
        self.reason = reason
        super().__init__(f"Doer {doer_id} is not eligible: {reason}")


class NoEligibleDoerError(GuardViolationError):
    """Automatic selection found no eligible doer for the project."""

    code: str = "NO_ELIGIBLE_DOER"

    def __init__(self, project_id: str, subject: str | None):
        self.project_id = project_id
        self.subject = subject
        super().__init__(
            f"No eligible doer for project {project_id} (subject={subject!r})"
        )


class RevisionLimitExceededError(GuardViolationError):
    """QC rejection would exceed the configured revision cap."""

    code: str = "REVISION_LIMIT_EXCEEDED"

    def __init__(self, project_id: str, revision_count: int, max_revisions: int):
        self.project_id = project_id
        self.revision_count = revision_count
        self.max_revisions = max_revisions
        super().__init__(
            f"Project {project_id} already has {revision_count} revisions "
            f"(max {max_revisions}); escalate instead"
        )


class RevisionAlreadyOpenError(GuardViolationError):
    """Project already has an unresolved revision."""

    code: str = "REVISION_ALREADY_OPEN"

    def __init__(self, project_id: str, revision_number: int):
        self.project_id = project_id
        self.revision_number = revision_number
        super().__init__(
            f"Project {project_id} already has open revision #{revision_number}"
        )


class NoOpenRevisionError(GuardViolationError):
    """Close requested but no revision is open."""

    code: str = "NO_OPEN_REVISION"

    def __init__(self, project_id: str):
        self.project_id = project_id
        super().__init__(f"Project {project_id} has no open revision")


class PayoutBelowMinimumError(GuardViolationError):
    """Requested withdrawal is below the configured minimum."""

    code: str = "PAYOUT_BELOW_MINIMUM"

    def __init__(self, requested: int, minimum: int):
        self.requested = requested
        self.minimum = minimum
        super().__init__(
            f"Payout of {requested} is below the minimum withdrawal of {minimum}"
        )


class PayoutStateError(GuardViolationError):
    """Payout request is not in a reviewable state."""

    code: str = "PAYOUT_STATE"

    def __init__(self, payout_id: str, status: str, action: str):
        self.payout_id = payout_id
        self.status = status
        self.action = action
        super().__init__(f"Cannot {action} payout {payout_id} in status {status!r}")


# =============================================================================
# Concurrency
# =============================================================================


class ConcurrencyError(AssignXError):
    """Base for transient conflicts. Callers may re-read and retry."""

    code: str = "CONCURRENCY_ERROR"


class ConcurrentModificationError(ConcurrencyError):
    """A concurrent writer changed the project between read and write."""

    code: str = "CONCURRENT_MODIFICATION"

    def __init__(
        self,
        entity_type: str,
        entity_id: str,
        expected_version: int | None = None,
        actual_version: int | None = None,
    ):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.expected_version = expected_version
        self.actual_version = actual_version
        super().__init__(
            f"{entity_type} {entity_id} was modified concurrently "
            f"(expected version {expected_version}, found {actual_version})"
        )


class InsufficientBalanceError(ConcurrencyError):
    """Available balance is lower than the requested hold or debit."""

    code: str = "INSUFFICIENT_BALANCE"

    def __init__(self, wallet_id: str, available: int, requested: int):
        self.wallet_id = wallet_id
        self.available = available
        self.requested = requested
        super().__init__(
            f"Wallet {wallet_id} has {available} available, {requested} requested"
        )


# =============================================================================
# Ledger integrity
# =============================================================================


class LedgerIntegrityError(AssignXError):
    """Base for fatal integrity failures. Never auto-corrected."""

    code: str = "LEDGER_INTEGRITY_ERROR"


class InvalidHoldStateError(LedgerIntegrityError):
    """Release amount exceeds what is held for the reference."""

    code: str = "INVALID_HOLD_STATE"

    def __init__(self, wallet_id: str, reference: str, held: int, requested: int):
        self.wallet_id = wallet_id
        self.reference = reference
        self.held = held
        self.requested = requested
        super().__init__(
            f"Wallet {wallet_id} holds {held} for {reference!r}, cannot release {requested}"
        )


class LedgerBalanceMismatchError(LedgerIntegrityError):
    """Cached wallet balance differs from the ledger replay."""

    code: str = "LEDGER_BALANCE_MISMATCH"

    def __init__(
        self,
        wallet_id: str,
        cached_available: int,
        cached_held: int,
        replayed_available: int,
        replayed_held: int,
    ):
        self.wallet_id = wallet_id
        self.cached_available = cached_available
        self.cached_held = cached_held
        self.replayed_available = replayed_available
        self.replayed_held = replayed_held
        super().__init__(
            f"Wallet {wallet_id} cached (available={cached_available}, held={cached_held}) "
            f"!= ledger (available={replayed_available}, held={replayed_held})"
        )


class IdempotencyConflictError(LedgerIntegrityError):
    """Ledger key reused with a different amount."""

    code: str = "IDEMPOTENCY_CONFLICT"

    def __init__(self, idempotency_key: str, recorded_amount: int, requested_amount: int):
        self.idempotency_key = idempotency_key
        self.recorded_amount = recorded_amount
        self.requested_amount = requested_amount
        super().__init__(
            f"Ledger key {idempotency_key!r} already recorded {recorded_amount}, "
            f"requested {requested_amount}"
        )


class ProjectInvariantViolationError(LedgerIntegrityError):
    """Project row violates a status-dependent field rule."""

    code: str = "PROJECT_INVARIANT_VIOLATION"

    def __init__(self, project_id: str, rule: str, status: str):
        self.project_id = project_id
        self.rule = rule
        self.status = status
        super().__init__(f"Project {project_id} in {status!r} violates: {rule}")


# =============================================================================
# Payment
# =============================================================================


class PaymentError(AssignXError):
    """Base for payment confirmation failures."""

    code: str = "PAYMENT_ERROR"


class PaymentAmountMismatchError(PaymentError):
    """Confirmed amount differs from the quoted amount."""

    code: str = "PAYMENT_AMOUNT_MISMATCH"

    def __init__(self, project_id: str, expected: int | None, received: int):
        self.project_id = project_id
        self.expected = expected
        self.received = received
        super().__init__(
            f"Project {project_id}: payment of {received} does not match quoted {expected}"
        )


# =============================================================================
# Not found
# =============================================================================


class NotFoundError(AssignXError):
    """Base for unknown identifiers."""

    code: str = "NOT_FOUND"


class ProjectNotFoundError(NotFoundError):
    code: str = "PROJECT_NOT_FOUND"

    def __init__(self, project_id: str):
        self.project_id = project_id
        super().__init__(f"Project not found: {project_id}")


class WalletNotFoundError(NotFoundError):
    code: str = "WALLET_NOT_FOUND"

    def __init__(self, wallet_id: str):
        self.wallet_id = wallet_id
        super().__init__(f"Wallet not found: {wallet_id}")


class DoerNotFoundError(NotFoundError):
    code: str = "DOER_NOT_FOUND"

    def __init__(self, doer_id: str):
        self.doer_id = doer_id
        super().__init__(f"Doer profile not found: {doer_id}")


class QuoteNotFoundError(NotFoundError):
    code: str = "QUOTE_NOT_FOUND"

    def __init__(self, project_id: str):
        self.project_id = project_id
        super().__init__(f"Project {project_id} has no active quote")


class PayoutNotFoundError(NotFoundError):
    code: str = "PAYOUT_NOT_FOUND"

    def __init__(self, payout_id: str):
        self.payout_id = payout_id
        super().__init__(f"Payout request not found: {payout_id}")


# =============================================================================
# Immutability / configuration
# =============================================================================


class ImmutabilityViolationError(AssignXError):
    """Attempted change to an append-only or frozen record."""

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(f"Cannot modify {entity_type} {entity_id}: {reason}")


class ConfigurationError(AssignXError):
    """Engine configuration is missing or invalid."""

    code: str = "CONFIGURATION_ERROR"

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"Invalid configuration for {field!r}: {reason}")
