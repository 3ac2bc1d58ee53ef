"""
Project lifecycle table (``assignx_kernel.domain.project_workflow``).

Responsibility
--------------
Declares the project statuses, the events that move between them, and the
single ``PROJECT_WORKFLOW`` transition table.  The state machine service
dispatches by looking up ``(current_status, event)`` here; a missing entry
is an ``InvalidStateTransitionError``.

Architecture position
---------------------
**Kernel domain layer** -- pure data.  Imported by models (for the status
enum and the status-dependent field rules) and by services.

Invariants enforced
-------------------
* Forward-only, except the QC reject -> revision -> resubmit loop, which
  is bounded by ``max_revisions`` in the state machine guard.
* ``cancelled`` is reachable only from pre-assignment states.
* ``qc_rejected -> in_revision`` is automatic and never externally
  triggerable.
"""

from __future__ import annotations

from enum import Enum

from assignx_kernel.domain.workflow import Guard, Transition, Workflow


class ProjectStatus(str, Enum):
    """Canonical project status. Stored as its string value."""

    SUBMITTED = "submitted"
    ANALYZING = "analyzing"
    QUOTED = "quoted"
    PAYMENT_PENDING = "payment_pending"
    PAID = "paid"
    ASSIGNED = "assigned"
    IN_PROGRESS = "in_progress"
    SUBMITTED_FOR_QC = "submitted_for_qc"
    QC_APPROVED = "qc_approved"
    QC_REJECTED = "qc_rejected"
    IN_REVISION = "in_revision"
    DELIVERED = "delivered"
    COMPLETED = "completed"
    AUTO_APPROVED = "auto_approved"
    CANCELLED = "cancelled"
    ESCALATED = "escalated"


class ProjectEvent(str, Enum):
    """Events accepted by the project state machine."""

    ANALYZE = "analyze"
    QUOTE = "quote"
    REQUOTE = "requote"
    INITIATE_PAYMENT = "initiate_payment"
    PAYMENT_CONFIRMED = "payment_confirmed"
    ASSIGN = "assign"
    ACCEPT_POOL_TASK = "accept_pool_task"
    START_WORK = "start_work"
    SUBMIT_WORK = "submit_work"
    QC_APPROVE = "qc_approve"
    QC_REJECT = "qc_reject"
    BEGIN_REVISION = "begin_revision"
    RESUBMIT = "resubmit"
    DELIVER = "deliver"
    CLIENT_ACCEPT = "client_accept"
    DEADLINE_ELAPSED = "deadline_elapsed"
    CANCEL = "cancel"
    ESCALATE = "escalate"


S = ProjectStatus
E = ProjectEvent

# Statuses in which doer_id may be set.
DOER_BOUND_STATES: frozenset[ProjectStatus] = frozenset({
    S.ASSIGNED,
    S.IN_PROGRESS,
    S.SUBMITTED_FOR_QC,
    S.QC_APPROVED,
    S.QC_REJECTED,
    S.IN_REVISION,
    S.DELIVERED,
    S.COMPLETED,
    S.AUTO_APPROVED,
    S.ESCALATED,
})

# Statuses in which quoted_amount must be unset.
UNQUOTED_STATES: frozenset[ProjectStatus] = frozenset({S.SUBMITTED, S.ANALYZING})

# Statuses from which cancellation is automatic (no hold or hold refundable).
PRE_ASSIGNMENT_STATES: frozenset[ProjectStatus] = frozenset({
    S.SUBMITTED,
    S.ANALYZING,
    S.QUOTED,
    S.PAYMENT_PENDING,
    S.PAID,
})

# Entry into these fires settlement.
SETTLEMENT_STATES: frozenset[ProjectStatus] = frozenset({S.COMPLETED, S.AUTO_APPROVED})


SUPERVISOR_CLAIMS = Guard("supervisor_claims", "A supervisor takes ownership of the request")
VALID_QUOTE = Guard("valid_quote", "Quote calculator produced a valid breakdown")
SUPERVISOR_OWNS = Guard("supervisor_owns", "Only the claiming supervisor may act")
AMOUNT_MATCHES_QUOTE = Guard("amount_matches_quote", "Confirmed amount equals quoted amount")
ELIGIBLE_DOER = Guard("eligible_doer", "Assignment resolver bound an eligible doer")
DOER_SELF_ASSIGNS = Guard("doer_self_assigns", "The accepting doer is eligible for the open project")
DOER_OWNS = Guard("doer_owns", "Only the assigned doer may act")
DELIVERABLE_ATTACHED = Guard("deliverable_attached", "A deliverable reference is supplied")
FEEDBACK_WITHIN_CAP = Guard(
    "feedback_within_revision_cap",
    "Feedback is supplied and the revision count is below max_revisions",
)
CLIENT_OWNS = Guard("client_owns", "Only the project's client may accept")
AUTO_APPROVE_WINDOW_ELAPSED = Guard(
    "auto_approve_window_elapsed", "now >= auto_approve_at"
)


PROJECT_WORKFLOW = Workflow(
    name="project_lifecycle",
    description="Submission through quoting, payment, work, QC, delivery and settlement",
    initial_state=S.SUBMITTED.value,
    states=tuple(s.value for s in ProjectStatus),
    transitions=(
        Transition(S.SUBMITTED.value, S.ANALYZING.value, E.ANALYZE.value, guard=SUPERVISOR_CLAIMS),
        Transition(S.ANALYZING.value, S.QUOTED.value, E.QUOTE.value, guard=VALID_QUOTE),
        Transition(S.QUOTED.value, S.ANALYZING.value, E.REQUOTE.value, guard=SUPERVISOR_OWNS),
        Transition(S.PAYMENT_PENDING.value, S.ANALYZING.value, E.REQUOTE.value, guard=SUPERVISOR_OWNS),
        Transition(S.QUOTED.value, S.PAYMENT_PENDING.value, E.INITIATE_PAYMENT.value, guard=CLIENT_OWNS),
        Transition(
            S.QUOTED.value, S.PAID.value, E.PAYMENT_CONFIRMED.value,
            guard=AMOUNT_MATCHES_QUOTE, moves_money=True,
        ),
        Transition(
            S.PAYMENT_PENDING.value, S.PAID.value, E.PAYMENT_CONFIRMED.value,
            guard=AMOUNT_MATCHES_QUOTE, moves_money=True,
        ),
        Transition(S.PAID.value, S.ASSIGNED.value, E.ASSIGN.value, guard=ELIGIBLE_DOER),
        Transition(
            S.PAID.value, S.ASSIGNED.value, E.ACCEPT_POOL_TASK.value, guard=DOER_SELF_ASSIGNS,
        ),
        Transition(S.ASSIGNED.value, S.IN_PROGRESS.value, E.START_WORK.value, guard=DOER_OWNS),
        Transition(
            S.IN_PROGRESS.value, S.SUBMITTED_FOR_QC.value, E.SUBMIT_WORK.value,
            guard=DELIVERABLE_ATTACHED,
        ),
        Transition(S.SUBMITTED_FOR_QC.value, S.QC_APPROVED.value, E.QC_APPROVE.value, guard=SUPERVISOR_OWNS),
        Transition(
            S.SUBMITTED_FOR_QC.value, S.QC_REJECTED.value, E.QC_REJECT.value,
            guard=FEEDBACK_WITHIN_CAP,
        ),
        Transition(S.QC_REJECTED.value, S.IN_REVISION.value, E.BEGIN_REVISION.value, automatic=True),
        Transition(
            S.IN_REVISION.value, S.SUBMITTED_FOR_QC.value, E.RESUBMIT.value,
            guard=DELIVERABLE_ATTACHED,
        ),
        Transition(S.QC_APPROVED.value, S.DELIVERED.value, E.DELIVER.value),
        Transition(
            S.DELIVERED.value, S.COMPLETED.value, E.CLIENT_ACCEPT.value,
            guard=CLIENT_OWNS, moves_money=True,
        ),
        Transition(
            S.DELIVERED.value, S.AUTO_APPROVED.value, E.DEADLINE_ELAPSED.value,
            guard=AUTO_APPROVE_WINDOW_ELAPSED, moves_money=True,
        ),
        Transition(S.SUBMITTED.value, S.CANCELLED.value, E.CANCEL.value),
        Transition(S.ANALYZING.value, S.CANCELLED.value, E.CANCEL.value),
        Transition(S.QUOTED.value, S.CANCELLED.value, E.CANCEL.value),
        Transition(S.PAYMENT_PENDING.value, S.CANCELLED.value, E.CANCEL.value),
        Transition(S.PAID.value, S.CANCELLED.value, E.CANCEL.value, moves_money=True),
        Transition(S.SUBMITTED_FOR_QC.value, S.ESCALATED.value, E.ESCALATE.value),
        Transition(S.IN_REVISION.value, S.ESCALATED.value, E.ESCALATE.value),
    ),
    terminal_states=(
        S.COMPLETED.value,
        S.AUTO_APPROVED.value,
        S.CANCELLED.value,
        S.ESCALATED.value,
    ),
)


def accepted_events(status: ProjectStatus | str) -> frozenset[str]:
    """Externally triggerable events accepted in ``status``."""
    return PROJECT_WORKFLOW.actions_from(ProjectStatus(status).value)
