"""
ORM-Level Immutability Enforcement.

===============================================================================
WHAT THIS GUARDS
===============================================================================

SQLAlchemy fires mapper events before UPDATE/DELETE statements reach the
database.  The listeners below intercept them and raise
ImmutabilityViolationError, aborting the flush before anything is written:

    session.flush()
         |
         v
    [before_update] --> _check_*()  --> ImmutabilityViolationError
    [before_delete] --> _check_*()  --> ImmutabilityViolationError
         |
         v
    SQL sent to database (only if checks pass)

Entity                   | When Immutable                  | Mutable fields
-------------------------|---------------------------------|---------------------------
LedgerEntryModel         | ALWAYS                          | none
QuoteModel               | ALWAYS                          | none
ProjectStatusHistoryModel| ALWAYS                          | none
ProjectModel             | money fields once paid_at set;  | everything else
                         | never deletable                 |
RevisionModel            | identity/feedback always;       | resolved_at/resolved_by/
                         | fully once resolved             | response_notes (once)
AssignmentModel          | binding + payout snapshot       | released_at (once)
PayoutRequestModel       | once reviewed                   | review fields while pending

updated_at / updated_by_id are audit metadata and may always change.

Bulk Core statements (``update(...)``) bypass mapper events.  The state
machine's compare-and-set only touches status/version/updated_at, and the
assignment resolver's counter update only touches doer_profiles; neither
touches a protected column.

===============================================================================
USAGE
===============================================================================

    from assignx_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()  # once at startup

Tests that need to seed corrupt data may call
``unregister_immutability_listeners()`` and re-register afterwards.
"""

from sqlalchemy import event
from sqlalchemy.orm.attributes import get_history

from assignx_kernel.exceptions import ImmutabilityViolationError
from assignx_kernel.logging_config import get_logger

logger = get_logger("db.immutability")

_AUDIT_METADATA_FIELDS = frozenset({"updated_at", "updated_by_id"})


def _changed_fields(target, fields=None) -> list[str]:
    """Names of mapped columns on ``target`` with pending changes."""
    mapper = target.__mapper__
    names = fields if fields is not None else [c.key for c in mapper.column_attrs]
    changed = []
    for name in names:
        if name in _AUDIT_METADATA_FIELDS:
            continue
        if get_history(target, name).has_changes():
            changed.append(name)
    return changed


def _persisted_value(target, name):
    """Value of ``name`` as last loaded from the database."""
    hist = get_history(target, name)
    if hist.deleted:
        return hist.deleted[0]
    if hist.unchanged:
        return hist.unchanged[0]
    return None


def _violation(target, reason: str) -> ImmutabilityViolationError:
    entity_type = type(target).__name__
    logger.error(
        "immutability_violation",
        extra={"entity_type": entity_type, "entity_id": str(target.id), "reason": reason},
    )
    return ImmutabilityViolationError(entity_type, str(target.id), reason)


# =============================================================================
# Append-only records
# =============================================================================


def _check_append_only_update(mapper, connection, target):
    changed = _changed_fields(target)
    if changed:
        raise _violation(target, f"append-only record; attempted change to {changed}")


def _check_append_only_delete(mapper, connection, target):
    raise _violation(target, "append-only record cannot be deleted")


# =============================================================================
# Projects
# =============================================================================


def _check_project_update(mapper, connection, target):
    from assignx_kernel.models.project import PROJECT_MONEY_FIELDS

    if _persisted_value(target, "paid_at") is None:
        return
    changed = _changed_fields(target, PROJECT_MONEY_FIELDS)
    if changed:
        raise _violation(
            target,
            f"monetary fields are frozen after payment; attempted change to {changed}",
        )


def _check_project_delete(mapper, connection, target):
    raise _violation(target, "projects are archived, never deleted")


# =============================================================================
# Revisions, assignments, payouts
# =============================================================================


def _check_revision_update(mapper, connection, target):
    frozen = _changed_fields(
        target, ("project_id", "revision_number", "requested_by", "feedback", "opened_at")
    )
    if frozen:
        raise _violation(target, f"revision identity is immutable; attempted change to {frozen}")
    if _persisted_value(target, "resolved_at") is not None:
        changed = _changed_fields(target)
        if changed:
            raise _violation(target, f"resolved revision is immutable; attempted change to {changed}")


def _check_assignment_update(mapper, connection, target):
    frozen = _changed_fields(
        target, ("project_id", "doer_id", "supervisor_id", "payout_amount", "assigned_at")
    )
    if frozen:
        raise _violation(target, f"assignment binding is immutable; attempted change to {frozen}")
    if _persisted_value(target, "released_at") is not None and _changed_fields(target, ("released_at",)):
        raise _violation(target, "assignment already released")


def _check_payout_update(mapper, connection, target):
    from assignx_kernel.models.payout import PayoutStatus

    if _persisted_value(target, "status") == PayoutStatus.PENDING.value:
        frozen = _changed_fields(target, ("profile_id", "wallet_id", "requested_amount", "requester_type"))
        if frozen:
            raise _violation(target, f"payout request terms are immutable; attempted change to {frozen}")
        return
    changed = _changed_fields(target)
    if changed:
        raise _violation(target, f"reviewed payout is immutable; attempted change to {changed}")


# =============================================================================
# Registration
# =============================================================================


def _listener_table():
    from assignx_kernel.models.assignment import AssignmentModel
    from assignx_kernel.models.payout import PayoutRequestModel
    from assignx_kernel.models.project import ProjectModel, ProjectStatusHistoryModel
    from assignx_kernel.models.quote import QuoteModel
    from assignx_kernel.models.revision import RevisionModel
    from assignx_kernel.models.wallet import LedgerEntryModel

    return (
        (LedgerEntryModel, "before_update", _check_append_only_update),
        (LedgerEntryModel, "before_delete", _check_append_only_delete),
        (QuoteModel, "before_update", _check_append_only_update),
        (QuoteModel, "before_delete", _check_append_only_delete),
        (ProjectStatusHistoryModel, "before_update", _check_append_only_update),
        (ProjectStatusHistoryModel, "before_delete", _check_append_only_delete),
        (ProjectModel, "before_update", _check_project_update),
        (ProjectModel, "before_delete", _check_project_delete),
        (RevisionModel, "before_update", _check_revision_update),
        (RevisionModel, "before_delete", _check_append_only_delete),
        (AssignmentModel, "before_update", _check_assignment_update),
        (AssignmentModel, "before_delete", _check_append_only_delete),
        (PayoutRequestModel, "before_update", _check_payout_update),
        (PayoutRequestModel, "before_delete", _check_append_only_delete),
    )


def register_immutability_listeners() -> None:
    """Register all immutability listeners (idempotent)."""
    for target, name, fn in _listener_table():
        if not event.contains(target, name, fn):
            event.listen(target, name, fn)
    logger.debug("immutability_listeners_registered")


def unregister_immutability_listeners() -> None:
    """Remove immutability listeners. TESTS ONLY."""
    for target, name, fn in _listener_table():
        if event.contains(target, name, fn):
            event.remove(target, name, fn)
