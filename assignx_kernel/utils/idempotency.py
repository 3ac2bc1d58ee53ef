"""
Idempotency key generation for ledger entries.

A ledger key names one money movement: the wallet, the kind of movement,
the release disposition where relevant, and the business reference.  The
key carries a unique constraint, so replaying a settlement step or a
payment confirmation cannot move money twice.
"""

from uuid import UUID


def ledger_idempotency_key(
    wallet_id: UUID | str,
    kind: str,
    reference: str,
    disposition: str | None = None,
) -> str:
    """
    Build the idempotency key for a ledger entry.

    Format: wallet_id:kind[:disposition]:reference

    Example:
        >>> ledger_idempotency_key(wid, "release", "project:42:payment", "debit")
        "6f1c...:release:debit:project:42:payment"
    """
    if disposition:
        return f"{wallet_id}:{kind}:{disposition}:{reference}"
    return f"{wallet_id}:{kind}:{reference}"


def project_reference(project_id: UUID | str, purpose: str) -> str:
    """Business reference for money tied to a project: ``project:<id>:<purpose>``."""
    return f"project:{project_id}:{purpose}"


def payout_reference(payout_id: UUID | str) -> str:
    return f"payout:{payout_id}"
