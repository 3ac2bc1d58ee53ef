"""
BaseService -- abstract base for all kernel services.

Responsibility:
    Common constructor and session-handling contract for every write-side
    service in the kernel.  Services use ``session.flush()`` and never
    ``session.commit()``.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.

Invariants enforced:
    Transaction boundaries belong to the caller
    (``assignx_services.lifecycle_service`` or a test harness).  A state
    transition, its wallet operations and its history row are therefore
    flushed into one transaction and committed together or not at all.

Failure modes:
    - A subclass that commits breaks the atomicity of transition + ledger.
"""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from assignx_kernel.db.base import Base
from assignx_kernel.domain.clock import Clock, SystemClock

ModelType = TypeVar("ModelType", bound=Base)


class BaseService(ABC, Generic[ModelType]):
    """
    Abstract base class for all kernel services.

    Guarantees:
        - The service never calls ``session.commit()`` or
          ``session.rollback()``.
        - ``self.clock`` is the only source of "now".

    Non-goals:
        - Read-only queries belong in ``assignx_kernel/selectors/``.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        self.session = session
        self.clock = clock or SystemClock()
