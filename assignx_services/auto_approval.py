"""
AutoApprovalTask -- fires ``deadline_elapsed`` for overdue deliveries.

Responsibility:
    Scans delivered projects whose ``auto_approve_at`` has passed and
    auto-approves each one in its own transaction, which also settles it.

Architecture position:
    Services -- the scheduled counterpart of the lifecycle facade.  It is
    the only caller that raises ``deadline_elapsed``.

Invariants enforced:
    - One transaction per project: a failure on one project does not undo
      another's settlement.
    - A project the client accepted in the meantime is skipped, never
      settled twice (status check plus version compare-and-set).

Failure modes:
    - Kernel errors other than the expected conflicts are counted as
      ``failed`` and logged at ERROR; unexpected exceptions propagate.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from uuid import UUID

from sqlalchemy.orm import Session, sessionmaker

from assignx_config import EngineConfig, get_active_config
from assignx_kernel.domain.clock import Clock, SystemClock
from assignx_kernel.exceptions import (
    AssignXError,
    ConcurrencyError,
    GuardNotSatisfiedError,
    InvalidStateTransitionError,
)
from assignx_kernel.logging_config import get_logger
from assignx_kernel.selectors.project_selector import ProjectSelector
from assignx_services.lifecycle_service import ProjectLifecycleService
from assignx_services.notifications import NotificationSink

logger = get_logger("services.auto_approval")

_SKIPPABLE = (ConcurrencyError, InvalidStateTransitionError, GuardNotSatisfiedError)


@dataclass
class AutoApprovalRunResult:
    scanned: int = 0
    approved: list[UUID] = field(default_factory=list)
    skipped: list[UUID] = field(default_factory=list)
    failed: list[UUID] = field(default_factory=list)

    @property
    def approved_count(self) -> int:
        return len(self.approved)


class AutoApprovalTask:
    """Periodic job.  Call ``run()`` from a scheduler."""

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        config: EngineConfig | None = None,
        clock: Clock | None = None,
        notification_sink: NotificationSink | None = None,
    ):
        self.session_factory = session_factory
        self.config = config or get_active_config()
        self.clock = clock or SystemClock()
        self.notification_sink = notification_sink

    def due_projects(self, limit: int | None = None) -> list[UUID]:
        with self.session_factory() as session:
            return ProjectSelector(session).due_for_auto_approval(
                self.clock.now_utc(), limit=limit or self.config.auto_approval.batch_size
            )

    def run(self, limit: int | None = None) -> AutoApprovalRunResult:
        result = AutoApprovalRunResult()
        due = self.due_projects(limit)
        result.scanned = len(due)

        for project_id in due:
            with self.session_factory() as session:
                service = ProjectLifecycleService(
                    session,
                    config=self.config,
                    clock=self.clock,
                    notification_sink=self.notification_sink,
                )
                try:
                    service.auto_approve(project_id)
                except _SKIPPABLE as exc:
                    result.skipped.append(project_id)
                    logger.info(
                        "auto_approval_skipped",
                        extra={"project_id": str(project_id), "error_code": exc.code},
                    )
                    continue
                except AssignXError as exc:
                    result.failed.append(project_id)
                    logger.error(
                        "auto_approval_failed",
                        extra={"project_id": str(project_id), "error_code": exc.code},
                    )
                    continue
            result.approved.append(project_id)

        logger.info(
            "auto_approval_run_completed",
            extra={
                "scanned": result.scanned,
                "approved": len(result.approved),
                "skipped": len(result.skipped),
                "failed": len(result.failed),
            },
        )
        return result
