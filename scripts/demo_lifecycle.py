#!/usr/bin/env python3
"""
Lifecycle demo: run one project from submission to settlement.

Creates a SQLite database, registers a doer, and drives a 2000-word, 24-hour
project through quoting, payment, assignment, one QC rejection, delivery
and client acceptance, then prints the project history and every wallet.

Usage:
    python3 scripts/demo_lifecycle.py                  # temp SQLite file
    python3 scripts/demo_lifecycle.py --db demo.db     # keep the database
    python3 scripts/demo_lifecycle.py --auto-approve   # let the deadline settle it
"""

import argparse
import logging
import sys
import tempfile
from datetime import timedelta
from pathlib import Path
from uuid import uuid4

ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))

from assignx_config import get_active_config  # noqa: E402
from assignx_kernel.db.engine import (  # noqa: E402
    create_tables,
    get_session_factory,
    init_engine_from_url,
)
from assignx_kernel.db.immutability import register_immutability_listeners  # noqa: E402
from assignx_kernel.domain.clock import DeterministicClock  # noqa: E402
from assignx_kernel.domain.currency import format_minor  # noqa: E402
from assignx_kernel.domain.dtos import PaymentConfirmation  # noqa: E402
from assignx_kernel.logging_config import configure_logging  # noqa: E402
from assignx_kernel.models.wallet import PLATFORM_OWNER_ID  # noqa: E402
from assignx_services import (  # noqa: E402
    AutoApprovalTask,
    ProjectLifecycleService,
    RecordingNotificationSink,
)

W = 72


def banner(title: str) -> None:
    print()
    print("=" * W)
    print(f"  {title}")
    print("=" * W)


def field(name: str, value, indent: int = 4) -> None:
    print(f"{' ' * indent}{name}: {value}")


def main() -> int:
    parser = argparse.ArgumentParser(description="AssignX project lifecycle demo")
    parser.add_argument("--db", help="SQLite file to use (default: temporary file)")
    parser.add_argument(
        "--auto-approve",
        action="store_true",
        help="skip client acceptance and let the auto-approval task settle",
    )
    parser.add_argument("--verbose", action="store_true", help="emit JSON logs to stderr")
    args = parser.parse_args()

    configure_logging(level=logging.INFO if args.verbose else logging.WARNING)

    db_path = args.db or str(Path(tempfile.mkdtemp()) / "assignx_demo.db")
    init_engine_from_url(f"sqlite:///{db_path}")
    create_tables()
    register_immutability_listeners()

    config = get_active_config()
    clock = DeterministicClock()
    sink = RecordingNotificationSink()
    factory = get_session_factory()

    client_id, supervisor_id, doer_id = uuid4(), uuid4(), uuid4()

    with factory() as session:
        service = ProjectLifecycleService(session, config=config, clock=clock, notification_sink=sink)
        service.register_doer(
            doer_id, subjects=["economics"], average_rating="4.6", display_name="Demo Doer"
        )

        banner("Submission and quote")
        project = service.submit_project(
            client_id=client_id,
            title="Monetary policy essay",
            subject="economics",
            deadline=clock.now_utc() + timedelta(hours=20),
            word_count=2000,
        )
        field("project", project.project_number)
        service.claim_project(project.id, supervisor_id)
        quoted = service.quote_project(project.id, supervisor_id)
        quote = quoted.quote
        field("tier", quote.urgency_tier)
        field("client price", format_minor(quote.client_price))
        field("doer payout", format_minor(quote.doer_payout))
        field("commission", format_minor(quote.supervisor_commission))
        field("platform fee", format_minor(quote.platform_fee))

        banner("Payment and work")
        service.initiate_payment(project.id, client_id)
        service.confirm_payment(
            PaymentConfirmation(project.id, quote.client_price, reference="pay_demo_001")
        )
        assigned = service.assign_doer(project.id, supervisor_id)
        field("assigned doer", assigned.assignment.doer_id)
        service.start_work(project.id, doer_id)
        service.submit_work(project.id, doer_id, "s3://deliverables/draft-1.docx")
        rejected = service.reject_qc(project.id, supervisor_id, "Add a section on inflation targeting")
        field("QC path", " -> ".join(s.value for s in rejected.path))
        service.resubmit_work(project.id, doer_id, "s3://deliverables/draft-2.docx")
        service.approve_qc(project.id, supervisor_id)
        delivered = service.deliver(project.id, supervisor_id)
        field("auto approve at", delivered.project.auto_approve_at)

        if not args.auto_approve:
            done = service.accept_delivery(project.id, client_id)
            field("final status", done.to_status.value)

    if args.auto_approve:
        clock.advance_hours(config.lifecycle.auto_approve_hours)
        run = AutoApprovalTask(factory, config=config, clock=clock, notification_sink=sink).run()
        field("auto-approved", run.approved_count)

    with factory() as session:
        service = ProjectLifecycleService(session, config=config, clock=clock, notification_sink=sink)
        banner("History")
        for row in service.project_history(project.id):
            field(f"v{row.version}", f"{row.from_status} -> {row.to_status} ({row.event})")

        banner("Wallets")
        for label, owner in (
            ("client", client_id),
            ("doer", doer_id),
            ("supervisor", supervisor_id),
            ("platform", PLATFORM_OWNER_ID),
        ):
            balance = service.wallet_balance(owner)
            entries = service.verify_wallet(balance.wallet_id)
            field(
                label,
                f"available {format_minor(balance.available)}, held {format_minor(balance.held)}, "
                f"{entries} ledger entries verified",
            )

        banner("Notifications")
        field("sent", ", ".join(sink.kinds()))

    print()
    print(f"Database: {db_path}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
