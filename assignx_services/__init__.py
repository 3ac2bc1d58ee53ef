"""
assignx_services -- transaction-owning layer over the AssignX kernel.

The lifecycle facade commits each operation, the auto-approval task runs
overdue deliveries, and notification sinks receive intents after commit.
"""

from assignx_services.auto_approval import AutoApprovalRunResult, AutoApprovalTask
from assignx_services.lifecycle_service import ProjectLifecycleService
from assignx_services.notifications import (
    LoggingNotificationSink,
    NotificationSink,
    RecordingNotificationSink,
    dispatch_notifications,
)
from assignx_services.retry import retry_on_conflict

__all__ = [
    "AutoApprovalRunResult",
    "AutoApprovalTask",
    "LoggingNotificationSink",
    "NotificationSink",
    "ProjectLifecycleService",
    "RecordingNotificationSink",
    "dispatch_notifications",
    "retry_on_conflict",
]
