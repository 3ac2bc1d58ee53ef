"""
Notification sinks.

The kernel returns ``NotificationIntent`` values; the lifecycle facade hands
them to a sink after the transaction commits.  Delivery is fire-and-forget:
a failing sink is logged and never retried or allowed to surface to the
caller, because the state change it describes is already durable.
"""

from __future__ import annotations

from typing import Iterable, Protocol, runtime_checkable

from assignx_kernel.domain.dtos import NotificationIntent
from assignx_kernel.logging_config import get_logger

logger = get_logger("services.notifications")


@runtime_checkable
class NotificationSink(Protocol):
    def notify(self, intent: NotificationIntent) -> None: ...


class LoggingNotificationSink:
    """Default sink: records each intent as a structured log line."""

    def notify(self, intent: NotificationIntent) -> None:
        logger.info(
            "notification_emitted",
            extra={
                "kind": intent.kind.value,
                "project_id": str(intent.project_id) if intent.project_id else None,
                "recipient_ids": [str(r) for r in intent.recipient_ids],
            },
        )


class RecordingNotificationSink:
    """Keeps every intent in memory.  Used by tests and the demo script."""

    def __init__(self) -> None:
        self.intents: list[NotificationIntent] = []

    def notify(self, intent: NotificationIntent) -> None:
        self.intents.append(intent)

    def kinds(self) -> list[str]:
        return [i.kind.value for i in self.intents]

    def clear(self) -> None:
        self.intents.clear()


def dispatch_notifications(
    sink: NotificationSink, intents: Iterable[NotificationIntent]
) -> int:
    """Deliver ``intents`` to ``sink``.  Returns how many were accepted."""
    delivered = 0
    for intent in intents:
        try:
            sink.notify(intent)
        except Exception:
            logger.warning(
                "notification_delivery_failed",
                extra={
                    "kind": intent.kind.value,
                    "project_id": str(intent.project_id) if intent.project_id else None,
                },
                exc_info=True,
            )
            continue
        delivered += 1
    return delivered
