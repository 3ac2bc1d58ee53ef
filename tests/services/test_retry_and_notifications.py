"""Tests for the conflict retry helper and notification dispatch."""

from uuid import uuid4

import pytest

from assignx_kernel.domain.dtos import NotificationIntent, NotificationKind
from assignx_kernel.exceptions import ConcurrentModificationError, GuardNotSatisfiedError
from assignx_services import (
    LoggingNotificationSink,
    NotificationSink,
    RecordingNotificationSink,
    dispatch_notifications,
    retry_on_conflict,
)


def _conflict():
    return ConcurrentModificationError("project", "p-1", 3, 4)


class TestRetryOnConflict:

    def test_returns_first_success(self):
        sleeps = []
        assert retry_on_conflict(lambda: "ok", sleep=sleeps.append) == "ok"
        assert sleeps == []

    def test_retries_conflicts_with_linear_backoff(self):
        calls = []
        sleeps = []

        def flaky():
            calls.append(1)
            if len(calls) < 3:
                raise _conflict()
            return "done"

        assert retry_on_conflict(flaky, attempts=3, backoff=0.1, sleep=sleeps.append) == "done"
        assert len(calls) == 3
        assert sleeps == pytest.approx([0.1, 0.2])

    def test_reraises_after_last_attempt(self):
        def always():
            raise _conflict()

        with pytest.raises(ConcurrentModificationError):
            retry_on_conflict(always, attempts=2, sleep=lambda s: None)

    def test_other_errors_are_not_retried(self):
        calls = []

        def guard_fails():
            calls.append(1)
            raise GuardNotSatisfiedError("p-1", "quote", "supervisor_owns", "nope")

        with pytest.raises(GuardNotSatisfiedError):
            retry_on_conflict(guard_fails, sleep=lambda s: None)
        assert len(calls) == 1

    def test_attempts_must_be_positive(self):
        with pytest.raises(ValueError):
            retry_on_conflict(lambda: None, attempts=0)


class TestDispatch:

    @staticmethod
    def _intent(kind=NotificationKind.DELIVERED):
        return NotificationIntent(kind=kind, project_id=uuid4(), recipient_ids=(uuid4(),))

    def test_sinks_satisfy_protocol(self):
        assert isinstance(RecordingNotificationSink(), NotificationSink)
        assert isinstance(LoggingNotificationSink(), NotificationSink)

    def test_recording_sink_keeps_order(self):
        sink = RecordingNotificationSink()
        delivered = dispatch_notifications(
            sink, [self._intent(NotificationKind.QC_APPROVED), self._intent()]
        )
        assert delivered == 2
        assert sink.kinds() == ["qc_approved", "delivered"]

    def test_logging_sink_emits_record(self, captured_logs):
        dispatch_notifications(LoggingNotificationSink(), [self._intent()])
        emitted = captured_logs.find("notification_emitted")
        assert emitted and emitted[0]["kind"] == "delivered"

    def test_failing_sink_is_contained(self, captured_logs):
        class Broken:
            def notify(self, intent):
                raise ConnectionError("gateway down")

        assert dispatch_notifications(Broken(), [self._intent(), self._intent()]) == 0
        failures = captured_logs.find("notification_delivery_failed")
        assert len(failures) == 2
        assert failures[0]["exc_type"] == "ConnectionError"
