"""Tests for structured logging and context propagation."""

import json
import logging
import sys
from decimal import Decimal
from uuid import uuid4

from assignx_kernel.domain.project_workflow import ProjectStatus
from assignx_kernel.exceptions import InsufficientBalanceError
from assignx_kernel.logging_config import LogContext, StructuredFormatter, get_logger


def _record(msg="event_name", exc_info=None, **extra):
    record = logging.LogRecord("assignx_kernel.test", logging.INFO, __file__, 1, msg, (), exc_info)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def _format(record):
    return json.loads(StructuredFormatter().format(record))


class TestStructuredFormatter:

    def test_base_fields(self):
        payload = _format(_record())
        assert payload["message"] == "event_name"
        assert payload["level"] == "INFO"
        assert payload["logger"] == "assignx_kernel.test"
        assert "ts" in payload

    def test_extras_are_serialized(self):
        pid = uuid4()
        payload = _format(
            _record(project_id_extra=pid, amount=Decimal("1.50"), status=ProjectStatus.PAID)
        )
        assert payload["project_id_extra"] == str(pid)
        assert payload["amount"] == "1.50"
        assert payload["status"] == "paid"

    def test_context_fields_are_merged(self):
        with LogContext.bind(correlation_id="corr-1", actor_id="actor-1"):
            payload = _format(_record())
        assert payload["correlation_id"] == "corr-1"
        assert payload["actor_id"] == "actor-1"

    def test_exception_fields(self):
        try:
            raise InsufficientBalanceError("w-1", 100, 500)
        except InsufficientBalanceError:
            payload = _format(_record(exc_info=sys.exc_info()))

        assert payload["exc_type"] == "InsufficientBalanceError"
        assert payload["exc_code"] == "INSUFFICIENT_BALANCE"
        assert "traceback" in payload


class TestLogContext:

    def test_bind_restores_previous_values(self):
        with LogContext.bind(correlation_id="outer"):
            with LogContext.bind(correlation_id="inner", project_id="p-1"):
                assert LogContext.get_all() == {"correlation_id": "inner", "project_id": "p-1"}
            assert LogContext.get_all() == {"correlation_id": "outer"}
        assert LogContext.get_all() == {}

    def test_none_and_unknown_fields_are_ignored(self):
        with LogContext.bind(actor_id=None, wallet_id="w-1", project_id="p-1"):
            assert LogContext.get_all() == {"project_id": "p-1"}

    def test_extra_does_not_override_context(self):
        with LogContext.bind(project_id="bound"):
            payload = _format(_record(project_id="from-extra", amount=5))
        assert payload["project_id"] == "bound"
        assert payload["amount"] == 5

    def test_clear(self):
        with LogContext.bind(actor_id="a-1"):
            LogContext.clear()
            assert LogContext.get_all() == {}


class TestLoggerNamespace:

    def test_loggers_share_prefix(self):
        assert get_logger("services.wallet").name == "assignx_kernel.services.wallet"

    def test_records_reach_capture(self, captured_logs):
        get_logger("test").info("lifecycle_event", extra={"answer": 42})
        assert captured_logs.find("lifecycle_event")[0]["answer"] == 42
