"""Structured logging: JSON envelope, LogContext and exception fields."""

import json
import logging
from io import StringIO

import pytest

from allowance_kernel.exceptions import DuplicateApprovalError
from allowance_kernel.logging_config import LogContext, StructuredFormatter, get_logger


def _format(record_factory) -> dict:
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    logger = logging.getLogger("allowance_kernel.test_logging")
    logger.addHandler(handler)
    try:
        record_factory(logger)
    finally:
        logger.removeHandler(handler)
    return json.loads(stream.getvalue().strip().split("\n")[-1])


def test_logger_namespace():
    assert get_logger("services.x").name == "allowance_kernel.services.x"


def test_envelope_and_extra():
    payload = _format(lambda log: log.info("application_submitted", extra={"amount": 5}))

    assert payload["message"] == "application_submitted"
    assert payload["level"] == "INFO"
    assert payload["logger"] == "allowance_kernel.test_logging"
    assert payload["amount"] == 5
    assert "ts" in payload


def test_log_context_fields_are_included():
    with LogContext.bind(actor_id="reviewer-a", application_id="7"):
        payload = _format(lambda log: log.warning("duplicate_approval"))

    assert payload["actor_id"] == "reviewer-a"
    assert payload["application_id"] == "7"


def test_log_context_is_restored():
    LogContext.set(correlation_id="outer")
    with LogContext.bind(correlation_id="inner"):
        assert LogContext.get_all()["correlation_id"] == "inner"

    assert LogContext.get_all()["correlation_id"] == "outer"


def test_exception_fields():
    def emit(log):
        try:
            raise DuplicateApprovalError(3, "reviewer-a")
        except DuplicateApprovalError:
            log.warning("sign_rejected", exc_info=True)

    payload = _format(emit)

    assert payload["exc_type"] == "DuplicateApprovalError"
    assert payload["exc_code"] == "DUPLICATE_APPROVAL"
    assert payload["exc_application_id"] == 3
    assert payload["exc_reviewer"] == "reviewer-a"
    assert "traceback" in payload


def test_unknown_context_field_is_rejected():
    with pytest.raises(ValueError, match="Unknown log context field"):
        LogContext.set(tenant="acme")

    assert LogContext.get_all() == {}


def test_none_values_do_not_overwrite():
    LogContext.set(actor_id="alice")
    LogContext.set(actor_id=None, trace_id="t-1")

    assert LogContext.get_all() == {"actor_id": "alice", "trace_id": "t-1"}
