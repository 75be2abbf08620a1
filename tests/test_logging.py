"""Tests for the structured logging system (revenue_kernel/logging_config.py)."""

import json
import logging
from datetime import date
from decimal import Decimal
from io import StringIO

import pytest

from revenue_kernel.domain import BillingPeriod
from revenue_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    get_logger,
    reset_logging,
)


@pytest.fixture(autouse=True)
def _clean_logging():
    """Reset logging state between tests."""
    reset_logging()
    LogContext.clear()
    yield
    LogContext.clear()
    reset_logging()
    configure_logging(level=logging.DEBUG)


def _make_handler() -> tuple[logging.Handler, StringIO]:
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    return handler, stream


def _parse_log(stream: StringIO) -> dict:
    """Parse the first JSON log line from a stream."""
    line = stream.getvalue().strip().split("\n")[0]
    return json.loads(line)


def _parse_all_logs(stream: StringIO) -> list[dict]:
    lines = stream.getvalue().strip().split("\n")
    return [json.loads(line) for line in lines if line]


# ---------------------------------------------------------------------------
# StructuredFormatter tests
# ---------------------------------------------------------------------------


class TestStructuredFormatter:
    """Tests for JSON log output format."""

    def test_basic_json_output(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info("hello")

        record = _parse_log(stream)
        assert record["level"] == "INFO"
        assert record["message"] == "hello"
        assert record["logger"] == "revenue_kernel.test"
        assert "ts" in record

    def test_extra_fields_included(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info("aggregated", extra={"entity_count": 4, "mode": "branch"})

        record = _parse_log(stream)
        assert record["entity_count"] == 4
        assert record["mode"] == "branch"

    def test_context_fields_included(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        LogContext.set(correlation_id="abc-123", report_id="cari-satis-2024")
        get_logger("test").info("test_msg")

        record = _parse_log(stream)
        assert record["correlation_id"] == "abc-123"
        assert record["report_id"] == "cari-satis-2024"

    def test_money_and_dates_serialized(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info("values", extra={
            "amount": Decimal("12.50"),
            "invoice_date": date(2024, 3, 29),
            "ids": frozenset({"b", "a"}),
            "period": BillingPeriod(2024, 3),
        })

        record = _parse_log(stream)
        assert record["amount"] == "12.50"
        assert record["invoice_date"] == "2024-03-29"
        assert record["ids"] == ["a", "b"]
        assert record["period"] == "2024-03"

    def test_exception_fields(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        try:
            raise ValueError("boom")
        except ValueError:
            logger.error("failed", exc_info=True)

        record = _parse_log(stream)
        assert record["exc_type"] == "ValueError"
        assert record["exc_message"] == "boom"
        assert "traceback" in record

    def test_kernel_exception_code_extracted(self):
        """Revenue kernel exceptions carry a .code attribute."""
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        from revenue_kernel.exceptions import UnknownBranchError

        try:
            raise UnknownBranchError("B9", "visit v1")
        except UnknownBranchError:
            logger.error("reference_error", exc_info=True)

        record = _parse_log(stream)
        assert record["exc_code"] == "UNKNOWN_BRANCH"
        assert record["exc_type"] == "UnknownBranchError"
        assert record["exc_branch_id"] == "B9"
        assert record["exc_referenced_by"] == "visit v1"

    def test_no_context_fields_when_empty(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info("bare_message")

        record = _parse_log(stream)
        assert "correlation_id" not in record
        assert "customer_id" not in record

    def test_level_filtering(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        logger.info("first")
        logger.warning("second", extra={"k": "v"})
        logger.debug("third")

        logs = _parse_all_logs(stream)
        assert [r["message"] for r in logs] == ["first", "second"]


# ---------------------------------------------------------------------------
# LogContext tests
# ---------------------------------------------------------------------------


class TestLogContext:
    """Tests for context propagation."""

    def test_set_and_get(self):
        LogContext.set(correlation_id="x", customer_id="C")
        assert LogContext.get_all() == {"correlation_id": "x", "customer_id": "C"}

    def test_clear(self):
        LogContext.set(correlation_id="x")
        LogContext.clear()
        assert LogContext.get_all() == {}

    def test_bind_context_manager(self):
        LogContext.set(report_id="outer")
        with LogContext.bind(report_id="inner"):
            assert LogContext.get_all()["report_id"] == "inner"
        assert LogContext.get_all()["report_id"] == "outer"

    def test_bind_restores_none(self):
        assert "correlation_id" not in LogContext.get_all()
        with LogContext.bind(correlation_id="temp"):
            assert LogContext.get_all()["correlation_id"] == "temp"
        assert "correlation_id" not in LogContext.get_all()

    def test_unknown_fields_rejected(self):
        with pytest.raises(TypeError, match="not_a_field"):
            LogContext.set(not_a_field="x")
        with pytest.raises(TypeError):
            with LogContext.bind(correlation_id="c", not_a_field="x"):
                pass
        assert LogContext.get_all() == {}

    def test_bind_is_additive(self):
        LogContext.set(actor_id="admin")
        with LogContext.bind(customer_id="C"):
            assert LogContext.get_all() == {"actor_id": "admin", "customer_id": "C"}
        assert LogContext.get_all() == {"actor_id": "admin"}

    def test_all_fields(self):
        LogContext.set(
            correlation_id="c",
            report_id="r",
            actor_id="a",
            customer_id="cu",
            trace_id="t",
        )
        ctx = LogContext.get_all()
        assert len(ctx) == 5
        assert ctx["trace_id"] == "t"


# ---------------------------------------------------------------------------
# configure_logging tests
# ---------------------------------------------------------------------------


class TestConfigureLogging:
    """Tests for initialization."""

    def test_idempotent(self):
        h1, _ = _make_handler()
        configure_logging(handler=h1)
        h2, _ = _make_handler()
        configure_logging(handler=h2)  # second call is no-op
        assert len(logging.getLogger("revenue_kernel").handlers) == 1

    def test_get_logger_returns_child(self):
        assert get_logger("engines.aggregation").name == "revenue_kernel.engines.aggregation"

    def test_logger_hierarchy(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler, level=logging.DEBUG)
        get_logger("deep.nested.module").debug("hierarchy_test")

        record = _parse_log(stream)
        assert record["message"] == "hierarchy_test"
        assert record["logger"] == "revenue_kernel.deep.nested.module"
