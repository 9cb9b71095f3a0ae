"""
Tests for billing_kernel.logging_config.

Records are written through a private StringIO handler so that pytest's own
capture handlers on the billing_kernel logger never affect the assertions.
"""

import json
import logging
from decimal import Decimal
from io import StringIO
from uuid import uuid4

import pytest

from billing_kernel.exceptions import InvoiceNotDraftError, OverpaymentError
from billing_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    get_logger,
    reset_logging,
)

logger = get_logger("tests.payments")


@pytest.fixture(autouse=True)
def _clean_logging():
    reset_logging()
    yield
    reset_logging()
    configure_logging(level=logging.DEBUG)


@pytest.fixture
def json_stream():
    """Configure billing logging into a StringIO and return (handler, stream)."""
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    configure_logging(level=logging.INFO, handler=handler)
    return handler, stream


def _records(stream: StringIO) -> list[dict]:
    return [json.loads(line) for line in stream.getvalue().splitlines() if line]


def _billing_json_handlers() -> list[logging.Handler]:
    return [
        h
        for h in logging.getLogger("billing_kernel").handlers
        if isinstance(h.formatter, StructuredFormatter)
    ]


class TestPaymentRecords:

    def test_money_and_ids_written_as_strings(self, json_stream):
        _, stream = json_stream
        payment_id = uuid4()
        logger.info(
            "payment_recorded",
            extra={
                "payment_id": payment_id,
                "amount": Decimal("115.00"),
                "balance_due": Decimal("0.00"),
                "status": "paid",
            },
        )

        [record] = _records(stream)
        assert record["message"] == "payment_recorded"
        assert record["level"] == "INFO"
        assert record["logger"] == "billing_kernel.tests.payments"
        assert record["payment_id"] == str(payment_id)
        assert record["amount"] == "115.00"
        assert record["balance_due"] == "0.00"
        assert record["ts"].endswith("+00:00")

    def test_overpayment_fields_attached(self, json_stream):
        _, stream = json_stream
        try:
            raise OverpaymentError("inv-7", Decimal("200.00"), Decimal("115.00"))
        except OverpaymentError:
            logger.warning("payment_rejected_overpayment", exc_info=True)

        [record] = _records(stream)
        assert record["exc_type"] == "OverpaymentError"
        assert record["exc_code"] == "OVERPAYMENT"
        assert record["exc_invoice_id"] == "inv-7"
        assert record["exc_amount"] == "200.00"
        assert record["exc_balance_due"] == "115.00"
        assert "Traceback" in record["traceback"]

    def test_not_draft_fields_attached(self, json_stream):
        _, stream = json_stream
        try:
            raise InvoiceNotDraftError("inv-8", "paid", "delete")
        except InvoiceNotDraftError:
            logger.warning("invoice_item_rejected_not_draft", exc_info=True)

        [record] = _records(stream)
        assert record["exc_code"] == "INVOICE_NOT_DRAFT"
        assert record["exc_status"] == "paid"
        assert record["exc_action"] == "delete"

    def test_engine_trace_hidden_at_info(self, json_stream):
        _, stream = json_stream
        logger.debug("BILLING_ENGINE_TRACE")
        logger.info("invoice_created")
        assert [r["message"] for r in _records(stream)] == ["invoice_created"]


class TestLogContext:

    def test_bound_ids_appear_on_records(self, json_stream):
        _, stream = json_stream
        actor_id, invoice_id = uuid4(), uuid4()
        with LogContext.bind(actor_id=actor_id, invoice_id=invoice_id):
            logger.info("payment_recorded")
        logger.info("statement_generated")

        inside, outside = _records(stream)
        assert inside["actor_id"] == str(actor_id)
        assert inside["invoice_id"] == str(invoice_id)
        assert "invoice_id" not in outside

    def test_nested_bind_restores_outer_invoice(self):
        with LogContext.bind(customer_id="cust-1", invoice_id="inv-1"):
            with LogContext.bind(invoice_id="inv-2", actor_id=None):
                assert LogContext.get_all() == {"customer_id": "cust-1", "invoice_id": "inv-2"}
            assert LogContext.get_all() == {"customer_id": "cust-1", "invoice_id": "inv-1"}
        assert LogContext.get_all() == {}

    def test_bind_restores_after_failure(self):
        with pytest.raises(OverpaymentError):
            with LogContext.bind(invoice_id="inv-3"):
                raise OverpaymentError("inv-3", Decimal("5.00"), Decimal("1.00"))
        assert LogContext.get_all() == {}

    def test_unknown_field_rejected(self):
        with pytest.raises(TypeError, match="payment_ref"):
            LogContext.bind(payment_ref="x")

    def test_clear(self):
        with LogContext.bind(actor_id="staff-1"):
            LogContext.clear()
            assert LogContext.get_all() == {}


class TestConfigureLogging:

    def test_second_call_adds_nothing(self, json_stream):
        handler, _ = json_stream
        configure_logging(handler=handler)
        configure_logging(level=logging.DEBUG)

        billing_logger = logging.getLogger("billing_kernel")
        assert billing_logger.handlers.count(handler) == 1
        assert _billing_json_handlers() == [handler]
        assert billing_logger.level == logging.INFO

    def test_does_not_propagate(self, json_stream):
        assert logging.getLogger("billing_kernel").propagate is False

    def test_reset_leaves_foreign_handlers(self, json_stream):
        billing_logger = logging.getLogger("billing_kernel")
        foreign = logging.NullHandler()
        billing_logger.addHandler(foreign)
        try:
            reset_logging()
            assert _billing_json_handlers() == []
            assert foreign in billing_logger.handlers
        finally:
            billing_logger.removeHandler(foreign)
