"""Tests for fleet log lines: bound delivery context and domain value encoding."""

import json
import logging
from datetime import date
from decimal import Decimal
from io import StringIO
from uuid import uuid4

import pytest

from fleet_kernel.domain.payments import PaymentStatus
from fleet_kernel.exceptions import AmountMismatchError
from fleet_kernel.logging_config import (
    LogContext,
    configure_logging,
    get_logger,
    reset_logging,
)
from fleet_kernel.services.webhook_processor import WebhookProcessor
from fleet_kernel.utils.signatures import compute_signature

logger = get_logger("tests.logging")


class TestDeliveryContext:
    def test_webhook_lines_carry_delivery_rental_and_transaction(
        self, ledger, payment_factory, captured_logs
    ):
        ledger.register(payment_factory("r2", "Michael Chen", "100.00"))
        processor = WebhookProcessor(ledger, "log-secret")
        body = json.dumps(
            {
                "reference": "FLEET-R2-MICHAELCHEN",
                "amount": 100.00,
                "paidDate": "2024-03-10",
                "paymentMethod": "bank_transfer",
                "transactionId": "TXN-9",
                "status": "completed",
            }
        ).encode()
        processor.process(body, compute_signature(body, "log-secret"), "dlv-9")

        logs = captured_logs()
        applied = next(r for r in logs if r["message"] == "payment_status_applied")
        assert applied["delivery_id"] == "dlv-9"
        # Rental id as written in the payment reference
        assert applied["rental_id"] == "R2"
        assert applied["transaction_id"] == "TXN-9"
        # Nothing leaks once the delivery is done
        assert LogContext.get_all() == {}

    def test_nested_bind_restores_outer_rental(self, captured_logs):
        with LogContext.bind(delivery_id="dlv-1", rental_id="R2"):
            with LogContext.bind(rental_id="r2", transaction_id=None):
                logger.info("inner")
            logger.info("outer")

        inner, outer = captured_logs()
        assert inner["rental_id"] == "r2"
        assert "transaction_id" not in inner
        assert outer["delivery_id"] == "dlv-1"
        assert outer["rental_id"] == "R2"

    def test_unknown_field_refused(self):
        with pytest.raises(TypeError):
            LogContext.bind(customer_name="Michael Chen")


class TestValueEncoding:
    def test_payment_values_written_as_strings(self, captured_logs):
        payment_id = uuid4()
        logger.info(
            "payment_values",
            extra={
                "payment_id": payment_id,
                "amount_due": Decimal("57.10"),
                "due": date(2024, 3, 1),
                "to_status": PaymentStatus.OVERDUE,
            },
        )

        record = captured_logs()[0]
        assert record["payment_id"] == str(payment_id)
        # Trailing zero kept: amounts are never floats
        assert record["amount_due"] == "57.10"
        assert record["due"] == "2024-03-01"
        assert record["to_status"] == "overdue"

    def test_kernel_error_code_logged(self, captured_logs):
        try:
            raise AmountMismatchError("r2", Decimal("100.00"), Decimal("90.00"), Decimal("0.01"))
        except AmountMismatchError:
            logger.warning("mismatch", exc_info=True)

        record = captured_logs()[0]
        assert record["exc_type"] == "AmountMismatchError"
        assert record["exc_code"] == "AMOUNT_MISMATCH"
        assert "traceback" in record


def test_configure_logging_first_call_wins():
    first, second = StringIO(), StringIO()
    reset_logging()
    try:
        configure_logging(stream=first)
        configure_logging(stream=second, level=logging.DEBUG)
        logger.info("once")
        logger.debug("dropped")
    finally:
        reset_logging()
        configure_logging(level=logging.DEBUG)

    lines = first.getvalue().splitlines()
    assert [json.loads(line)["message"] for line in lines] == ["once"]
    assert second.getvalue() == ""
