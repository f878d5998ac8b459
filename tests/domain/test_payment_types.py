"""Tests for payment DTO invariants and status parsing."""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from fleet_kernel.domain.payments import (
    FailureReason,
    PaymentFilter,
    PaymentStatus,
    RentalPayment,
    StatusUpdateResult,
    TransitionMeta,
)
from fleet_kernel.exceptions import InvalidPaymentStatusError


class TestPaymentStatus:
    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("paid", PaymentStatus.PAID),
            ("PAID", PaymentStatus.PAID),
            ("  Overdue ", PaymentStatus.OVERDUE),
            (PaymentStatus.PENDING, PaymentStatus.PENDING),
        ],
    )
    def test_parse(self, raw, expected):
        assert PaymentStatus.parse(raw) is expected

    @pytest.mark.parametrize("raw", ["settled", "", None, 1])
    def test_parse_rejects_unknown(self, raw):
        with pytest.raises(InvalidPaymentStatusError) as exc_info:
            PaymentStatus.parse(raw)
        assert exc_info.value.code == "INVALID_PAYMENT_STATUS"


class TestRentalPayment:
    def _kwargs(self, **overrides):
        kwargs = dict(
            id=uuid4(),
            rental_id="r1",
            customer_name="Ann Lee",
            vehicle_registration="XYZ789",
            amount_due=Decimal("80.00"),
            payment_status=PaymentStatus.PENDING,
            payment_due_date=date(2024, 3, 1),
            payment_method="card",
        )
        kwargs.update(overrides)
        return kwargs

    def test_status_string_coerced(self):
        record = RentalPayment(**self._kwargs(payment_status="overdue"))
        assert record.payment_status is PaymentStatus.OVERDUE

    def test_paid_requires_settlement(self):
        with pytest.raises(ValueError):
            RentalPayment(**self._kwargs(payment_status=PaymentStatus.PAID))

    def test_unpaid_cannot_carry_transaction(self):
        with pytest.raises(ValueError):
            RentalPayment(**self._kwargs(transaction_id="TXN-1"))

    def test_unpaid_cannot_carry_paid_date(self):
        with pytest.raises(ValueError):
            RentalPayment(**self._kwargs(paid_date=date(2024, 3, 2)))

    def test_negative_amount_rejected(self):
        with pytest.raises(ValueError):
            RentalPayment(**self._kwargs(amount_due=Decimal("-1")))

    def test_empty_rental_id_rejected(self):
        with pytest.raises(ValueError):
            RentalPayment(**self._kwargs(rental_id=""))

    def test_payment_reference(self):
        record = RentalPayment(**self._kwargs())
        assert record.payment_reference == "FLEET-R1-ANNLEE"

    def test_frozen(self):
        record = RentalPayment(**self._kwargs())
        with pytest.raises(AttributeError):
            record.payment_status = PaymentStatus.PAID


class TestTransitionMeta:
    def test_missing_for_paid(self):
        meta = TransitionMeta(payment_method="card")
        assert meta.missing_for_paid() == ("paid_date", "transaction_id")

    def test_complete(self):
        meta = TransitionMeta(
            paid_date=date(2024, 3, 2), payment_method="card", transaction_id="t"
        )
        assert meta.missing_for_paid() == ()


class TestPaymentFilter:
    def test_search_over_customer_company_and_registration(self, payment_factory):
        record = payment_factory(
            customer_name="Michael Chen",
            vehicle_registration="FLT-204",
            company="Acme Logistics",
        )
        assert PaymentFilter(search="chen").matches(record)
        assert PaymentFilter(search="flt-2").matches(record)
        assert PaymentFilter(search="ACME").matches(record)
        assert not PaymentFilter(search="smith").matches(record)

    def test_status_filter(self, payment_factory):
        record = payment_factory(status=PaymentStatus.OVERDUE)
        assert PaymentFilter(status=PaymentStatus.OVERDUE).matches(record)
        assert not PaymentFilter(status=PaymentStatus.PAID).matches(record)

    def test_due_range_inclusive(self, payment_factory):
        record = payment_factory(due=date(2024, 3, 1))
        assert PaymentFilter(due_from=date(2024, 3, 1), due_to=date(2024, 3, 1)).matches(record)
        assert not PaymentFilter(due_from=date(2024, 3, 2)).matches(record)
        assert not PaymentFilter(due_to=date(2024, 2, 29)).matches(record)

    def test_empty_filter_matches_everything(self, payment_factory):
        assert PaymentFilter().matches(payment_factory())


class TestStatusUpdateResult:
    def test_failed_carries_reason(self):
        result = StatusUpdateResult.failed("r1", FailureReason.NOT_FOUND, "missing")
        assert result.success is False
        assert result.reason is FailureReason.NOT_FOUND
        assert result.record is None

    def test_applied(self, payment_factory):
        record = payment_factory()
        result = StatusUpdateResult.applied(record, changed=True)
        assert result.success is True
        assert result.rental_id == "r1"
        assert result.reason is None
