"""Tests for collection statistics."""

from decimal import Decimal

from fleet_kernel.domain.payments import PaymentStatus
from fleet_kernel.domain.statistics import (
    PaymentStatistics,
    collection_rate,
    compute_statistics,
)


def test_empty_snapshot_is_all_zero():
    stats = compute_statistics([])

    assert stats == PaymentStatistics()
    assert stats.total == 0
    assert stats.total_amount == Decimal("0")
    assert stats.collection_rate == Decimal("0.00")


def test_mixed_statuses(payment_factory):
    records = [
        payment_factory("r1", amount_due="100", status=PaymentStatus.PAID),
        payment_factory("r2", amount_due="50", status=PaymentStatus.PENDING),
        payment_factory("r3", amount_due="25", status=PaymentStatus.OVERDUE),
    ]

    stats = compute_statistics(records)

    assert stats.total == 3
    assert stats.total_amount == Decimal("175.00")
    assert stats.paid == 1
    assert stats.paid_amount == Decimal("100.00")
    assert stats.pending == 1
    assert stats.overdue == 1
    assert stats.overdue_amount == Decimal("25.00")
    assert stats.collection_rate == Decimal("57.14")
    assert stats.outstanding_amount == Decimal("75.00")


def test_everything_paid_is_one_hundred_percent(payment_factory):
    records = [
        payment_factory(f"r{i}", amount_due="33.33", status=PaymentStatus.PAID)
        for i in range(3)
    ]
    stats = compute_statistics(records)
    assert stats.collection_rate == Decimal("100.00")
    assert stats.paid_amount == Decimal("99.99")


def test_zero_amount_records_guard_division(payment_factory):
    stats = compute_statistics([payment_factory(amount_due="0")])
    assert stats.total == 1
    assert stats.collection_rate == Decimal("0.00")


def test_collection_rate_rounds_half_up():
    # 1/8 = 12.5%; 1/3 = 33.333..%; 2/3 = 66.666..%
    assert collection_rate(Decimal("1"), Decimal("8")) == Decimal("12.50")
    assert collection_rate(Decimal("1"), Decimal("3")) == Decimal("33.33")
    assert collection_rate(Decimal("2"), Decimal("3")) == Decimal("66.67")
    assert collection_rate(Decimal("0.125"), Decimal("1")) == Decimal("12.50")


def test_accepts_any_iterable(payment_factory):
    records = (payment_factory(f"r{i}") for i in range(4))
    assert compute_statistics(records).pending == 4
