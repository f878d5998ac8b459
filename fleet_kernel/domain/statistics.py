"""
Payment statistics -- collection metrics for the dashboard.

Pure function of a ledger snapshot: one pass, no hidden state, safe to call
repeatedly and concurrently.  Nothing is cached; callers recompute on every
read so a mutation is visible on the very next request.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from decimal import Decimal

from fleet_kernel.db.types import PERCENT_DECIMAL_PLACES, round_money
from fleet_kernel.domain.payments import PaymentStatus, RentalPayment

_ZERO = Decimal("0")
_HUNDRED = Decimal("100")


@dataclass(frozen=True)
class PaymentStatistics:
    total: int = 0
    total_amount: Decimal = _ZERO
    paid: int = 0
    paid_amount: Decimal = _ZERO
    pending: int = 0
    overdue: int = 0
    overdue_amount: Decimal = _ZERO
    collection_rate: Decimal = _ZERO

    @property
    def outstanding_amount(self) -> Decimal:
        """Amount invoiced but not yet collected."""
        return self.total_amount - self.paid_amount


def collection_rate(paid_amount: Decimal, total_amount: Decimal) -> Decimal:
    """paid / total * 100, rounded half-up to 2dp; 0 when nothing is invoiced."""
    if total_amount <= 0:
        return round_money(_ZERO, PERCENT_DECIMAL_PLACES)
    return round_money(paid_amount / total_amount * _HUNDRED, PERCENT_DECIMAL_PLACES)


def compute_statistics(records: Iterable[RentalPayment]) -> PaymentStatistics:
    """
    Aggregate per-status counts and sums over a snapshot.

    Example:
        paid 100, pending 50, overdue 25 -> total 3, total_amount 175,
        paid_amount 100, collection_rate 57.14
    """
    total = paid = pending = overdue = 0
    total_amount = paid_amount = overdue_amount = _ZERO

    for record in records:
        total += 1
        total_amount += record.amount_due
        if record.payment_status == PaymentStatus.PAID:
            paid += 1
            paid_amount += record.amount_due
        elif record.payment_status == PaymentStatus.PENDING:
            pending += 1
        elif record.payment_status == PaymentStatus.OVERDUE:
            overdue += 1
            overdue_amount += record.amount_due

    return PaymentStatistics(
        total=total,
        total_amount=round_money(total_amount),
        paid=paid,
        paid_amount=round_money(paid_amount),
        pending=pending,
        overdue=overdue,
        overdue_amount=round_money(overdue_amount),
        collection_rate=collection_rate(paid_amount, total_amount),
    )
