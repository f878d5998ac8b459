"""JSON shapes returned to the dashboard (camelCase, money as strings)."""

from typing import Any

from fleet_kernel.domain.payments import RentalPayment
from fleet_kernel.domain.statistics import PaymentStatistics


def _iso(value) -> str | None:
    return value.isoformat() if value is not None else None


def payment_to_dict(record: RentalPayment) -> dict[str, Any]:
    return {
        "id": str(record.id),
        "rentalId": record.rental_id,
        "customerName": record.customer_name,
        "vehicleRegistration": record.vehicle_registration,
        "company": record.company,
        "amountDue": str(record.amount_due),
        "paymentStatus": record.payment_status.value,
        "paymentDueDate": _iso(record.payment_due_date),
        "paymentMethod": record.payment_method,
        "paidDate": _iso(record.paid_date),
        "transactionId": record.transaction_id,
        "payerName": record.payer_name,
        "paymentReference": record.payment_reference,
    }


def statistics_to_dict(stats: PaymentStatistics) -> dict[str, Any]:
    return {
        "total": stats.total,
        "totalAmount": str(stats.total_amount),
        "paid": stats.paid,
        "paidAmount": str(stats.paid_amount),
        "pending": stats.pending,
        "overdue": stats.overdue,
        "overdueAmount": str(stats.overdue_amount),
        "outstandingAmount": str(stats.outstanding_amount),
        "collectionRate": str(stats.collection_rate),
    }
