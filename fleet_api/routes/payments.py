"""
Payment ledger endpoints used by the dashboard.

Handlers are plain ``def`` so FastAPI runs them in its threadpool; the
ledger blocks on per-rental locks and database I/O.
"""

from datetime import date
from decimal import Decimal
from typing import Any
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, ConfigDict, Field

from fleet_api.dependencies import get_ledger
from fleet_api.errors import error_response
from fleet_api.serializers import payment_to_dict, statistics_to_dict
from fleet_kernel.domain.payments import (
    FailureReason,
    PaymentFilter,
    PaymentStatus,
    TransitionMeta,
)
from fleet_kernel.exceptions import InvalidPaymentStatusError
from fleet_kernel.logging_config import LogContext
from fleet_kernel.services.payment_ledger import PaymentLedger
from fleet_kernel.utils.sanitize import sanitize_input

router = APIRouter(prefix="/api/payments", tags=["payments"])


class StatusUpdateRequest(BaseModel):
    """Manual status override from the payments page."""

    model_config = ConfigDict(populate_by_name=True)

    status: str
    paid_date: date | None = Field(default=None, alias="paidDate")
    payment_method: str | None = Field(default=None, alias="paymentMethod")
    transaction_id: str | None = Field(default=None, alias="transactionId")
    amount: Decimal | None = None
    payer_name: str | None = Field(default=None, alias="payerName")
    actor_id: str | None = Field(default=None, alias="actorId")

    def to_meta(self) -> TransitionMeta:
        return TransitionMeta(
            paid_date=self.paid_date,
            payment_method=sanitize_input(self.payment_method) or None,
            transaction_id=sanitize_input(self.transaction_id) or None,
            amount=self.amount,
            payer_name=sanitize_input(self.payer_name) or None,
        )


@router.get("")
def list_payments(
    search: str | None = None,
    status: str | None = None,
    due_from: date | None = None,
    due_to: date | None = None,
    ledger: PaymentLedger = Depends(get_ledger),
) -> dict[str, Any]:
    """Payments matching the filters, in booking order."""
    try:
        parsed_status = PaymentStatus.parse(status) if status else None
    except InvalidPaymentStatusError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    records = ledger.list(
        PaymentFilter(
            search=search or None,
            status=parsed_status,
            due_from=due_from,
            due_to=due_to,
        )
    )
    return {
        "count": len(records),
        "payments": [payment_to_dict(record) for record in records],
    }


@router.get("/statistics")
def payment_statistics(ledger: PaymentLedger = Depends(get_ledger)) -> dict[str, Any]:
    return statistics_to_dict(ledger.statistics())


@router.get("/{payment_id}")
def get_payment(
    payment_id: UUID,
    ledger: PaymentLedger = Depends(get_ledger),
) -> dict[str, Any]:
    record = ledger.get(payment_id)
    if record is None:
        raise HTTPException(status_code=404, detail=f"Payment {payment_id} not found")
    return payment_to_dict(record)


@router.post("/{rental_id}/status")
def update_payment_status(
    rental_id: str,
    body: StatusUpdateRequest,
    ledger: PaymentLedger = Depends(get_ledger),
):
    """Manual override: mark a rental paid, pending or overdue."""
    with LogContext.bind(actor_id=body.actor_id):
        result = ledger.apply_status(rental_id, body.status, body.to_meta())

    if not result.success:
        return error_response(
            result.reason or FailureReason.VALIDATION,
            result.message,
            rentalId=result.rental_id,
        )

    return {
        "success": True,
        "changed": result.changed,
        "message": result.message,
        "payment": payment_to_dict(result.record),
    }
