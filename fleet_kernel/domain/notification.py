"""
Bank payment notification -- boundary validation of webhook bodies.

Responsibility:
    Turns the decoded JSON body of a bank webhook into a typed, sanitised
    BankNotification, or reports every field problem at once.

Architecture position:
    Kernel > Domain -- pure, zero I/O.  Called by WebhookProcessor after
    the signature has been verified on the raw bytes.

Accepted shape (CommBank style; aliases in parentheses):
    reference (paymentReference)  str, required
    amount                        number, required, > 0
    paidDate                      ISO date; else date part of ISO timestamp
    paymentMethod                 str, required
    transactionId                 str, required
    status                        optional; only "completed" (any case) is applied
    payerName, payerAccount, currency   optional

Failure modes:
    - NotificationValidationError carrying ``field_errors``.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any

from fleet_kernel.db.types import money_from_str
from fleet_kernel.domain.payments import TransitionMeta
from fleet_kernel.exceptions import NotificationValidationError
from fleet_kernel.utils.sanitize import sanitize_input

COMPLETED_STATUS = "completed"


def is_completed_status(raw: Any) -> bool:
    """
    Whether a raw ``status`` value denotes a settled transfer.

    An absent (None) status counts as settled.  Anything else must be the
    string "completed", ignoring case and surrounding whitespace; false, 0,
    objects and other strings are not.
    """
    if raw is None:
        return True
    return isinstance(raw, str) and raw.strip().lower() == COMPLETED_STATUS


@dataclass(frozen=True)
class BankNotification:
    reference: str
    amount: Decimal
    paid_date: date
    payment_method: str
    transaction_id: str
    status: str | None = None
    payer_name: str | None = None
    payer_account: str | None = None
    currency: str | None = None

    def to_meta(self, provider_name: str | None = None) -> TransitionMeta:
        """Transition metadata for marking the rental as paid."""
        method = self.payment_method
        if provider_name:
            method = f"{provider_name} {method}"
        return TransitionMeta(
            paid_date=self.paid_date,
            payment_method=method,
            transaction_id=self.transaction_id,
            amount=self.amount,
            payer_name=self.payer_name,
        )


def _error(field: str, message: str) -> dict:
    return {"field": field, "message": message}


def _text(payload: dict, *names: str) -> str | None:
    for name in names:
        value = payload.get(name)
        if value is not None:
            if isinstance(value, int) and not isinstance(value, bool):
                value = str(value)
            cleaned = sanitize_input(value)
            return cleaned or None
    return None


def _parse_amount(raw: Any, errors: list[dict]) -> Decimal | None:
    if raw is None:
        errors.append(_error("amount", "required"))
        return None
    if isinstance(raw, bool) or not isinstance(raw, (int, Decimal, float, str)):
        errors.append(_error("amount", "must be a number"))
        return None
    try:
        amount = money_from_str(str(raw))
    except InvalidOperation:
        errors.append(_error("amount", "must be a number"))
        return None
    if not amount.is_finite() or amount <= 0:
        errors.append(_error("amount", "must be a positive number"))
        return None
    return amount


def _parse_paid_date(payload: dict, errors: list[dict]) -> date | None:
    raw_date = payload.get("paidDate")
    if raw_date is not None:
        try:
            return date.fromisoformat(str(raw_date))
        except ValueError:
            errors.append(_error("paidDate", "must be an ISO date (YYYY-MM-DD)"))
            return None

    raw_ts = payload.get("timestamp")
    if raw_ts is not None:
        try:
            ts = datetime.fromisoformat(str(raw_ts))
        except ValueError:
            errors.append(_error("timestamp", "must be an ISO timestamp"))
            return None
        if ts.tzinfo is not None:
            ts = ts.astimezone(timezone.utc)
        return ts.date()

    errors.append(_error("paidDate", "required"))
    return None


def parse_notification(payload: Any) -> BankNotification:
    """
    Validate and normalise a decoded webhook body.

    Raises:
        NotificationValidationError: With one entry per offending field.
    """
    if not isinstance(payload, dict):
        raise NotificationValidationError(
            [_error("body", "must be a JSON object")]
        )

    errors: list[dict] = []

    reference = _text(payload, "reference", "paymentReference")
    if reference is None:
        errors.append(_error("reference", "required"))

    amount = _parse_amount(payload.get("amount"), errors)
    paid_date = _parse_paid_date(payload, errors)

    payment_method = _text(payload, "paymentMethod")
    if payment_method is None:
        errors.append(_error("paymentMethod", "required"))

    transaction_id = _text(payload, "transactionId")
    if transaction_id is None:
        errors.append(_error("transactionId", "required"))

    raw_status = payload.get("status")
    status = None if raw_status is None else sanitize_input(str(raw_status)).lower()

    if errors:
        raise NotificationValidationError(errors)

    return BankNotification(
        reference=reference,
        amount=amount,
        paid_date=paid_date,
        payment_method=payment_method,
        transaction_id=transaction_id,
        status=status,
        payer_name=_text(payload, "payerName"),
        payer_account=_text(payload, "payerAccount"),
        currency=_text(payload, "currency"),
    )
