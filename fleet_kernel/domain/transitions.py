"""
Payment status transitions -- pure decision logic.

Responsibility:
    Given the current RentalPayment, a requested status and its metadata,
    decide the resulting record.  The PaymentLedger (imperative shell) owns
    locking, persistence and events; this module only decides.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Invariants enforced:
    - Idempotency: PAID -> PAID returns the existing record unchanged and
      never overwrites paid_date or transaction_id.
    - A transition to PAID requires paid_date, payment_method and
      transaction_id.
    - A transition away from PAID clears the settlement fields.
    - Amount matching: an observed amount outside the tolerance is refused
      without producing a new record.

Failure modes:
    - TransitionValidationError: metadata incomplete for a PAID transition.
    - AmountMismatchError: observed amount diverges from amount_due.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from decimal import Decimal

from fleet_kernel.domain.payments import PaymentStatus, RentalPayment, TransitionMeta
from fleet_kernel.exceptions import AmountMismatchError, TransitionValidationError

DEFAULT_AMOUNT_TOLERANCE = Decimal("0.01")


@dataclass(frozen=True)
class TransitionPlan:
    """Outcome of plan_transition(): the record to keep and whether it moved."""

    record: RentalPayment
    changed: bool


def check_amount(
    record: RentalPayment,
    observed: Decimal | None,
    tolerance: Decimal | None,
) -> None:
    """
    Compare an observed amount against the amount due.

    ``tolerance=None`` disables matching entirely.

    Raises:
        AmountMismatchError: If |observed - amount_due| > tolerance.
    """
    if observed is None or tolerance is None:
        return
    if abs(observed - record.amount_due) > tolerance:
        raise AmountMismatchError(
            rental_id=record.rental_id,
            expected=record.amount_due,
            observed=observed,
            tolerance=tolerance,
        )


def plan_transition(
    record: RentalPayment,
    new_status: PaymentStatus,
    meta: TransitionMeta | None = None,
    amount_tolerance: Decimal | None = DEFAULT_AMOUNT_TOLERANCE,
) -> TransitionPlan:
    """
    Decide the effect of moving ``record`` to ``new_status``.

    Preconditions:
        - ``new_status`` is already a PaymentStatus (parsed at the boundary).

    Returns:
        TransitionPlan with ``changed=False`` for no-op requests (same
        status, including the PAID replay of a duplicate webhook).

    Raises:
        TransitionValidationError, AmountMismatchError.
    """
    meta = meta or TransitionMeta()

    if new_status == PaymentStatus.PAID:
        if record.is_paid:
            return TransitionPlan(record=record, changed=False)

        missing = meta.missing_for_paid()
        if missing:
            raise TransitionValidationError(record.rental_id, missing)

        check_amount(record, meta.amount, amount_tolerance)

        return TransitionPlan(
            record=replace(
                record,
                payment_status=PaymentStatus.PAID,
                paid_date=meta.paid_date,
                payment_method=meta.payment_method,
                transaction_id=meta.transaction_id,
                payer_name=meta.payer_name,
            ),
            changed=True,
        )

    if record.payment_status == new_status:
        return TransitionPlan(record=record, changed=False)

    # Manual override path: reopening a payment drops its settlement
    return TransitionPlan(
        record=replace(
            record,
            payment_status=new_status,
            paid_date=None,
            transaction_id=None,
            payer_name=None,
            payment_method=meta.payment_method or record.payment_method,
        ),
        changed=True,
    )
