"""
Payment DTOs -- Pure domain data for the payment ledger.

Responsibility:
    Defines the immutable data structures that flow through reconciliation:
    PaymentStatus (closed enum), RentalPayment (ledger record),
    TransitionMeta (input to a status change), PaymentFilter (list query),
    StatusUpdateResult (ledger output) and PaymentChange (emitted event).

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    Free of ORM dependencies; models/ converts to and from these types.

Invariants enforced:
    - paid_date and transaction_id are present iff payment_status is PAID.
    - payment_status is always a PaymentStatus member, never a loose string.

Failure modes:
    - ValueError on a RentalPayment that violates the paid invariant.
    - InvalidPaymentStatusError from PaymentStatus.parse() on unknown values.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from fleet_kernel.domain.reference import encode_reference
from fleet_kernel.exceptions import InvalidPaymentStatusError


class PaymentStatus(str, Enum):
    """
    Payment status of a rental.

    Contract:
        Exactly three values.  Anything else is rejected at the ledger
        boundary rather than stored.
    """

    PENDING = "pending"
    PAID = "paid"
    OVERDUE = "overdue"

    @classmethod
    def parse(cls, value: PaymentStatus | str) -> PaymentStatus:
        """
        Parse a status from user or webhook input.

        Raises:
            InvalidPaymentStatusError: If value is not a known status.
        """
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls(value.strip().lower())
            except ValueError:
                pass
        raise InvalidPaymentStatusError(value)


class FailureReason(str, Enum):
    """Why a delivery or a manual override was not applied."""

    AUTH_FAILURE = "auth-failure"
    BAD_REFERENCE = "bad-reference"
    NOT_FOUND = "not-found"
    AMOUNT_MISMATCH = "amount-mismatch"
    VALIDATION = "validation"


@dataclass(frozen=True)
class RentalPayment:
    """
    Payment record for one rental.

    Contract:
        Created when a rental is booked, mutated only through the
        PaymentLedger.  Instances are immutable; a transition produces a
        new instance via ``dataclasses.replace``.

    Guarantees:
        - paid_date/transaction_id are set iff payment_status is PAID.
    """

    id: UUID
    rental_id: str
    customer_name: str
    vehicle_registration: str
    amount_due: Decimal
    payment_status: PaymentStatus
    payment_due_date: date
    payment_method: str
    company: str | None = None
    paid_date: date | None = None
    transaction_id: str | None = None
    payer_name: str | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.payment_status, PaymentStatus):
            object.__setattr__(
                self, "payment_status", PaymentStatus.parse(self.payment_status)
            )
        if not self.rental_id:
            raise ValueError("RentalPayment requires a rental_id")
        if self.amount_due < 0:
            raise ValueError(f"amount_due cannot be negative: {self.amount_due}")
        is_paid = self.payment_status == PaymentStatus.PAID
        has_settlement = self.paid_date is not None and bool(self.transaction_id)
        has_any_settlement = self.paid_date is not None or bool(self.transaction_id)
        if is_paid and not has_settlement:
            raise ValueError(
                f"Paid rental {self.rental_id} requires paid_date and transaction_id"
            )
        if not is_paid and has_any_settlement:
            raise ValueError(
                f"Rental {self.rental_id} is {self.payment_status.value} "
                "but carries paid_date/transaction_id"
            )

    @property
    def is_paid(self) -> bool:
        return self.payment_status == PaymentStatus.PAID

    @property
    def payment_reference(self) -> str:
        """Reference the customer quotes on the bank transfer."""
        return encode_reference(self.rental_id, self.customer_name)


@dataclass(frozen=True)
class TransitionMeta:
    """
    Metadata accompanying a status change.

    A transition to PAID needs paid_date, payment_method and transaction_id.
    ``amount`` is the observed amount (e.g. from the bank) and triggers the
    amount-matching policy when present.
    """

    paid_date: date | None = None
    payment_method: str | None = None
    transaction_id: str | None = None
    amount: Decimal | None = None
    payer_name: str | None = None

    def missing_for_paid(self) -> tuple[str, ...]:
        """Names of the fields a PAID transition needs but does not have."""
        missing = []
        if self.paid_date is None:
            missing.append("paid_date")
        if not self.payment_method:
            missing.append("payment_method")
        if not self.transaction_id:
            missing.append("transaction_id")
        return tuple(missing)


@dataclass(frozen=True)
class PaymentFilter:
    """
    Predicate for PaymentLedger.list().

    ``search`` is a case-insensitive substring over customer, company and
    vehicle registration.  Due-date bounds are inclusive.
    """

    search: str | None = None
    status: PaymentStatus | None = None
    due_from: date | None = None
    due_to: date | None = None

    def matches(self, record: RentalPayment) -> bool:
        if self.search:
            needle = self.search.strip().lower()
            haystack = (
                record.customer_name,
                record.vehicle_registration,
                record.company or "",
            )
            if not any(needle in field.lower() for field in haystack):
                return False
        if self.status is not None and record.payment_status != self.status:
            return False
        if self.due_from is not None and record.payment_due_date < self.due_from:
            return False
        if self.due_to is not None and record.payment_due_date > self.due_to:
            return False
        return True


@dataclass(frozen=True)
class StatusUpdateResult:
    """Result of PaymentLedger.apply_status()."""

    success: bool
    rental_id: str
    record: RentalPayment | None = None
    changed: bool = False
    reason: FailureReason | None = None
    message: str | None = None

    @classmethod
    def applied(
        cls, record: RentalPayment, changed: bool, message: str | None = None
    ) -> StatusUpdateResult:
        return cls(
            success=True,
            rental_id=record.rental_id,
            record=record,
            changed=changed,
            message=message,
        )

    @classmethod
    def failed(
        cls,
        rental_id: str,
        reason: FailureReason,
        message: str,
        record: RentalPayment | None = None,
    ) -> StatusUpdateResult:
        return cls(
            success=False,
            rental_id=rental_id,
            record=record,
            reason=reason,
            message=message,
        )


@dataclass(frozen=True)
class PaymentChange:
    """Event emitted by the ledger after every successful apply_status."""

    rental_id: str
    new_status: PaymentStatus
    changed: bool
    occurred_at: datetime
