"""
Typed Exception Hierarchy for the Fleet Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Payment reconciliation has to tell an operator precisely why a bank payment
was not applied. Generic ValueError/RuntimeError force callers to parse
messages, which breaks as soon as the wording changes.

Every error here:
  1. Has a TYPED exception class (catch by type, not message)
  2. Has a CODE class attribute (machine-readable, API-safe)
  3. Carries structured DATA (rental_id, amounts, missing fields...)

Example:
    try:
        plan_transition(record, PaymentStatus.PAID, meta, tolerance)
    except AmountMismatchError as e:
        alert_operator(e.rental_id, expected=e.expected, observed=e.observed)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    FleetKernelError (base)
    |
    +-- PaymentError
    |   +-- PaymentNotFoundError
    |   +-- DuplicateRentalPaymentError
    |   +-- InvalidPaymentStatusError
    |   +-- TransitionValidationError
    |   +-- AmountMismatchError
    |
    +-- WebhookError
    |   +-- NotificationValidationError
    |
    +-- ConcurrencyError
        +-- OptimisticLockError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category     | Code                     | When Raised
-------------|--------------------------|--------------------------------------
Payment      | PAYMENT_NOT_FOUND        | No payment record for the rental
             | RENTAL_PAYMENT_EXISTS    | Rental already has a payment record
             | INVALID_PAYMENT_STATUS   | Status outside {pending, paid, overdue}
             | TRANSITION_VALIDATION    | Missing metadata for a paid transition
             | AMOUNT_MISMATCH          | Observed amount outside tolerance
-------------|--------------------------|--------------------------------------
Webhook      | NOTIFICATION_VALIDATION  | Bank notification body is malformed
-------------|--------------------------|--------------------------------------
Concurrency  | OPTIMISTIC_LOCK_CONFLICT | Row changed underneath a write

===============================================================================
HANDLING PATTERNS
===============================================================================

Pure domain functions raise these exceptions. The PaymentLedger and
WebhookProcessor catch them at the service boundary and turn them into
result objects carrying a FailureReason, so the UI and the HTTP layer never
need a try/except for expected rejections. A paid -> paid replay is NOT an
error: it is an idempotent success and no exception exists for it.
"""

from decimal import Decimal


class FleetKernelError(Exception):
    """
    Base exception for all fleet kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "FLEET_KERNEL_ERROR"


# Payment-related exceptions


class PaymentError(FleetKernelError):
    """Base exception for payment ledger errors."""

    code: str = "PAYMENT_ERROR"


class PaymentNotFoundError(PaymentError):
    """No payment record exists for the given rental."""

    code: str = "PAYMENT_NOT_FOUND"

    def __init__(self, rental_id: str):
        self.rental_id = rental_id
        super().__init__(f"Payment for rental {rental_id} not found")


class DuplicateRentalPaymentError(PaymentError):
    """A payment record is already registered for this rental."""

    code: str = "RENTAL_PAYMENT_EXISTS"

    def __init__(self, rental_id: str):
        self.rental_id = rental_id
        super().__init__(f"Rental {rental_id} already has a payment record")


class InvalidPaymentStatusError(PaymentError):
    """Status value is not one of pending, paid, overdue."""

    code: str = "INVALID_PAYMENT_STATUS"

    def __init__(self, value: object):
        self.value = str(value)
        super().__init__(f"Invalid payment status: {value!r}")


class TransitionValidationError(PaymentError):
    """
    Transition metadata is incomplete.

    A transition to paid needs paid_date, payment_method and transaction_id.
    """

    code: str = "TRANSITION_VALIDATION"

    def __init__(self, rental_id: str, missing_fields: tuple[str, ...]):
        self.rental_id = rental_id
        self.missing_fields = missing_fields
        super().__init__(
            f"Cannot mark rental {rental_id} as paid: missing "
            f"{', '.join(missing_fields)}"
        )


class AmountMismatchError(PaymentError):
    """Observed amount differs from the amount due beyond the tolerance."""

    code: str = "AMOUNT_MISMATCH"

    def __init__(
        self,
        rental_id: str,
        expected: Decimal,
        observed: Decimal,
        tolerance: Decimal,
    ):
        self.rental_id = rental_id
        self.expected = str(expected)
        self.observed = str(observed)
        self.tolerance = str(tolerance)
        super().__init__(
            f"Amount mismatch for rental {rental_id}: expected {expected}, "
            f"received {observed} (tolerance {tolerance})"
        )


# Webhook-related exceptions


class WebhookError(FleetKernelError):
    """Base exception for inbound webhook errors."""

    code: str = "WEBHOOK_ERROR"


class NotificationValidationError(WebhookError):
    """Bank notification payload does not have the required shape."""

    code: str = "NOTIFICATION_VALIDATION"

    def __init__(self, field_errors: list[dict]):
        self.field_errors = field_errors
        super().__init__(
            f"Notification validation failed: {len(field_errors)} error(s)"
        )


# Concurrency exceptions


class ConcurrencyError(FleetKernelError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"


class OptimisticLockError(ConcurrencyError):
    """Concurrent modification detected via version mismatch."""

    code: str = "OPTIMISTIC_LOCK_CONFLICT"

    def __init__(self, entity_type: str, entity_id: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(
            f"Concurrent modification of {entity_type} {entity_id}"
        )
