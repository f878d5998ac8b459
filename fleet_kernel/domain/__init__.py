"""
Pure domain layer for payment reconciliation.

Everything in this package is free of I/O: no database, no clock reads,
no logging side effects.  Services wire these functions to stores.
"""

from fleet_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from fleet_kernel.domain.notification import BankNotification, parse_notification
from fleet_kernel.domain.payments import (
    FailureReason,
    PaymentChange,
    PaymentFilter,
    PaymentStatus,
    RentalPayment,
    StatusUpdateResult,
    TransitionMeta,
)
from fleet_kernel.domain.reference import (
    ReferenceDecodeResult,
    decode_reference,
    encode_reference,
)
from fleet_kernel.domain.statistics import PaymentStatistics, compute_statistics
from fleet_kernel.domain.transitions import (
    DEFAULT_AMOUNT_TOLERANCE,
    TransitionPlan,
    plan_transition,
)

__all__ = [
    "BankNotification",
    "Clock",
    "DEFAULT_AMOUNT_TOLERANCE",
    "DeterministicClock",
    "FailureReason",
    "PaymentChange",
    "PaymentFilter",
    "PaymentStatistics",
    "PaymentStatus",
    "ReferenceDecodeResult",
    "RentalPayment",
    "StatusUpdateResult",
    "SystemClock",
    "TransitionMeta",
    "TransitionPlan",
    "compute_statistics",
    "decode_reference",
    "encode_reference",
    "parse_notification",
    "plan_transition",
]
