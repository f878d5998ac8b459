"""Imperative shell: services that own state and side effects."""

from fleet_kernel.services.event_feed import (
    EventFeed,
    NotificationKind,
    OperatorNotification,
)
from fleet_kernel.services.payment_ledger import PaymentLedger
from fleet_kernel.services.webhook_processor import (
    WebhookProcessor,
    WebhookResult,
    WebhookStatus,
)

__all__ = [
    "EventFeed",
    "NotificationKind",
    "OperatorNotification",
    "PaymentLedger",
    "WebhookProcessor",
    "WebhookResult",
    "WebhookStatus",
]
