"""
EventFeed -- in-process publish/subscribe for ledger changes and operator
notifications.

Responsibility:
    Lets the dashboard (or any collaborator) observe payment changes
    without polling.  The transport that pushes them to a browser is not
    part of the kernel; a subscriber callback is the whole contract.

Architecture position:
    Kernel > Services -- infrastructure used by PaymentLedger and
    WebhookProcessor.

Failure modes:
    - A subscriber that raises is logged with its traceback and skipped.
      Delivery to the remaining subscribers continues and the publisher
      never sees the error.
"""

import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Generic, TypeVar

from fleet_kernel.logging_config import get_logger

logger = get_logger("services.event_feed")

T = TypeVar("T")


class NotificationKind(str, Enum):
    """Kinds of notifications raised for fleet operators."""

    PAYMENT_RECEIVED = "payment_received"
    ORPHANED_PAYMENT = "orphaned_payment"
    AMOUNT_MISMATCH = "amount_mismatch"
    INVALID_REFERENCE = "invalid_reference"
    PAYMENT_OVERDUE = "payment_overdue"


@dataclass(frozen=True)
class OperatorNotification:
    """Something an operator should look at, with the facts to act on it."""

    kind: NotificationKind
    message: str
    rental_id: str | None = None
    details: dict[str, Any] = field(default_factory=dict)


class EventFeed(Generic[T]):
    """
    Synchronous fan-out to registered callbacks.

    Subscribers are called on the publishing thread, in subscription
    order, after the publisher's state change is complete.
    """

    def __init__(self, name: str = "events"):
        self._name = name
        self._lock = threading.Lock()
        self._subscribers: list[Callable[[T], None]] = []

    def subscribe(self, callback: Callable[[T], None]) -> Callable[[], None]:
        """Register ``callback``; returns a function that unregisters it."""
        with self._lock:
            self._subscribers.append(callback)

        def unsubscribe() -> None:
            with self._lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

        return unsubscribe

    def publish(self, event: T) -> int:
        """Deliver ``event`` to every subscriber; returns how many succeeded."""
        with self._lock:
            subscribers = tuple(self._subscribers)

        delivered = 0
        for callback in subscribers:
            try:
                callback(event)
            except Exception:
                logger.exception(
                    "event_subscriber_failed",
                    extra={"feed": self._name, "event_type": type(event).__name__},
                )
            else:
                delivered += 1
        return delivered

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscribers)
