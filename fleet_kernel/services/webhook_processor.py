"""
WebhookProcessor -- bank payment notifications into ledger transitions.

Responsibility:
    Takes one inbound delivery (raw body bytes plus signature header) and
    drives it through:

        received -> verified -> reference-parsed -> ledger-applied
                 -> accepted | duplicate | ignored | rejected

    Every delivery ends in exactly one terminal status.  There are no
    internal retries; the bank's own redelivery is safe because the
    ledger's paid -> paid transition is idempotent.

Architecture position:
    Kernel > Services -- called by the HTTP route with the untouched
    request body.  Talks to the PaymentLedger only; never to a store.

Invariants enforced:
    - The signature is checked on the raw bytes before any parsing.  An
      unauthenticated delivery never reaches the ledger.
    - Notifications whose status is present and not "completed" are
      acknowledged and ignored.
    - The rental key comes only from the decoded payment reference.

Failure modes (WebhookStatus.REJECTED with FailureReason):
    - auth-failure     missing or wrong signature
    - validation       body is not a UTF-8 JSON object with the required fields
    - bad-reference    reference does not decode (operator notified)
    - not-found        reference decodes to an unknown rental (operator notified)
    - amount-mismatch  amount outside tolerance (operator notified)

Audit relevance:
    Rejections are logged with the delivery id and, for reference problems,
    the sanitised notification fields needed for manual reconciliation.
"""

import json
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import uuid4

from fleet_kernel.domain.clock import Clock, SystemClock
from fleet_kernel.domain.notification import (
    BankNotification,
    is_completed_status,
    parse_notification,
)
from fleet_kernel.domain.payments import FailureReason, PaymentStatus, RentalPayment
from fleet_kernel.domain.reference import decode_reference
from fleet_kernel.exceptions import NotificationValidationError
from fleet_kernel.logging_config import LogContext, get_logger
from fleet_kernel.services.event_feed import (
    EventFeed,
    NotificationKind,
    OperatorNotification,
)
from fleet_kernel.services.payment_ledger import PaymentLedger
from fleet_kernel.utils.sanitize import sanitize_input
from fleet_kernel.utils.signatures import verify_signature

logger = get_logger("services.webhook_processor")

DEFAULT_PROVIDER_NAME = "CommBank"


class WebhookStatus(str, Enum):
    """Terminal status of one delivery."""

    ACCEPTED = "accepted"
    DUPLICATE = "duplicate"  # Idempotent success
    IGNORED = "ignored"  # Acknowledged, not a completed payment
    REJECTED = "rejected"


@dataclass(frozen=True)
class WebhookResult:
    """Result of processing one delivery."""

    status: WebhookStatus
    delivery_id: str
    reason: FailureReason | None = None
    rental_id: str | None = None
    record: RentalPayment | None = None
    message: str | None = None
    field_errors: tuple[dict, ...] = ()

    @property
    def is_success(self) -> bool:
        """Check if the delivery should be acknowledged (including duplicates)."""
        return self.status in (
            WebhookStatus.ACCEPTED,
            WebhookStatus.DUPLICATE,
            WebhookStatus.IGNORED,
        )


class WebhookProcessor:
    """
    Processes signed bank notifications.

    Contract:
        ``process`` never raises for anything a sender can control.  Ledger
        infrastructure errors (database down, optimistic lock conflict)
        propagate so the HTTP layer answers 5xx and the bank redelivers.
    """

    def __init__(
        self,
        ledger: PaymentLedger,
        secret: str | bytes,
        *,
        provider_name: str = DEFAULT_PROVIDER_NAME,
        clock: Clock | None = None,
        notifications: EventFeed[OperatorNotification] | None = None,
    ):
        if not secret:
            raise ValueError("A webhook secret is required")
        self._ledger = ledger
        self._secret = secret
        self._provider_name = provider_name
        self._clock = clock or SystemClock()
        self._notifications = (
            notifications if notifications is not None else ledger.notifications
        )

    @property
    def provider_name(self) -> str:
        return self._provider_name

    def process(
        self,
        raw_body: bytes,
        signature: str | None,
        delivery_id: str | None = None,
    ) -> WebhookResult:
        """
        Process one delivery end to end.

        Args:
            raw_body: Request body exactly as received.
            signature: Value of the signature header, or None if absent.
            delivery_id: Correlates log lines; generated when not given.

        Returns:
            WebhookResult with a terminal WebhookStatus.
        """
        delivery_id = delivery_id or str(uuid4())
        with LogContext.bind(delivery_id=delivery_id):
            if not verify_signature(raw_body, signature, self._secret):
                logger.warning(
                    "webhook_rejected_signature",
                    extra={
                        "provider": self._provider_name,
                        "signature_present": bool(signature),
                        "body_size": len(raw_body) if raw_body is not None else 0,
                    },
                )
                return self._rejected(
                    delivery_id, FailureReason.AUTH_FAILURE, "Invalid signature"
                )

            try:
                payload = json.loads(raw_body.decode("utf-8"), parse_float=Decimal)
            except (UnicodeDecodeError, json.JSONDecodeError):
                logger.warning("webhook_rejected_malformed_body")
                return self._rejected(
                    delivery_id,
                    FailureReason.VALIDATION,
                    "Body is not valid UTF-8 JSON",
                )

            if isinstance(payload, dict) and not is_completed_status(payload.get("status")):
                shown = sanitize_input(str(payload["status"]))
                logger.info("webhook_ignored_status", extra={"notification_status": shown})
                return WebhookResult(
                    status=WebhookStatus.IGNORED,
                    delivery_id=delivery_id,
                    message=f"Ignoring payment with status {shown}",
                )

            try:
                notification = parse_notification(payload)
            except NotificationValidationError as exc:
                logger.warning(
                    "webhook_rejected_validation",
                    extra={"field_errors": exc.field_errors},
                )
                return self._rejected(
                    delivery_id,
                    FailureReason.VALIDATION,
                    str(exc),
                    field_errors=tuple(exc.field_errors),
                )

            return self._apply(delivery_id, notification)

    def _apply(self, delivery_id: str, notification: BankNotification) -> WebhookResult:
        decoded = decode_reference(notification.reference)
        if not decoded.valid:
            details = self._reconciliation_details(notification)
            logger.warning("webhook_rejected_bad_reference", extra=details)
            self._notify(
                NotificationKind.INVALID_REFERENCE,
                None,
                f"Payment received with unrecognised reference {notification.reference}",
                details,
            )
            return self._rejected(
                delivery_id,
                FailureReason.BAD_REFERENCE,
                f"Invalid payment reference: {notification.reference}",
            )

        rental_id = decoded.rental_id
        with LogContext.bind(
            rental_id=rental_id, transaction_id=notification.transaction_id
        ):
            result = self._ledger.apply_status(
                rental_id,
                PaymentStatus.PAID,
                notification.to_meta(self._provider_name),
            )

            if not result.success:
                details = self._reconciliation_details(notification)
                logger.warning(
                    "webhook_rejected_ledger",
                    extra={"reason": result.reason.value, **details},
                )
                if result.reason == FailureReason.NOT_FOUND:
                    self._notify(
                        NotificationKind.ORPHANED_PAYMENT,
                        rental_id,
                        f"Payment of {notification.amount} received for unknown "
                        f"rental {rental_id}",
                        details,
                    )
                elif result.reason == FailureReason.AMOUNT_MISMATCH:
                    self._notify(
                        NotificationKind.AMOUNT_MISMATCH,
                        rental_id,
                        f"Payment of {notification.amount} does not match amount "
                        f"due {result.record.amount_due}",
                        {**details, "amount_due": str(result.record.amount_due)},
                    )
                return self._rejected(
                    delivery_id,
                    result.reason,
                    result.message,
                    rental_id=rental_id,
                    record=result.record,
                )

            record = result.record
            if not result.changed:
                if record.transaction_id != notification.transaction_id:
                    logger.warning(
                        "webhook_duplicate_transaction_differs",
                        extra={"recorded_transaction_id": record.transaction_id},
                    )
                else:
                    logger.info("webhook_duplicate")
                return WebhookResult(
                    status=WebhookStatus.DUPLICATE,
                    delivery_id=delivery_id,
                    rental_id=record.rental_id,
                    record=record,
                    message="Payment already recorded",
                )

            logger.info(
                "webhook_payment_accepted",
                extra={"amount": notification.amount, "paid_date": record.paid_date},
            )
            self._notify(
                NotificationKind.PAYMENT_RECEIVED,
                record.rental_id,
                f"Payment received from {record.customer_name}",
                {
                    "amount": str(notification.amount),
                    "transaction_id": record.transaction_id,
                    "payment_method": record.payment_method,
                },
            )
            return WebhookResult(
                status=WebhookStatus.ACCEPTED,
                delivery_id=delivery_id,
                rental_id=record.rental_id,
                record=record,
                message="Payment processed successfully",
            )

    def verification_response(self, challenge: Any = None) -> dict[str, str]:
        """
        Answer the bank's GET liveness check.  Never touches the ledger.

        Echoes a sanitised ``challenge`` when one is given.
        """
        cleaned = sanitize_input(challenge)
        if cleaned:
            return {"challenge": cleaned}
        return {
            "message": f"{self._provider_name} webhook endpoint is active",
            "timestamp": self._clock.now().isoformat(),
        }

    @staticmethod
    def _reconciliation_details(notification: BankNotification) -> dict[str, Any]:
        return {
            "reference": notification.reference,
            "amount": str(notification.amount),
            "paid_date": notification.paid_date.isoformat(),
            "transaction_id": notification.transaction_id,
            "payer_name": notification.payer_name,
        }

    def _notify(
        self,
        kind: NotificationKind,
        rental_id: str | None,
        message: str,
        details: dict[str, Any],
    ) -> None:
        self._notifications.publish(
            OperatorNotification(
                kind=kind, rental_id=rental_id, message=message, details=details
            )
        )

    @staticmethod
    def _rejected(
        delivery_id: str,
        reason: FailureReason,
        message: str | None,
        *,
        rental_id: str | None = None,
        record: RentalPayment | None = None,
        field_errors: tuple[dict, ...] = (),
    ) -> WebhookResult:
        return WebhookResult(
            status=WebhookStatus.REJECTED,
            delivery_id=delivery_id,
            reason=reason,
            rental_id=rental_id,
            record=record,
            message=message,
            field_errors=field_errors,
        )
