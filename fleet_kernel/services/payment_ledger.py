"""
PaymentLedger -- authoritative owner of rental payment state.

Responsibility:
    Registers payment records, answers queries, and applies status
    transitions (bank webhooks, manual overrides, the overdue sweep) with
    per-rental serialisation.  Emits a PaymentChange after every successful
    apply_status so dashboards can refresh.

Architecture position:
    Kernel > Services -- imperative shell around the pure transition logic
    in ``domain.transitions``.  Persistence is an injected PaymentStore;
    there is no module-level store.

Invariants enforced:
    - Serialisation: all read-plan-save cycles for one rental run under a
      KeyedLock entry, so two concurrent deliveries for the same rental
      produce exactly one effective transition.  Different rentals do not
      contend.
    - Compare-and-set: save() is told the record the plan was made from.
      Ledgers that do not share a lock table (separate processes on one
      database) lose the race with OptimisticLockError and plan again, so
      the loser sees the winner's record as a no-op.
    - Idempotency: paid -> paid is a success with ``changed=False`` and
      never rewrites paid_date or transaction_id.
    - Closed status set: unknown statuses are rejected before any lookup.

Failure modes:
    Expected rejections come back as StatusUpdateResult with a
    FailureReason, never as exceptions:
    - validation       unknown status, or incomplete paid metadata
    - not-found        no record for the rental
    - amount-mismatch  observed amount outside tolerance
    Database errors propagate to the caller, as does OptimisticLockError
    once MAX_SAVE_ATTEMPTS rounds have all conflicted.
"""

from datetime import date, timedelta
from decimal import Decimal
from uuid import UUID

from fleet_kernel.domain.clock import Clock, SystemClock
from fleet_kernel.domain.payments import (
    FailureReason,
    PaymentChange,
    PaymentFilter,
    PaymentStatus,
    RentalPayment,
    StatusUpdateResult,
    TransitionMeta,
)
from fleet_kernel.domain.statistics import PaymentStatistics, compute_statistics
from fleet_kernel.domain.transitions import (
    DEFAULT_AMOUNT_TOLERANCE,
    TransitionPlan,
    plan_transition,
)
from fleet_kernel.exceptions import (
    AmountMismatchError,
    InvalidPaymentStatusError,
    OptimisticLockError,
    TransitionValidationError,
)
from fleet_kernel.logging_config import LogContext, get_logger
from fleet_kernel.services.event_feed import (
    EventFeed,
    NotificationKind,
    OperatorNotification,
)
from fleet_kernel.stores.base import PaymentStore
from fleet_kernel.utils.keyed_lock import KeyedLock

logger = get_logger("services.payment_ledger")

DEFAULT_GRACE_PERIOD_DAYS = 7

# Read-plan-save rounds per apply before a store conflict propagates
MAX_SAVE_ATTEMPTS = 3


class PaymentLedger:
    """
    Service owning every RentalPayment.

    Contract:
        Build one per process and share it.  All methods are thread-safe.

    Non-goals:
        - Does NOT create rentals; the booking flow calls register().
        - Does NOT retry database errors; only a store conflict triggers a
          fresh read and plan.
    """

    def __init__(
        self,
        store: PaymentStore,
        *,
        clock: Clock | None = None,
        amount_tolerance: Decimal | None = DEFAULT_AMOUNT_TOLERANCE,
        grace_period_days: int = DEFAULT_GRACE_PERIOD_DAYS,
        changes: EventFeed[PaymentChange] | None = None,
        notifications: EventFeed[OperatorNotification] | None = None,
        locks: KeyedLock | None = None,
    ):
        """
        Args:
            store: Persistence backend.
            clock: Clock for event timestamps and the overdue sweep.
            amount_tolerance: Max accepted |observed - due|; None disables
                amount matching.
            grace_period_days: Days past due before the sweep marks a
                pending payment overdue.
            changes: Feed receiving a PaymentChange per successful update.
            notifications: Feed receiving operator notifications.
            locks: Per-rental lock table; share it between ledgers that
                front the same store.
        """
        if grace_period_days < 0:
            raise ValueError(f"grace_period_days cannot be negative: {grace_period_days}")
        self._store = store
        self._clock = clock or SystemClock()
        self._amount_tolerance = amount_tolerance
        self._grace_period_days = grace_period_days
        self._changes = changes if changes is not None else EventFeed("payment_changes")
        self._notifications = (
            notifications if notifications is not None else EventFeed("notifications")
        )
        self._locks = locks or KeyedLock()

    @property
    def changes(self) -> EventFeed[PaymentChange]:
        return self._changes

    @property
    def notifications(self) -> EventFeed[OperatorNotification]:
        return self._notifications

    @property
    def amount_tolerance(self) -> Decimal | None:
        return self._amount_tolerance

    # Records

    def register(self, record: RentalPayment) -> RentalPayment:
        """
        Add the payment record for a newly booked rental.

        Raises:
            DuplicateRentalPaymentError: The rental already has a record.
        """
        with self._locks.hold(record.rental_id):
            self._store.add(record)
        logger.info(
            "payment_registered",
            extra={
                "rental_id": record.rental_id,
                "payment_id": record.id,
                "amount_due": record.amount_due,
                "payment_status": record.payment_status.value,
            },
        )
        return record

    def get(self, payment_id: UUID) -> RentalPayment | None:
        return self._store.get(payment_id)

    def get_by_rental(self, rental_id: str) -> RentalPayment | None:
        return self._store.get_by_rental(rental_id)

    def list(self, filter: PaymentFilter | None = None) -> tuple[RentalPayment, ...]:
        """Records matching ``filter`` in insertion order (all when None)."""
        records = self._store.all()
        if filter is None:
            return records
        return tuple(record for record in records if filter.matches(record))

    def statistics(self) -> PaymentStatistics:
        """Collection metrics over the current snapshot, never cached."""
        return compute_statistics(self._store.all())

    # Transitions

    def apply_status(
        self,
        rental_id: str,
        new_status: PaymentStatus | str,
        meta: TransitionMeta | None = None,
    ) -> StatusUpdateResult:
        """
        Move a rental's payment to ``new_status``.

        Preconditions:
            - For PAID, ``meta`` carries paid_date, payment_method and
              transaction_id.

        Postconditions:
            - success=True: the stored record equals ``result.record`` and a
              PaymentChange was published.
            - success=False: nothing was written.

        Returns:
            StatusUpdateResult; see module docstring for failure reasons.
        """
        return self._apply(rental_id, new_status, meta)

    def _apply(
        self,
        rental_id: str,
        new_status: PaymentStatus | str,
        meta: TransitionMeta | None,
        only_from: PaymentStatus | None = None,
    ) -> StatusUpdateResult:
        if not isinstance(rental_id, str) or not rental_id.strip():
            return StatusUpdateResult.failed(
                str(rental_id), FailureReason.VALIDATION, "rental_id is required"
            )

        with LogContext.bind(rental_id=rental_id):
            try:
                status = PaymentStatus.parse(new_status)
            except InvalidPaymentStatusError as exc:
                logger.warning(
                    "payment_status_rejected_invalid", extra={"status": exc.value}
                )
                return StatusUpdateResult.failed(
                    rental_id, FailureReason.VALIDATION, str(exc)
                )

            with self._locks.hold(rental_id):
                for attempt in range(1, MAX_SAVE_ATTEMPTS + 1):
                    outcome = self._plan(rental_id, status, meta, only_from)
                    if isinstance(outcome, StatusUpdateResult):
                        return outcome
                    current, plan = outcome
                    if not plan.changed:
                        break
                    try:
                        self._store.save(plan.record, expected=current)
                        break
                    except OptimisticLockError:
                        # Another writer moved the row; plan again from what it wrote
                        if attempt == MAX_SAVE_ATTEMPTS:
                            raise
                        logger.warning(
                            "payment_status_conflict_replanning",
                            extra={"attempt": attempt},
                        )

            if plan.changed:
                logger.info(
                    "payment_status_applied",
                    extra={
                        "from_status": current.payment_status.value,
                        "to_status": status.value,
                        "payment_id": current.id,
                    },
                )
                message = f"Payment marked as {status.value}"
            else:
                logger.info(
                    "payment_status_unchanged", extra={"status": status.value}
                )
                message = f"Payment already {status.value}"

            self._changes.publish(
                PaymentChange(
                    rental_id=plan.record.rental_id,
                    new_status=plan.record.payment_status,
                    changed=plan.changed,
                    occurred_at=self._clock.now(),
                )
            )
            return StatusUpdateResult.applied(plan.record, plan.changed, message)

    def _plan(
        self,
        rental_id: str,
        status: PaymentStatus,
        meta: TransitionMeta | None,
        only_from: PaymentStatus | None,
    ) -> StatusUpdateResult | tuple[RentalPayment, TransitionPlan]:
        """Read the current record and decide; a result means stop here."""
        current = self._store.get_by_rental(rental_id)
        if current is None:
            logger.warning("payment_status_rejected_not_found")
            return StatusUpdateResult.failed(
                rental_id,
                FailureReason.NOT_FOUND,
                f"Payment for rental {rental_id} not found",
            )

        if only_from is not None and current.payment_status != only_from:
            return StatusUpdateResult.applied(
                current, False, f"Payment no longer {only_from.value}"
            )

        try:
            return current, plan_transition(current, status, meta, self._amount_tolerance)
        except TransitionValidationError as exc:
            logger.warning(
                "payment_status_rejected_validation",
                extra={"missing_fields": list(exc.missing_fields)},
            )
            return StatusUpdateResult.failed(
                current.rental_id,
                FailureReason.VALIDATION,
                str(exc),
                record=current,
            )
        except AmountMismatchError as exc:
            logger.warning(
                "payment_status_rejected_amount_mismatch",
                extra={
                    "expected": exc.expected,
                    "observed": exc.observed,
                    "tolerance": exc.tolerance,
                },
            )
            return StatusUpdateResult.failed(
                current.rental_id,
                FailureReason.AMOUNT_MISMATCH,
                str(exc),
                record=current,
            )

    def mark_overdue(
        self,
        as_of: date | None = None,
        grace_period_days: int | None = None,
    ) -> tuple[RentalPayment, ...]:
        """
        Sweep pending payments past due date plus grace into overdue.

        A payment due on D with grace G becomes overdue once as_of > D + G.

        Returns:
            The records this call transitioned, in insertion order.
        """
        as_of = as_of or self._clock.today()
        grace = self._grace_period_days if grace_period_days is None else grace_period_days
        cutoff = as_of - timedelta(days=grace)

        swept: list[RentalPayment] = []
        for record in self._store.all():
            if record.payment_status != PaymentStatus.PENDING:
                continue
            if record.payment_due_date >= cutoff:
                continue
            result = self._apply(
                record.rental_id,
                PaymentStatus.OVERDUE,
                None,
                only_from=PaymentStatus.PENDING,
            )
            if not (result.success and result.changed):
                continue
            swept.append(result.record)
            days_late = (as_of - record.payment_due_date).days
            self._notifications.publish(
                OperatorNotification(
                    kind=NotificationKind.PAYMENT_OVERDUE,
                    rental_id=record.rental_id,
                    message=(
                        f"Payment for {record.customer_name} is {days_late} days overdue"
                    ),
                    details={
                        "amount_due": str(record.amount_due),
                        "payment_due_date": record.payment_due_date.isoformat(),
                        "days_late": days_late,
                    },
                )
            )

        logger.info(
            "overdue_sweep_completed",
            extra={"as_of": as_of, "grace_period_days": grace, "swept": len(swept)},
        )
        return tuple(swept)
