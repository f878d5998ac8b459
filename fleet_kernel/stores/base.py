"""
PaymentStore -- persistence port for the payment ledger.

The ledger never talks to a database directly.  It is handed a PaymentStore
and relies on this contract:

    - add() rejects a second record for the same rental (case-insensitive).
    - save() replaces an existing record wholesale; it never inserts.
    - all() returns an immutable snapshot in insertion order.
    - Every method is safe to call from several threads at once.

Serialising concurrent writers for one rental is the ledger's job inside one
process (it holds a per-rental lock around read-plan-save).  Across processes
the ledger passes the record it planned from as ``expected`` and stores
refuse the write when the stored record has moved on.
"""

from abc import ABC, abstractmethod
from uuid import UUID

from fleet_kernel.domain.payments import RentalPayment


class PaymentStore(ABC):
    """Abstract persistence for RentalPayment records."""

    @abstractmethod
    def add(self, record: RentalPayment) -> RentalPayment:
        """
        Insert a new record.

        Raises:
            DuplicateRentalPaymentError: rental_id already present.
        """

    @abstractmethod
    def get(self, payment_id: UUID) -> RentalPayment | None:
        """Look up by payment id."""

    @abstractmethod
    def get_by_rental(self, rental_id: str) -> RentalPayment | None:
        """Look up by rental id, ignoring case."""

    @abstractmethod
    def all(self) -> tuple[RentalPayment, ...]:
        """Snapshot of every record in insertion order."""

    @abstractmethod
    def save(
        self, record: RentalPayment, expected: RentalPayment | None = None
    ) -> RentalPayment:
        """
        Replace the stored record with the same id.

        Args:
            record: New state.
            expected: State the caller read before planning.  When given,
                the write only happens if the stored record still equals it.

        Raises:
            PaymentNotFoundError: No record with this id.
            OptimisticLockError: The stored record is no longer ``expected``.
        """
