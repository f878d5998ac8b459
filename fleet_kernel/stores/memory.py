"""In-process PaymentStore for tests and single-process deployments."""

import threading
from uuid import UUID

from fleet_kernel.domain.payments import RentalPayment
from fleet_kernel.exceptions import (
    DuplicateRentalPaymentError,
    OptimisticLockError,
    PaymentNotFoundError,
)
from fleet_kernel.stores.base import PaymentStore


def _rental_key(rental_id: str) -> str:
    return rental_id.strip().lower()


class InMemoryPaymentStore(PaymentStore):
    """
    Dict-backed store guarded by a single lock.

    Records are frozen dataclasses, so handing them out needs no copying.
    """

    def __init__(self, records=()):
        self._lock = threading.Lock()
        self._by_id: dict[UUID, RentalPayment] = {}
        self._by_rental: dict[str, UUID] = {}
        for record in records:
            self.add(record)

    def add(self, record: RentalPayment) -> RentalPayment:
        key = _rental_key(record.rental_id)
        with self._lock:
            if key in self._by_rental:
                raise DuplicateRentalPaymentError(record.rental_id)
            self._by_id[record.id] = record
            self._by_rental[key] = record.id
        return record

    def get(self, payment_id: UUID) -> RentalPayment | None:
        with self._lock:
            return self._by_id.get(payment_id)

    def get_by_rental(self, rental_id: str) -> RentalPayment | None:
        with self._lock:
            payment_id = self._by_rental.get(_rental_key(rental_id))
            if payment_id is None:
                return None
            return self._by_id[payment_id]

    def all(self) -> tuple[RentalPayment, ...]:
        # dicts keep insertion order; save() overwrites in place
        with self._lock:
            return tuple(self._by_id.values())

    def save(
        self, record: RentalPayment, expected: RentalPayment | None = None
    ) -> RentalPayment:
        with self._lock:
            stored = self._by_id.get(record.id)
            if stored is None:
                raise PaymentNotFoundError(record.rental_id)
            if expected is not None and stored != expected:
                raise OptimisticLockError("RentalPayment", str(record.id))
            self._by_id[record.id] = record
        return record

    def __len__(self) -> int:
        with self._lock:
            return len(self._by_id)
