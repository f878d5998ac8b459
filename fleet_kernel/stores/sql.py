"""
Module: fleet_kernel.stores.sql
Responsibility: PaymentStore backed by SQLAlchemy.  Each call runs in its
    own short transaction from the injected session factory.
Architecture position: Kernel > Stores.  Imports models/ and db/.

Invariants enforced:
    - save() reads the row with SELECT ... FOR UPDATE, so concurrent writers
      in other processes queue behind each other on PostgreSQL.
    - save(record, expected) is a compare-and-set: the row read under the
      lock must still equal ``expected``, and the UPDATE is guarded by the
      version it was read at.  Either check failing surfaces as
      OptimisticLockError, also on SQLite where FOR UPDATE is a no-op.
    - Rental ids are matched case-insensitively via lower().

Failure modes:
    - DuplicateRentalPaymentError on add() for a known rental.
    - PaymentNotFoundError on save() of an unknown id.
    - OptimisticLockError on a stale version.
"""

from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from fleet_kernel.db.engine import session_scope
from fleet_kernel.domain.payments import RentalPayment
from fleet_kernel.exceptions import (
    DuplicateRentalPaymentError,
    OptimisticLockError,
    PaymentNotFoundError,
)
from fleet_kernel.logging_config import get_logger
from fleet_kernel.models.rental_payment import RentalPaymentModel
from fleet_kernel.stores.base import PaymentStore

logger = get_logger("stores.sql")


class SqlAlchemyPaymentStore(PaymentStore):
    """PaymentStore over a relational database."""

    def __init__(self, session_factory: sessionmaker[Session]):
        self._session_factory = session_factory

    def _find_rental(self, session: Session, rental_id: str):
        return session.execute(
            select(RentalPaymentModel).where(
                func.lower(RentalPaymentModel.rental_id) == rental_id.strip().lower()
            )
        ).scalar_one_or_none()

    def add(self, record: RentalPayment) -> RentalPayment:
        try:
            with session_scope(self._session_factory) as session:
                if self._find_rental(session, record.rental_id) is not None:
                    raise DuplicateRentalPaymentError(record.rental_id)
                next_seq = session.execute(
                    select(func.coalesce(func.max(RentalPaymentModel.seq), 0))
                ).scalar_one() + 1
                session.add(RentalPaymentModel.from_dto(record, seq=next_seq))
                session.flush()
        except IntegrityError as exc:
            # Lost the race against a concurrent insert of the same rental
            raise DuplicateRentalPaymentError(record.rental_id) from exc
        return record

    def get(self, payment_id: UUID) -> RentalPayment | None:
        with session_scope(self._session_factory) as session:
            model = session.get(RentalPaymentModel, payment_id)
            return model.to_dto() if model is not None else None

    def get_by_rental(self, rental_id: str) -> RentalPayment | None:
        with session_scope(self._session_factory) as session:
            model = self._find_rental(session, rental_id)
            return model.to_dto() if model is not None else None

    def all(self) -> tuple[RentalPayment, ...]:
        with session_scope(self._session_factory) as session:
            models = session.execute(
                select(RentalPaymentModel).order_by(RentalPaymentModel.seq)
            ).scalars()
            return tuple(model.to_dto() for model in models)

    def save(
        self, record: RentalPayment, expected: RentalPayment | None = None
    ) -> RentalPayment:
        try:
            with session_scope(self._session_factory) as session:
                model = session.execute(
                    select(RentalPaymentModel)
                    .where(RentalPaymentModel.id == record.id)
                    .with_for_update()
                    .execution_options(populate_existing=True)
                ).scalar_one_or_none()
                if model is None:
                    raise PaymentNotFoundError(record.rental_id)
                if expected is not None and model.to_dto() != expected:
                    raise self._conflict(record)
                # UPDATE ... WHERE version = <version read above>
                model.apply_dto(record)
                session.flush()
        except StaleDataError as exc:
            raise self._conflict(record) from exc
        return record

    @staticmethod
    def _conflict(record: RentalPayment) -> OptimisticLockError:
        logger.warning(
            "payment_save_conflict",
            extra={"rental_id": record.rental_id, "payment_id": record.id},
        )
        return OptimisticLockError("RentalPayment", str(record.id))
