"""
Module: fleet_kernel.models.rental_payment
Responsibility: ORM persistence for rental payment records.  One row per
    rental; the row is the SQL image of the RentalPayment DTO.
Architecture position: Kernel > Models.  May import from db/ and the
    domain DTOs it converts to and from.  MUST NOT import from services/.

Invariants enforced:
    - rental_id is unique (uq_rental_payment_rental).  Lookups compare it
      case-insensitively at the store level.
    - version is the SQLAlchemy version_id_col; a write against a stale
      version raises StaleDataError, mapped to OptimisticLockError by the
      store.
    - seq records insertion order so listings are stable across databases.

Failure modes:
    - IntegrityError on a duplicate rental_id.
    - ValueError from to_dto() if a row violates the paid invariant
      (e.g. edited by hand).
"""

from datetime import date
from decimal import Decimal

from sqlalchemy import Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from fleet_kernel.db.base import TrackedBase
from fleet_kernel.db.types import round_money
from fleet_kernel.domain.payments import PaymentStatus, RentalPayment


class RentalPaymentModel(TrackedBase):
    """
    Payment state of one rental.

    Contract:
        Written only through a PaymentStore.  The DTO is the unit of
        exchange; callers never see ORM instances.
    """

    __tablename__ = "rental_payments"

    __table_args__ = (
        UniqueConstraint("rental_id", name="uq_rental_payment_rental"),
        Index("idx_rental_payment_status", "payment_status"),
        Index("idx_rental_payment_due", "payment_due_date"),
        Index("idx_rental_payment_seq", "seq"),
    )

    rental_id: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
    )

    seq: Mapped[int] = mapped_column(
        nullable=False,
    )

    customer_name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    vehicle_registration: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
    )

    company: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
    )

    amount_due: Mapped[Decimal] = mapped_column(
        nullable=False,
    )

    payment_status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=PaymentStatus.PENDING.value,
    )

    payment_due_date: Mapped[date] = mapped_column(
        nullable=False,
    )

    payment_method: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
    )

    # Settlement, set iff payment_status == paid
    paid_date: Mapped[date | None] = mapped_column(
        nullable=True,
    )

    transaction_id: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
    )

    payer_name: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
    )

    version: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )

    __mapper_args__ = {"version_id_col": version}

    def to_dto(self) -> RentalPayment:
        return RentalPayment(
            id=self.id,
            rental_id=self.rental_id,
            customer_name=self.customer_name,
            vehicle_registration=self.vehicle_registration,
            company=self.company,
            amount_due=round_money(Decimal(self.amount_due)),
            payment_status=PaymentStatus.parse(self.payment_status),
            payment_due_date=self.payment_due_date,
            payment_method=self.payment_method,
            paid_date=self.paid_date,
            transaction_id=self.transaction_id,
            payer_name=self.payer_name,
        )

    @classmethod
    def from_dto(cls, dto: RentalPayment, seq: int) -> "RentalPaymentModel":
        model = cls(id=dto.id, seq=seq)
        model.apply_dto(dto)
        return model

    def apply_dto(self, dto: RentalPayment) -> None:
        """Copy every mutable field from the DTO onto this row."""
        self.rental_id = dto.rental_id
        self.customer_name = dto.customer_name
        self.vehicle_registration = dto.vehicle_registration
        self.company = dto.company
        self.amount_due = round_money(dto.amount_due)
        self.payment_status = dto.payment_status.value
        self.payment_due_date = dto.payment_due_date
        self.payment_method = dto.payment_method
        self.paid_date = dto.paid_date
        self.transaction_id = dto.transaction_id
        self.payer_name = dto.payer_name

    def __repr__(self) -> str:
        return f"<RentalPayment {self.rental_id}: {self.payment_status}>"
