"""SQLAlchemy ORM models for the fleet kernel."""

from fleet_kernel.models.rental_payment import RentalPaymentModel

__all__ = ["RentalPaymentModel"]
