"""Persistence backends for the payment ledger."""

from fleet_kernel.stores.base import PaymentStore
from fleet_kernel.stores.memory import InMemoryPaymentStore
from fleet_kernel.stores.sql import SqlAlchemyPaymentStore

__all__ = [
    "InMemoryPaymentStore",
    "PaymentStore",
    "SqlAlchemyPaymentStore",
]
