"""
Pytest fixtures for the fleet payment test suite.

Provides:
- Structured logging configuration and log capture
- Deterministic clock
- In-memory and SQLite-backed payment stores and ledgers
- Record factories

``sql_store`` runs against ``sqlite:///:memory:`` on a StaticPool so every
session in a test sees the same database.  ``file_sql_store`` uses a SQLite
file so concurrent sessions hold separate connections, as separate worker
processes would.
"""

import json
import logging
from datetime import date, datetime, timezone
from decimal import Decimal
from io import StringIO
from uuid import uuid4

import pytest

from fleet_kernel.db.engine import (
    create_tables,
    get_session_factory,
    init_engine_from_url,
    reset_engine,
)
from fleet_kernel.domain.clock import DeterministicClock
from fleet_kernel.domain.payments import PaymentStatus, RentalPayment
from fleet_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from fleet_kernel.services.event_feed import EventFeed
from fleet_kernel.services.payment_ledger import PaymentLedger
from fleet_kernel.stores.memory import InMemoryPaymentStore
from fleet_kernel.stores.sql import SqlAlchemyPaymentStore

WEBHOOK_SECRET = "test-webhook-secret"
FIXED_NOW = datetime(2024, 3, 15, 9, 30, tzinfo=timezone.utc)


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture fleet_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, ledger):
            ledger.apply_status(...)
            logs = captured_logs()
            assert any(r["message"] == "payment_status_applied" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("fleet_kernel")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "slow_locks: mark test as exercising lock contention between threads"
    )


# =============================================================================
# Core fixtures
# =============================================================================


@pytest.fixture
def clock() -> DeterministicClock:
    return DeterministicClock(FIXED_NOW)


def make_payment(
    rental_id: str = "r1",
    customer_name: str = "Michael Chen",
    amount_due: Decimal | str = "100.00",
    status: PaymentStatus = PaymentStatus.PENDING,
    due: date = date(2024, 3, 1),
    **overrides,
) -> RentalPayment:
    """Build a RentalPayment with sensible defaults."""
    fields = dict(
        id=uuid4(),
        rental_id=rental_id,
        customer_name=customer_name,
        vehicle_registration=overrides.pop("vehicle_registration", "ABC123"),
        amount_due=Decimal(amount_due),
        payment_status=status,
        payment_due_date=due,
        payment_method=overrides.pop("payment_method", "bank_transfer"),
    )
    if status == PaymentStatus.PAID:
        fields.setdefault("paid_date", overrides.pop("paid_date", due))
        fields.setdefault("transaction_id", overrides.pop("transaction_id", f"txn-{rental_id}"))
    fields.update(overrides)
    return RentalPayment(**fields)


@pytest.fixture
def payment_factory():
    return make_payment


@pytest.fixture
def memory_store() -> InMemoryPaymentStore:
    return InMemoryPaymentStore()


@pytest.fixture
def sql_store():
    """SqlAlchemyPaymentStore on a fresh in-memory SQLite database."""
    engine = init_engine_from_url("sqlite:///:memory:")
    create_tables(engine)
    yield SqlAlchemyPaymentStore(get_session_factory())
    reset_engine()


@pytest.fixture
def file_sql_store(tmp_path):
    """SqlAlchemyPaymentStore on a SQLite file; every session gets its own connection."""
    engine = init_engine_from_url(f"sqlite:///{tmp_path / 'fleet.db'}")
    create_tables(engine)
    yield SqlAlchemyPaymentStore(get_session_factory())
    reset_engine()


@pytest.fixture
def changes() -> list:
    """List receiving every PaymentChange published by the ``ledger`` fixture."""
    return []


@pytest.fixture
def notifications() -> list:
    """List receiving every OperatorNotification published by ``ledger``."""
    return []


@pytest.fixture
def ledger(memory_store, clock, changes, notifications) -> PaymentLedger:
    change_feed = EventFeed("test_changes")
    change_feed.subscribe(changes.append)
    notification_feed = EventFeed("test_notifications")
    notification_feed.subscribe(notifications.append)
    return PaymentLedger(
        memory_store,
        clock=clock,
        changes=change_feed,
        notifications=notification_feed,
    )
