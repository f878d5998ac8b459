"""
Tests for SqlAlchemyPaymentStore on SQLite.

Also runs the ledger end to end over the SQL store so the ORM round trip
(Decimal amounts, dates, status strings, version column) is exercised.
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import select

from fleet_kernel.db.engine import session_scope
from fleet_kernel.domain.payments import PaymentStatus, TransitionMeta
from fleet_kernel.exceptions import (
    DuplicateRentalPaymentError,
    OptimisticLockError,
    PaymentNotFoundError,
)
from fleet_kernel.models.rental_payment import RentalPaymentModel
from fleet_kernel.services.payment_ledger import PaymentLedger
from fleet_kernel.stores.sql import SqlAlchemyPaymentStore


class TestSqlStore:
    def test_add_and_get(self, sql_store, payment_factory):
        record = payment_factory("r1", company="Acme", amount_due="123.45")
        sql_store.add(record)

        assert sql_store.get(record.id) == record
        assert sql_store.get_by_rental("R1") == record

    def test_get_missing(self, sql_store):
        assert sql_store.get(uuid4()) is None
        assert sql_store.get_by_rental("nope") is None

    def test_duplicate_rental(self, sql_store, payment_factory):
        sql_store.add(payment_factory("r1"))
        with pytest.raises(DuplicateRentalPaymentError):
            sql_store.add(payment_factory("R1"))

    def test_all_in_insertion_order(self, sql_store, payment_factory):
        for rental_id in ["c", "a", "b"]:
            sql_store.add(payment_factory(rental_id))
        assert [r.rental_id for r in sql_store.all()] == ["c", "a", "b"]

    def test_save_round_trip(self, sql_store, payment_factory):
        record = payment_factory("r1")
        sql_store.add(record)
        paid = payment_factory(
            "r1",
            status=PaymentStatus.PAID,
            id=record.id,
            paid_date=date(2024, 3, 10),
            transaction_id="TXN-1",
            payer_name="Michael Chen",
        )

        sql_store.save(paid)

        stored = sql_store.get(record.id)
        assert stored == paid
        assert stored.payment_status is PaymentStatus.PAID
        assert stored.amount_due == Decimal("100.00")

    def test_save_unknown(self, sql_store, payment_factory):
        with pytest.raises(PaymentNotFoundError):
            sql_store.save(payment_factory("r1"))

    def test_version_increments(self, sql_store, payment_factory):
        record = payment_factory("r1")
        sql_store.add(record)
        sql_store.save(payment_factory("r1", id=record.id, status=PaymentStatus.OVERDUE))

        with session_scope(sql_store._session_factory) as session:
            version = session.execute(
                select(RentalPaymentModel.version).where(RentalPaymentModel.id == record.id)
            ).scalar_one()
        assert version == 2

    def test_save_against_stale_snapshot_is_refused(self, sql_store, payment_factory):
        record = payment_factory("r1")
        sql_store.add(record)
        snapshot = sql_store.get(record.id)
        first = payment_factory("r1", id=record.id, status=PaymentStatus.PAID, transaction_id="TXN-A")
        second = payment_factory("r1", id=record.id, status=PaymentStatus.PAID, transaction_id="TXN-B")

        sql_store.save(first, expected=snapshot)
        with pytest.raises(OptimisticLockError) as exc_info:
            sql_store.save(second, expected=snapshot)

        assert exc_info.value.code == "OPTIMISTIC_LOCK_CONFLICT"
        assert exc_info.value.entity_id == str(record.id)
        assert sql_store.get(record.id).transaction_id == "TXN-A"

    def test_version_guard_catches_write_between_read_and_update(
        self, file_sql_store, payment_factory, monkeypatch
    ):
        record = payment_factory("r1")
        file_sql_store.add(record)
        winner = payment_factory("r1", id=record.id, status=PaymentStatus.OVERDUE)
        loser = payment_factory("r1", id=record.id, status=PaymentStatus.PAID, transaction_id="TXN-B")
        original_apply = RentalPaymentModel.apply_dto
        competing = [winner]

        def apply_after_competing_commit(model, dto):
            # Another connection commits after this save read the row
            if competing:
                file_sql_store.save(competing.pop())
            original_apply(model, dto)

        monkeypatch.setattr(RentalPaymentModel, "apply_dto", apply_after_competing_commit)
        with pytest.raises(OptimisticLockError):
            file_sql_store.save(loser, expected=record)

        assert file_sql_store.get(record.id) == winner

        with session_scope(file_sql_store._session_factory) as session:
            version = session.execute(
                select(RentalPaymentModel.version).where(RentalPaymentModel.id == record.id)
            ).scalar_one()
        assert version == 2


class TestSeparateLedgersOneDatabase:
    """Two ledgers without a shared lock table, as in two worker processes."""

    def test_stale_plan_replans_to_no_op(self, file_sql_store, payment_factory, clock, captured_logs):
        PaymentLedger(file_sql_store, clock=clock).register(
            payment_factory("r2", "Michael Chen", "100.00")
        )
        factory = file_sql_store._session_factory
        worker_a = PaymentLedger(SqlAlchemyPaymentStore(factory), clock=clock)
        a_results = []

        def worker_a_pays():
            a_results.append(worker_a.apply_status("r2", PaymentStatus.PAID, _paid_meta("TXN-A")))

        worker_b = PaymentLedger(_ReadThenRun(factory, worker_a_pays), clock=clock)
        b_result = worker_b.apply_status("r2", PaymentStatus.PAID, _paid_meta("TXN-B"))

        assert a_results[0].changed is True
        assert b_result.success is True
        assert b_result.changed is False
        final = worker_b.get_by_rental("r2")
        assert final.transaction_id == "TXN-A"
        assert final.paid_date == date(2024, 3, 10)
        messages = [r["message"] for r in captured_logs()]
        assert "payment_save_conflict" in messages
        assert "payment_status_conflict_replanning" in messages


def _paid_meta(transaction_id: str) -> TransitionMeta:
    return TransitionMeta(
        paid_date=date(2024, 3, 10),
        payment_method="CommBank bank_transfer",
        transaction_id=transaction_id,
        amount=Decimal("100.00"),
    )


class _ReadThenRun(SqlAlchemyPaymentStore):
    """Runs ``between`` once, after the first rental read returns its snapshot."""

    def __init__(self, session_factory, between):
        super().__init__(session_factory)
        self._between = between

    def get_by_rental(self, rental_id):
        snapshot = super().get_by_rental(rental_id)
        if self._between is not None:
            between, self._between = self._between, None
            between()
        return snapshot


class TestLedgerOverSql:
    def test_idempotent_paid_transition(self, sql_store, payment_factory, clock):
        ledger = PaymentLedger(sql_store, clock=clock)
        ledger.register(payment_factory("r2", "Michael Chen", "100.00"))
        meta = TransitionMeta(
            paid_date=date(2024, 3, 10),
            payment_method="CommBank bank_transfer",
            transaction_id="TXN-001",
            amount=Decimal("100.00"),
        )

        first = ledger.apply_status("R2", PaymentStatus.PAID, meta)
        second = ledger.apply_status("r2", PaymentStatus.PAID, meta)

        assert first.changed is True
        assert second.changed is False
        assert ledger.get_by_rental("r2").transaction_id == "TXN-001"

    def test_statistics_and_sweep(self, sql_store, payment_factory, clock):
        ledger = PaymentLedger(sql_store, clock=clock)
        ledger.register(payment_factory("r1", amount_due="100", status=PaymentStatus.PAID))
        ledger.register(payment_factory("r2", amount_due="50", due=date(2024, 1, 1)))
        ledger.register(payment_factory("r3", amount_due="25", status=PaymentStatus.OVERDUE))

        swept = ledger.mark_overdue()

        assert [r.rental_id for r in swept] == ["r2"]
        stats = ledger.statistics()
        assert stats.total == 3
        assert stats.overdue == 2
        assert stats.overdue_amount == Decimal("75.00")
        assert stats.collection_rate == Decimal("57.14")
