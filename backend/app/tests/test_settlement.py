"""
Tests for consolidation and settlement.
"""
from decimal import Decimal

import pytest

from app.core.exceptions import (
    AlreadyConsolidated, AlreadySettled, InvalidPayer, NoBillsToConsolidate, NotHost, TransactionNotFound
)
from app.models.bill import Bill, Consolidation
from app.models.transaction import Transaction
from app.services import bill_service, room_service, settlement_service
from app.services.bill_service import ConsolidationStatus


@pytest.fixture()
def room(db, users):
    alice, bob, carol = users
    room, _ = room_service.create_room(alice.id, "Trip", db, invitee_ids=[bob.id, carol.id])
    for user in (bob, carol):
        room_service.respond_to_invite(room.id, user.id, True, db)
    return room


def pairs(transactions):
    return sorted((t.payer_id, t.payee_id, t.amount) for t in transactions)


def test_consolidate_two_payer_split(db, users, room):
    alice, bob, carol = users
    bill_service.create_bill(room.id, alice.id, "Hotel", Decimal("100.00"), [bob.id, carol.id], True, db)

    consolidation = settlement_service.consolidate_room(room.id, alice.id, db)

    assert pairs(consolidation.transactions) == [
        (bob.id, alice.id, Decimal("33.33")),
        (carol.id, alice.id, Decimal("33.33")),
    ]
    assert all(not t.is_paid for t in consolidation.transactions)
    assert all(b.consolidation_id == consolidation.id for b in bill_service.get_bills_for_room(room.id, db))


def test_consolidate_cancels_mutual_debt(db, users, room):
    alice, bob, _ = users
    bill_service.create_bill(room.id, alice.id, "Hotel", Decimal("100"), [bob.id], True, db)
    bill_service.create_bill(room.id, bob.id, "Food", Decimal("50"), [alice.id], True, db)

    consolidation = settlement_service.consolidate_room(room.id, alice.id, db)
    assert pairs(consolidation.transactions) == [(bob.id, alice.id, Decimal("25.00"))]


def test_consolidate_twice(db, users, room):
    alice, bob, _ = users
    bill_service.create_bill(room.id, alice.id, "Hotel", Decimal("60"), [bob.id], False, db)

    settlement_service.consolidate_room(room.id, alice.id, db)
    with pytest.raises(AlreadyConsolidated):
        settlement_service.consolidate_room(room.id, alice.id, db)

    assert db.query(Consolidation).filter(Consolidation.room_id == room.id).count() == 1
    assert db.query(Transaction).count() == 1


def test_consolidate_loses_race_to_committed_consolidation(db, users, room, monkeypatch):
    alice, bob, _ = users
    bill_service.create_bill(room.id, alice.id, "Hotel", Decimal("60"), [bob.id], False, db)

    # Another request committed its consolidation after our status check
    winner = Consolidation(room_id=room.id)
    db.add(winner)
    db.commit()
    monkeypatch.setattr(
        bill_service, "get_consolidation_status", lambda room_id, db: ConsolidationStatus.UNCONSOLIDATED
    )

    with pytest.raises(AlreadyConsolidated):
        settlement_service.consolidate_room(room.id, alice.id, db)

    assert [c.id for c in db.query(Consolidation).filter(Consolidation.room_id == room.id)] == [winner.id]
    assert db.query(Bill).filter(Bill.consolidation_id.isnot(None)).count() == 0
    assert db.query(Transaction).count() == 0


def test_consolidate_without_bills(db, users, room):
    with pytest.raises(NoBillsToConsolidate):
        settlement_service.consolidate_room(room.id, users[0].id, db)


def test_non_host_cannot_consolidate(db, users, room):
    alice, bob, _ = users
    bill_service.create_bill(room.id, alice.id, "Hotel", Decimal("60"), [bob.id], False, db)

    with pytest.raises(NotHost):
        settlement_service.consolidate_room(room.id, bob.id, db)

    assert db.query(Consolidation).count() == 0
    assert db.query(Bill).filter(Bill.consolidation_id.isnot(None)).count() == 0
    assert not settlement_service.is_room_consolidated(room.id, db)


def test_failed_consolidation_rolls_back(db, users, room, monkeypatch):
    alice, bob, _ = users
    bill_service.create_bill(room.id, alice.id, "Hotel", Decimal("60"), [bob.id], False, db)

    def explode(bills):
        raise RuntimeError("boom")

    monkeypatch.setattr(settlement_service, "compute_transfers", explode)
    with pytest.raises(RuntimeError):
        settlement_service.consolidate_room(room.id, alice.id, db)

    assert db.query(Consolidation).count() == 0
    assert db.query(Bill).filter(Bill.consolidation_id.isnot(None)).count() == 0


@pytest.fixture()
def transaction(db, users, room):
    alice, bob, _ = users
    bill_service.create_bill(room.id, alice.id, "Hotel", Decimal("60"), [bob.id], False, db)
    consolidation = settlement_service.consolidate_room(room.id, alice.id, db)
    return consolidation.transactions[0]


def test_settle_transaction(db, users, transaction):
    _, bob, _ = users
    settled = settlement_service.settle_transaction(transaction.id, bob.id, db)
    assert settled.is_paid
    assert settled.paid_at is not None

    with pytest.raises(AlreadySettled):
        settlement_service.settle_transaction(transaction.id, bob.id, db)


def test_settle_by_payee_is_forbidden(db, users, transaction):
    alice, _, _ = users
    with pytest.raises(InvalidPayer):
        settlement_service.settle_transaction(transaction.id, alice.id, db)

    db.expire_all()
    assert not settlement_service.get_transaction(transaction.id, db).is_paid


def test_settle_unknown_transaction(db, users):
    with pytest.raises(TransactionNotFound):
        settlement_service.settle_transaction(404, users[0].id, db)


def test_transactions_by_user(db, users, transaction):
    alice, bob, carol = users
    assert [t.id for t in settlement_service.get_transactions_by_user(alice.id, False, db)] == [transaction.id]
    assert [t.id for t in settlement_service.get_transactions_by_user(bob.id, False, db)] == [transaction.id]
    assert settlement_service.get_transactions_by_user(carol.id, False, db) == []
    assert settlement_service.get_transactions_by_user(bob.id, True, db) == []


def test_notify_settlement_message(db, users, transaction):
    sent = []
    settlement_service.notify_settlement(transaction, "bob", lambda *args: sent.append(args))
    assert sent == [(transaction.payee_id, "Settled", "bob paid you $60.00!")]


def test_notify_settlement_swallows_errors(transaction):
    def fail(*args):
        raise RuntimeError("push down")

    settlement_service.notify_settlement(transaction, "bob", fail)
