"""
Settlement service: consolidates a room's bills into transactions and settles them.
"""
import logging
from datetime import datetime
from typing import Callable, List, Optional

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from app.core.exceptions import (
    AlreadyConsolidated, AlreadySettled, InvalidPayer, NoBillsToConsolidate, NotHost, TransactionNotFound
)
from app.db.session import run_in_transaction
from app.models.bill import Bill, Consolidation
from app.models.transaction import Transaction
from app.services import bill_service
from app.services.bill_service import ConsolidationStatus
from app.services.debt_graph import BillShare, compute_transfers

logger = logging.getLogger(__name__)


def consolidate_room(room_id: str, caller_id: int, db: Session) -> Consolidation:
    """
    Freeze all bills of a room and persist the minimal set of transactions.
    Runs as one unit: any failure leaves no consolidation, no marked bill
    and no transaction behind.
    """
    try:
        with run_in_transaction(db):
            room = bill_service.get_room(room_id, db, for_update=True)
            if room.host_id != caller_id:
                raise NotHost()

            status = bill_service.get_consolidation_status(room_id, db)
            if status == ConsolidationStatus.NO_BILLS:
                raise NoBillsToConsolidate()
            if status == ConsolidationStatus.CONSOLIDATED:
                raise AlreadyConsolidated()

            logger.info("Consolidating bills for room %s", room_id)
            consolidation = Consolidation(room_id=room.id)
            db.add(consolidation)
            db.flush()

            db.query(Bill).filter(Bill.room_id == room_id).update(
                {Bill.consolidation_id: consolidation.id},
                synchronize_session="fetch"
            )

            bills = bill_service.get_bills_for_room(room_id, db, for_update=True)
            transfers = compute_transfers([
                BillShare(
                    owner_id=bill.owner_id,
                    amount=bill.amount,
                    payer_ids=tuple(bill.payer_ids),
                    include_owner=bill.include_owner,
                )
                for bill in bills
            ])

            db.add_all([
                Transaction(
                    consolidation_id=consolidation.id,
                    payer_id=t.payer_id,
                    payee_id=t.payee_id,
                    amount=t.amount,
                )
                for t in transfers
            ])
            db.flush()
            consolidation_id = consolidation.id
    except IntegrityError as e:
        # A concurrent consolidation won the unique room_id race
        logger.warning("Consolidation of room %s lost a race: %s", room_id, e.orig)
        raise AlreadyConsolidated()

    logger.info(
        "Created consolidation %s for room %s with %d transactions",
        consolidation_id, room_id, len(transfers)
    )
    return db.query(Consolidation).filter(Consolidation.id == consolidation_id).first()


def is_room_consolidated(room_id: str, db: Session) -> bool:
    status = bill_service.get_room_consolidation_status(room_id, db)
    return status == ConsolidationStatus.CONSOLIDATED


def get_transaction(transaction_id: int, db: Session) -> Transaction:
    transaction = db.query(Transaction).options(
        selectinload(Transaction.payer),
        selectinload(Transaction.payee),
    ).filter(Transaction.id == transaction_id).first()
    if not transaction:
        raise TransactionNotFound()
    return transaction


def get_transactions_by_user(user_id: int, is_paid: bool, db: Session) -> List[Transaction]:
    """Transactions where the user is payer or payee, filtered by paid flag."""
    return db.query(Transaction).options(
        selectinload(Transaction.payer),
        selectinload(Transaction.payee),
    ).filter(
        Transaction.is_paid == is_paid,
        or_(Transaction.payer_id == user_id, Transaction.payee_id == user_id)
    ).order_by(Transaction.id).all()


def settle_transaction(transaction_id: int, caller_id: int, db: Session) -> Transaction:
    """Mark a transaction paid. Only its payer may settle it, and only once."""
    with run_in_transaction(db):
        transaction = db.query(Transaction).filter(
            Transaction.id == transaction_id
        ).with_for_update().first()
        if not transaction:
            raise TransactionNotFound()
        if transaction.is_paid:
            raise AlreadySettled()
        if transaction.payer_id != caller_id:
            raise InvalidPayer()

        transaction.is_paid = True
        transaction.paid_at = datetime.utcnow()

    logger.info("Transaction %s settled by user %s", transaction_id, caller_id)
    return get_transaction(transaction_id, db)


def settlement_message(payer_name: str, amount) -> str:
    return f"{payer_name} paid you ${amount:.2f}!"


def notify_settlement(
    transaction: Transaction,
    payer_name: str,
    send: Callable[[int, str, str], Optional[object]],
) -> None:
    """
    Tell the payee about a committed settlement. Must only be called after
    settle_transaction returned. Failures are logged, never raised.
    """
    try:
        send(transaction.payee_id, "Settled", settlement_message(payer_name, transaction.amount))
    except Exception:
        logger.exception(
            "Failed to send settlement notification for transaction %s", transaction.id
        )
