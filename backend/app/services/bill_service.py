"""
Bill ledger: bills recorded in a room and the room's consolidation status.
"""
import enum
import logging
from decimal import Decimal
from typing import List, Optional

from sqlalchemy.orm import Session, selectinload

from app.core.exceptions import (
    AlreadyConsolidated, EmptyPayers, InvalidInputError, PayersNotFound, RoomClosed, RoomNotFound
)
from app.db.session import run_in_transaction
from app.models.bill import Bill, BillPayer
from app.models.room import Room
from app.models.user import User

logger = logging.getLogger(__name__)


class ConsolidationStatus(str, enum.Enum):
    NO_BILLS = "NO_BILLS"
    UNCONSOLIDATED = "UNCONSOLIDATED"
    CONSOLIDATED = "CONSOLIDATED"


def get_room(room_id: str, db: Session, for_update: bool = False) -> Room:
    query = db.query(Room).filter(Room.id == room_id)
    if for_update:
        query = query.with_for_update()
    room = query.first()
    if not room:
        raise RoomNotFound()
    return room


def get_consolidation_status(room_id: str, db: Session) -> ConsolidationStatus:
    """
    NO_BILLS iff the room has no bill rows, CONSOLIDATED if any bill carries a
    consolidation id (all of them do, consolidation is atomic), else UNCONSOLIDATED.
    """
    if db.query(Bill.id).filter(Bill.room_id == room_id).first() is None:
        return ConsolidationStatus.NO_BILLS

    consolidated = db.query(Bill.id).filter(
        Bill.room_id == room_id,
        Bill.consolidation_id.isnot(None)
    ).first()
    if consolidated is not None:
        return ConsolidationStatus.CONSOLIDATED
    return ConsolidationStatus.UNCONSOLIDATED


def get_room_consolidation_status(room_id: str, db: Session) -> ConsolidationStatus:
    """Same as get_consolidation_status but fails with RoomNotFound for unknown rooms."""
    get_room(room_id, db)
    return get_consolidation_status(room_id, db)


def create_bill(
    room_id: str,
    owner_id: int,
    name: str,
    amount: Decimal,
    payer_ids: List[int],
    include_owner: bool,
    db: Session
) -> Bill:
    """Record a bill owed to the owner by the given payers."""
    if not payer_ids:
        raise EmptyPayers()
    if amount is None or Decimal(amount) < 0:
        raise InvalidInputError("Amount must not be negative")

    unique_payers = list(dict.fromkeys(payer_ids))

    with run_in_transaction(db):
        # Lock the room row so creation serialises with consolidation
        room = get_room(room_id, db, for_update=True)
        if room.is_closed:
            raise RoomClosed()
        if get_consolidation_status(room_id, db) == ConsolidationStatus.CONSOLIDATED:
            raise AlreadyConsolidated()

        found = db.query(User.id).filter(User.id.in_(unique_payers)).all()
        if len(found) != len(unique_payers):
            raise PayersNotFound()

        bill = Bill(
            room_id=room.id,
            owner_id=owner_id,
            name=name,
            amount=Decimal(amount),
            include_owner=include_owner,
        )
        bill.payers = [BillPayer(user_id=user_id) for user_id in unique_payers]
        db.add(bill)
        db.flush()
        bill_id = bill.id

    logger.info("Bill %s created in room %s", bill_id, room_id)
    return get_bill(bill_id, db)


def get_bill(bill_id: int, db: Session) -> Optional[Bill]:
    return db.query(Bill).options(
        selectinload(Bill.owner),
        selectinload(Bill.payers).selectinload(BillPayer.user),
    ).filter(Bill.id == bill_id).first()


def get_bills_for_room(room_id: str, db: Session, for_update: bool = False) -> List[Bill]:
    """Bills of a room with owner and payers loaded, oldest first."""
    query = db.query(Bill).options(
        selectinload(Bill.owner),
        selectinload(Bill.payers).selectinload(BillPayer.user),
    ).filter(Bill.room_id == room_id).order_by(Bill.id)
    if for_update:
        query = query.with_for_update()
    return query.all()


def delete_room_bills(room_id: str, db: Session) -> int:
    """Remove all bills of a room. Returns the number of bills deleted."""
    with run_in_transaction(db):
        bills = db.query(Bill).filter(Bill.room_id == room_id).all()
        for bill in bills:
            db.delete(bill)
    logger.info("Deleted %d bills from room %s", len(bills), room_id)
    return len(bills)
