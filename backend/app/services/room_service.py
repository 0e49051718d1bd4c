"""
Room lifecycle: creation, membership, invites and closing.

Transitions that depend on the bill ledger (close, leave) are gated on the
room's consolidation status.
"""
import logging
from datetime import datetime
from typing import List, Optional, Tuple

from sqlalchemy.orm import Session, selectinload

from app.core.config import settings
from app.core.exceptions import (
    AlreadyInRoom, AlreadyInvited, ForbiddenError, InvalidInviteStatus, InviteNotFound,
    LeaveAsHost, NotHost, NotInRoom, RoomClosed, UnconsolidatedBills, UserNotFound
)
from app.db.session import run_in_transaction
from app.models.room import InviteStatus, Room, RoomInvite, RoomMember
from app.models.user import User
from app.services import bill_service
from app.services.bill_service import ConsolidationStatus

logger = logging.getLogger(__name__)


def get_room(room_id: str, db: Session) -> Room:
    return bill_service.get_room(room_id, db)


def is_member(room_id: str, user_id: int, db: Session) -> bool:
    return db.query(RoomMember.id).filter(
        RoomMember.room_id == room_id,
        RoomMember.user_id == user_id
    ).first() is not None


def check_room_access(room_id: str, user_id: int, db: Session) -> Room:
    """Load a room and check the user is one of its members."""
    room = get_room(room_id, db)
    if not is_member(room_id, user_id, db):
        raise NotInRoom()
    return room


def get_member_ids(room_id: str, db: Session) -> List[int]:
    rows = db.query(RoomMember.user_id).filter(RoomMember.room_id == room_id).order_by(RoomMember.id).all()
    return [row.user_id for row in rows]


def get_attendees(room_id: str, db: Session) -> List[User]:
    get_room(room_id, db)
    return db.query(User).join(RoomMember, RoomMember.user_id == User.id).filter(
        RoomMember.room_id == room_id
    ).order_by(RoomMember.id).all()


def _load_users(user_ids: List[int], db: Session) -> List[User]:
    unique_ids = list(dict.fromkeys(user_ids))
    users = db.query(User).filter(User.id.in_(unique_ids)).all() if unique_ids else []
    if len(users) != len(unique_ids):
        raise UserNotFound()
    return users


def _validate_invitees(room_id: str, users: List[User], db: Session) -> None:
    for user in users:
        if is_member(room_id, user.id, db):
            raise AlreadyInRoom(f"User {user.username} is already in room")
        pending = db.query(RoomInvite.id).filter(
            RoomInvite.room_id == room_id,
            RoomInvite.user_id == user.id,
            RoomInvite.status == InviteStatus.PENDING
        ).first()
        if pending:
            raise AlreadyInvited(f"User {user.username} already has a pending invite")


def create_room(
    host_id: int,
    name: str,
    db: Session,
    venue: Optional[str] = None,
    date: Optional[datetime] = None,
    description: Optional[str] = None,
    is_private: bool = True,
    invitee_ids: Optional[List[int]] = None,
) -> Tuple[Room, List[RoomInvite]]:
    """Create a room with the host as its first member and invite the given users."""
    invitee_ids = [uid for uid in (invitee_ids or []) if uid != host_id]

    with run_in_transaction(db):
        invitees = _load_users(invitee_ids, db)
        room = Room(
            name=name,
            venue=venue,
            date=date,
            description=description,
            host_id=host_id,
            is_private=is_private,
            attendees_count=1,
        )
        room.members = [RoomMember(user_id=host_id)]
        db.add(room)
        db.flush()

        invites = [
            RoomInvite(room_id=room.id, user_id=user.id, inviter_id=host_id, status=InviteStatus.PENDING)
            for user in invitees
        ]
        db.add_all(invites)
        room_id = room.id

    logger.info("Created room %s with %d invites", room_id, len(invites))
    return get_room(room_id, db), invites


def get_rooms(user_id: int, db: Session, page: int = 1) -> List[Room]:
    """Open rooms the user belongs to, most recently updated first."""
    page = max(page, 1)
    return db.query(Room).join(RoomMember, RoomMember.room_id == Room.id).filter(
        RoomMember.user_id == user_id,
        Room.is_closed.is_(False)
    ).order_by(Room.updated_at.desc(), Room.id).offset(
        (page - 1) * settings.ROOM_PAGE_SIZE
    ).limit(settings.ROOM_PAGE_SIZE).all()


def count_rooms(user_id: int, db: Session) -> int:
    return db.query(Room).join(RoomMember, RoomMember.room_id == Room.id).filter(
        RoomMember.user_id == user_id,
        Room.is_closed.is_(False)
    ).count()


def get_pending_invites(user_id: int, db: Session) -> List[RoomInvite]:
    return db.query(RoomInvite).options(
        selectinload(RoomInvite.room),
        selectinload(RoomInvite.inviter),
    ).filter(
        RoomInvite.user_id == user_id,
        RoomInvite.status == InviteStatus.PENDING
    ).order_by(RoomInvite.id).all()


def invite_users(room_id: str, inviter_id: int, invitee_ids: List[int], db: Session) -> List[RoomInvite]:
    """Host-only. Each invitee must not be a member nor hold a pending invite."""
    with run_in_transaction(db):
        room = bill_service.get_room(room_id, db, for_update=True)
        if room.host_id != inviter_id:
            raise NotHost()
        if room.is_closed:
            raise RoomClosed()

        invitees = _load_users(invitee_ids, db)
        _validate_invitees(room_id, invitees, db)

        invites = [
            RoomInvite(room_id=room.id, user_id=user.id, inviter_id=inviter_id, status=InviteStatus.PENDING)
            for user in invitees
        ]
        db.add_all(invites)

    logger.info("Invited users %s to room %s", [i.user_id for i in invites], room_id)
    return invites


def _add_member(room: Room, user_id: int, db: Session) -> None:
    db.add(RoomMember(room_id=room.id, user_id=user_id))
    room.attendees_count = (room.attendees_count or 0) + 1


def respond_to_invite(room_id: str, user_id: int, accept: bool, db: Session) -> RoomInvite:
    """Accept or reject the user's pending invite. Accepting adds the user to the room."""
    status = InviteStatus.ACCEPTED if accept else InviteStatus.REJECTED
    return update_invite_status(room_id, user_id, status, db)


def update_invite_status(room_id: str, user_id: int, status: InviteStatus, db: Session) -> RoomInvite:
    if status not in (InviteStatus.ACCEPTED, InviteStatus.REJECTED):
        raise InvalidInviteStatus()

    with run_in_transaction(db):
        room = bill_service.get_room(room_id, db, for_update=True)
        invite = db.query(RoomInvite).filter(
            RoomInvite.room_id == room_id,
            RoomInvite.user_id == user_id,
            RoomInvite.status == InviteStatus.PENDING
        ).first()
        if not invite:
            raise InviteNotFound()
        if room.is_closed:
            raise RoomClosed()

        invite.status = status
        if status == InviteStatus.ACCEPTED:
            if is_member(room_id, user_id, db):
                raise AlreadyInRoom()
            _add_member(room, user_id, db)

    logger.info("User %s %s invite to room %s", user_id, status.value, room_id)
    return invite


def join_room(room_id: str, user_id: int, db: Session) -> Room:
    """Join a public room without an invite."""
    with run_in_transaction(db):
        room = bill_service.get_room(room_id, db, for_update=True)
        if room.is_closed:
            raise RoomClosed()
        if room.is_private:
            raise ForbiddenError("Room is private")
        if is_member(room_id, user_id, db):
            raise AlreadyInRoom()
        _add_member(room, user_id, db)

    logger.info("User %s joined room %s", user_id, room_id)
    return get_room(room_id, db)


def _remove_member(room: Room, user_id: int, db: Session) -> None:
    member = db.query(RoomMember).filter(
        RoomMember.room_id == room.id,
        RoomMember.user_id == user_id
    ).first()
    if not member:
        raise NotInRoom()
    db.delete(member)
    room.attendees_count = max((room.attendees_count or 1) - 1, 1)


def leave_room(room_id: str, user_id: int, db: Session) -> None:
    """A non-host member leaves. Blocked while the room has unconsolidated bills."""
    with run_in_transaction(db):
        room = bill_service.get_room(room_id, db, for_update=True)
        if bill_service.get_consolidation_status(room_id, db) == ConsolidationStatus.UNCONSOLIDATED:
            raise UnconsolidatedBills()
        if room.host_id == user_id:
            raise LeaveAsHost()
        _remove_member(room, user_id, db)

    logger.info("User %s left room %s", user_id, room_id)


def remove_member(room_id: str, host_id: int, user_id: int, db: Session) -> None:
    """Host removes another member. Same ledger guard as leaving."""
    with run_in_transaction(db):
        room = bill_service.get_room(room_id, db, for_update=True)
        if room.host_id != host_id:
            raise NotHost()
        if user_id == host_id:
            raise LeaveAsHost()
        if bill_service.get_consolidation_status(room_id, db) == ConsolidationStatus.UNCONSOLIDATED:
            raise UnconsolidatedBills()
        _remove_member(room, user_id, db)

    logger.info("Host %s removed user %s from room %s", host_id, user_id, room_id)


def close_room(room_id: str, user_id: int, db: Session) -> Room:
    """Host-only. Requires no unconsolidated bills; drops pending invites."""
    with run_in_transaction(db):
        room = bill_service.get_room(room_id, db, for_update=True)
        if room.host_id != user_id:
            raise NotHost()
        if room.is_closed:
            raise RoomClosed()
        if bill_service.get_consolidation_status(room_id, db) == ConsolidationStatus.UNCONSOLIDATED:
            raise UnconsolidatedBills()

        room.is_closed = True
        dropped = db.query(RoomInvite).filter(
            RoomInvite.room_id == room_id,
            RoomInvite.status == InviteStatus.PENDING
        ).delete(synchronize_session=False)

    logger.info("Room %s closed, dropped %d pending invites", room_id, dropped)
    return room
