"""
Room management routes: lifecycle, members and invites.
"""
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query, status
from sqlalchemy.orm import Session
from app.db.session import get_db
from app.core.utils import format_response, page_count
from app.core.config import settings
from app.models.room import RoomInvite
from app.models.user import User
from app.schemas.room import (
    InviteReply, InviteRequest, InviteResponse, RoomCreate, RoomPage, RoomResponse
)
from app.schemas.user import UserBrief
from app.api.dependencies import get_current_user, get_push_pool
from app.services import notification_service, room_service
from app.services.push_service import PushWorkerPool

router = APIRouter(prefix="/rooms", tags=["rooms"])

INVITE_TITLE = "New Invite"
ACCEPTED_TITLE = "Invite Accepted"


def build_invite_response(invite: RoomInvite, with_room: bool = False) -> InviteResponse:
    return InviteResponse(
        id=invite.id,
        room_id=invite.room_id,
        user_id=invite.user_id,
        inviter_id=invite.inviter_id,
        status=invite.status,
        message=invite.message,
        room=RoomResponse.model_validate(invite.room) if with_room else None,
        inviter=UserBrief.model_validate(invite.inviter) if with_room else None,
    )


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_room(
    room_data: RoomCreate,
    background_tasks: BackgroundTasks,
    current_user: User = Depends(get_current_user),
    push_pool: Optional[PushWorkerPool] = Depends(get_push_pool),
    db: Session = Depends(get_db)
):
    """Create a room hosted by the current user and invite the given users."""
    room, invites = room_service.create_room(
        host_id=current_user.id,
        name=room_data.name,
        db=db,
        venue=room_data.venue,
        date=room_data.date,
        description=room_data.description,
        is_private=room_data.is_private,
        invitee_ids=room_data.invitees,
    )
    if invites:
        background_tasks.add_task(
            notification_service.notify_users,
            [i.user_id for i in invites],
            INVITE_TITLE,
            f"{current_user.username} invited you to {room.name}",
            push_pool,
        )
    return format_response(
        {
            "room": RoomResponse.model_validate(room),
            "invites": [build_invite_response(i) for i in invites],
        },
        "Created room successfully"
    )


@router.get("")
async def get_rooms(
    page: int = Query(1, ge=1),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Open rooms of the current user, one page at a time."""
    rooms = room_service.get_rooms(current_user.id, db, page=page)
    total = room_service.count_rooms(current_user.id, db)
    return format_response(
        RoomPage(
            rooms=[RoomResponse.model_validate(r) for r in rooms],
            page=page,
            page_count=page_count(total, settings.ROOM_PAGE_SIZE),
        ),
        "Retrieved rooms successfully"
    )


@router.get("/invites")
async def get_room_invites(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Pending invites of the current user."""
    invites = room_service.get_pending_invites(current_user.id, db)
    return format_response(
        [build_invite_response(i, with_room=True) for i in invites],
        "Retrieved room invites successfully"
    )


@router.get("/{room_id}")
async def get_room(
    room_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    room = room_service.check_room_access(room_id, current_user.id, db)
    return format_response(RoomResponse.model_validate(room), "Retrieved room successfully")


@router.get("/{room_id}/attendees")
async def get_room_attendees(
    room_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    room_service.check_room_access(room_id, current_user.id, db)
    attendees = room_service.get_attendees(room_id, db)
    return format_response(
        [UserBrief.model_validate(u) for u in attendees],
        "Retrieved room attendees successfully"
    )


@router.post("/{room_id}/invite", status_code=status.HTTP_201_CREATED)
async def invite_to_room(
    room_id: str,
    invite_data: InviteRequest,
    background_tasks: BackgroundTasks,
    current_user: User = Depends(get_current_user),
    push_pool: Optional[PushWorkerPool] = Depends(get_push_pool),
    db: Session = Depends(get_db)
):
    """Invite users into a room. Host only."""
    invites = room_service.invite_users(room_id, current_user.id, invite_data.user_ids, db)
    room = room_service.get_room(room_id, db)
    background_tasks.add_task(
        notification_service.notify_users,
        [i.user_id for i in invites],
        INVITE_TITLE,
        f"{current_user.username} invited you to {room.name}",
        push_pool,
    )
    return format_response([build_invite_response(i) for i in invites], "Invited users successfully")


@router.patch("/{room_id}/invite")
async def respond_to_invite(
    room_id: str,
    reply: InviteReply,
    background_tasks: BackgroundTasks,
    current_user: User = Depends(get_current_user),
    push_pool: Optional[PushWorkerPool] = Depends(get_push_pool),
    db: Session = Depends(get_db)
):
    """Accept or reject the current user's invite to a room."""
    invite = room_service.respond_to_invite(room_id, current_user.id, reply.accept, db)
    if reply.accept:
        room = room_service.get_room(room_id, db)
        background_tasks.add_task(
            notification_service.notify_users,
            [invite.inviter_id],
            ACCEPTED_TITLE,
            f"{current_user.username} accepted your invite to {room.name}",
            push_pool,
        )
    message = "Joined room successfully" if reply.accept else "Rejected invite successfully"
    return format_response(build_invite_response(invite), message)


@router.post("/{room_id}/join")
async def join_room(
    room_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Join a public room."""
    room = room_service.join_room(room_id, current_user.id, db)
    return format_response(RoomResponse.model_validate(room), "Joined room successfully")


@router.patch("/{room_id}/leave")
async def leave_room(
    room_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    room_service.leave_room(room_id, current_user.id, db)
    return format_response(message="Left room successfully")


@router.patch("/{room_id}/close")
async def close_room(
    room_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Close a room. Host only, and only once its bills are consolidated."""
    room = room_service.close_room(room_id, current_user.id, db)
    return format_response(RoomResponse.model_validate(room), "Closed room successfully")


@router.delete("/{room_id}/members/{user_id}")
async def remove_room_member(
    room_id: str,
    user_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Remove a member from a room. Host only."""
    room_service.remove_member(room_id, current_user.id, user_id, db)
    return format_response(message="Removed member successfully")
