"""
Room chat routes.
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from app.db.session import get_db
from app.core.utils import format_response
from app.models.message import Message
from app.models.user import User
from app.schemas.message import MessageCreate, MessagePage, MessageResponse
from app.schemas.user import UserBrief
from app.api.dependencies import get_broker, get_current_user
from app.services import chat_service, room_service
from app.services.broker import MessageBroker

router = APIRouter(prefix="/rooms/{room_id}/messages", tags=["messages"])


def build_message_response(message: Message) -> MessageResponse:
    return MessageResponse(
        id=message.id,
        room_id=message.room_id,
        sender=UserBrief.model_validate(message.sender),
        content=message.content,
        sent_at=message.sent_at,
    )


@router.post("", status_code=status.HTTP_201_CREATED)
async def send_message(
    room_id: str,
    message_data: MessageCreate,
    current_user: User = Depends(get_current_user),
    broker: Optional[MessageBroker] = Depends(get_broker),
    db: Session = Depends(get_db)
):
    """Post a message to a room and push it to every member."""
    message = chat_service.send_message(room_id, current_user.id, message_data.content, db, broker=broker)
    return format_response(build_message_response(message), "Sent message successfully")


@router.get("")
async def get_messages(
    room_id: str,
    page: int = Query(1, ge=1),
    asc: bool = Query(True),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Get one page of a room's messages."""
    room_service.check_room_access(room_id, current_user.id, db)
    messages, page_count = chat_service.get_messages(room_id, db, page=page, asc=asc)
    return format_response(
        MessagePage(
            messages=[build_message_response(m) for m in messages],
            page=page,
            page_count=page_count,
        ),
        "Retrieved messages successfully"
    )


@router.get("/{message_id}")
async def get_message(
    room_id: str,
    message_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    room_service.check_room_access(room_id, current_user.id, db)
    message = chat_service.get_message(room_id, message_id, db)
    return format_response(build_message_response(message), "Retrieved message successfully")


@router.delete("/{message_id}")
async def delete_message(
    room_id: str,
    message_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Delete a message. Only its sender may."""
    room_service.check_room_access(room_id, current_user.id, db)
    chat_service.delete_message(room_id, message_id, current_user.id, db)
    return format_response(message="Deleted message successfully")
