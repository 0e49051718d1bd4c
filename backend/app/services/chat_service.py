"""
Chat dispatcher: persists room messages and fans them out to every member's
per-user topic.
"""
import logging
from datetime import datetime
from typing import List, Optional, Tuple

from sqlalchemy.orm import Session, selectinload

from app.core.config import settings
from app.core.exceptions import EmptyContent, ForbiddenError, MessageNotFound
from app.core.utils import page_count
from app.db.session import run_in_transaction
from app.models.message import Message
from app.models.user import User
from app.services import room_service
from app.services.broker import MessageBroker

logger = logging.getLogger(__name__)

CHAT_EVENT = "CREATE_MESSAGE"


def chat_event(message: Message, sender_name: str) -> dict:
    return {
        "kind": "chat",
        "messageId": message.id,
        "roomId": message.room_id,
        "senderId": message.sender_id,
        "senderName": sender_name,
        "content": message.content,
        "sentAt": message.sent_at.isoformat(),
    }


def send_message(
    room_id: str,
    sender_id: int,
    content: str,
    db: Session,
    broker: Optional[MessageBroker] = None
) -> Message:
    """
    Save a message and publish it to each member of the room.
    Publish failures are logged; the saved message stays.
    """
    if not content or not content.strip():
        raise EmptyContent()

    with run_in_transaction(db):
        room_service.check_room_access(room_id, sender_id, db)
        message = Message(
            room_id=room_id,
            sender_id=sender_id,
            content=content,
            sent_at=datetime.utcnow(),
        )
        db.add(message)
        db.flush()
        message_id = message.id

    message = get_message(room_id, message_id, db)
    logger.info("Saved message %s to room %s", message_id, room_id)

    if broker is None:
        logger.warning("No broker configured, message %s not broadcast", message_id)
        return message

    recipients = room_service.get_member_ids(room_id, db)
    sender = db.query(User).filter(User.id == sender_id).first()
    failed = broker.broadcast(recipients, CHAT_EVENT, chat_event(message, sender.username if sender else ""))
    if failed:
        logger.error("Message %s not delivered to users %s", message_id, failed)
    else:
        logger.debug("Broadcasted message %s to %d users", message_id, len(recipients))
    return message


def get_message(room_id: str, message_id: int, db: Session) -> Message:
    message = db.query(Message).options(selectinload(Message.sender)).filter(
        Message.id == message_id,
        Message.room_id == room_id
    ).first()
    if not message:
        raise MessageNotFound()
    return message


def count_pages(room_id: str, db: Session) -> int:
    count = db.query(Message).filter(Message.room_id == room_id).count()
    return page_count(count, settings.MESSAGE_PAGE_SIZE)


def get_messages(room_id: str, db: Session, page: int = 1, asc: bool = True) -> Tuple[List[Message], int]:
    """One page of a room's timeline ordered by send time. Returns (messages, page_count)."""
    room_service.get_room(room_id, db)
    page = max(page, 1)
    if asc:
        order = (Message.sent_at.asc(), Message.id.asc())
    else:
        order = (Message.sent_at.desc(), Message.id.desc())

    messages = db.query(Message).options(selectinload(Message.sender)).filter(
        Message.room_id == room_id
    ).order_by(*order).offset(
        (page - 1) * settings.MESSAGE_PAGE_SIZE
    ).limit(settings.MESSAGE_PAGE_SIZE).all()
    return messages, count_pages(room_id, db)


def delete_message(room_id: str, message_id: int, user_id: int, db: Session) -> None:
    with run_in_transaction(db):
        message = get_message(room_id, message_id, db)
        if message.sender_id != user_id:
            raise ForbiddenError("Only the sender can delete this message")
        db.delete(message)
    logger.info("Deleted message %s from room %s", message_id, room_id)

