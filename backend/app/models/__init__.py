"""Models package - Import all models for SQLAlchemy registration."""
from app.models.user import User
from app.models.room import Room, RoomMember, RoomInvite, InviteStatus
from app.models.bill import Bill, BillPayer, Consolidation
from app.models.transaction import Transaction
from app.models.message import Message
from app.models.notification import Notification, PushSubscription

__all__ = [
    "User",
    "Room",
    "RoomMember",
    "RoomInvite",
    "InviteStatus",
    "Bill",
    "BillPayer",
    "Consolidation",
    "Transaction",
    "Message",
    "Notification",
    "PushSubscription",
]
