"""
Room model for event rooms, their members and invites.
"""
from sqlalchemy import (
    Column, String, Boolean, DateTime, Enum as SQLEnum, ForeignKey, Integer, Text, UniqueConstraint
)
from sqlalchemy.orm import relationship
from app.core.utils import new_uuid
from app.db.base import Base, BaseModel, TimestampMixin
import enum


class InviteStatus(str, enum.Enum):
    """Invite status enumeration."""
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class Room(TimestampMixin, Base):
    """Room model representing a single event."""
    __tablename__ = "rooms"

    id = Column(String(36), primary_key=True, default=new_uuid)
    name = Column(String(200), nullable=False)
    venue = Column(String(255), nullable=True)
    date = Column(DateTime, nullable=True)
    description = Column(Text, nullable=True)
    host_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    attendees_count = Column(Integer, default=1, nullable=False)
    is_private = Column(Boolean, default=True, nullable=False)
    is_closed = Column(Boolean, default=False, nullable=False)

    # Relationships
    host = relationship("User", foreign_keys=[host_id])
    members = relationship("RoomMember", back_populates="room", cascade="all, delete-orphan")
    invites = relationship("RoomInvite", back_populates="room", cascade="all, delete-orphan")
    bills = relationship("Bill", back_populates="room", cascade="all, delete-orphan")
    messages = relationship("Message", back_populates="room", cascade="all, delete-orphan")

    @property
    def member_ids(self):
        return {m.user_id for m in self.members}


class RoomMember(BaseModel):
    """Junction table for Room and User many-to-many relationship."""
    __tablename__ = "room_members"

    room_id = Column(String(36), ForeignKey("rooms.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    # Relationships
    room = relationship("Room", back_populates="members")
    user = relationship("User", back_populates="rooms")

    __table_args__ = (
        UniqueConstraint('room_id', 'user_id', name='uq_room_member'),
    )


class RoomInvite(BaseModel):
    """Invite of a user into a room by its host."""
    __tablename__ = "room_invites"

    room_id = Column(String(36), ForeignKey("rooms.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    inviter_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    status = Column(
        SQLEnum(InviteStatus, values_callable=lambda e: [m.value for m in e]),
        default=InviteStatus.PENDING,
        nullable=False,
        index=True,
    )
    message = Column(Text, nullable=True)  # Optional note from the inviter

    # Relationships
    room = relationship("Room", back_populates="invites")
    user = relationship("User", foreign_keys=[user_id])
    inviter = relationship("User", foreign_keys=[inviter_id])
