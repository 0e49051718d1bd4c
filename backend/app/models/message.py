"""
Message model for the per-room chat timeline.
"""
from sqlalchemy import Column, String, DateTime, ForeignKey, Integer, Text, func
from sqlalchemy.orm import relationship
from app.db.base import Base


class Message(Base):
    """Append-only chat message."""
    __tablename__ = "messages"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    room_id = Column(String(36), ForeignKey("rooms.id", ondelete="CASCADE"), nullable=False, index=True)
    sender_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    content = Column(Text, nullable=False)
    sent_at = Column(DateTime, server_default=func.now(), nullable=False, index=True)

    # Relationships
    room = relationship("Room", back_populates="messages")
    sender = relationship("User")
