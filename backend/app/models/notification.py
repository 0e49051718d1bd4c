"""
Notification model and push subscription credentials.
"""
from sqlalchemy import Column, String, Boolean, ForeignKey, Integer, Text
from sqlalchemy.orm import relationship
from app.core.utils import new_uuid
from app.db.base import Base, BaseModel, TimestampMixin


class Notification(BaseModel):
    """Durable per-user notification log."""
    __tablename__ = "notifications"

    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    title = Column(String(200), nullable=False)
    content = Column(Text, nullable=False)
    is_read = Column(Boolean, default=False, nullable=False)

    # Relationships
    user = relationship("User", back_populates="notifications")


class PushSubscription(TimestampMixin, Base):
    """Browser Web Push credentials for a user."""
    __tablename__ = "subscriptions"

    id = Column(String(36), primary_key=True, default=new_uuid)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    endpoint = Column(String(500), unique=True, nullable=False)
    auth = Column(String(255), nullable=False)
    p256dh = Column(String(255), nullable=False)

    # Relationships
    user = relationship("User", back_populates="subscriptions")

    def to_subscription_info(self) -> dict:
        """Shape expected by the Web Push library."""
        return {
            "endpoint": self.endpoint,
            "keys": {"auth": self.auth, "p256dh": self.p256dh},
        }
