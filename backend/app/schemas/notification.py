"""
Pydantic schemas for notifications and push subscriptions.
"""
from datetime import datetime

from app.schemas.base import CamelModel


class NotificationResponse(CamelModel):
    """Schema for notification response."""
    id: int
    user_id: int
    title: str
    content: str
    is_read: bool
    created_at: datetime


class SubscriptionCreate(CamelModel):
    """Browser PushSubscription fields."""
    endpoint: str
    auth: str
    p256dh: str


class SubscriptionResponse(CamelModel):
    id: str
    user_id: int
    endpoint: str
    auth: str
    p256dh: str
    created_at: datetime
