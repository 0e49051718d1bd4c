"""
Pydantic schemas for chat messages.
"""
from pydantic import Field
from typing import List
from datetime import datetime

from app.schemas.base import CamelModel
from app.schemas.user import UserBrief


class MessageCreate(CamelModel):
    content: str = Field(..., max_length=2000)


class MessageResponse(CamelModel):
    """Schema for message response."""
    id: int
    room_id: str
    sender: UserBrief
    content: str
    sent_at: datetime


class MessagePage(CamelModel):
    messages: List[MessageResponse]
    page: int
    page_count: int
