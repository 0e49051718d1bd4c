"""
Pydantic schemas for Room entity and its invites.
"""
from pydantic import Field
from typing import List, Optional
from datetime import datetime

from app.models.room import InviteStatus
from app.schemas.base import CamelModel
from app.schemas.user import UserBrief


class RoomCreate(CamelModel):
    """Schema for room creation."""
    name: str = Field(..., min_length=1, max_length=200)
    venue: Optional[str] = None
    date: Optional[datetime] = None
    description: Optional[str] = None
    is_private: bool = True
    invitees: List[int] = []


class RoomResponse(CamelModel):
    """Schema for room response."""
    id: str
    name: str
    venue: Optional[str] = None
    date: Optional[datetime] = None
    description: Optional[str] = None
    host_id: int
    attendees_count: int
    is_private: bool
    is_closed: bool
    created_at: datetime
    updated_at: datetime


class RoomPage(CamelModel):
    rooms: List[RoomResponse]
    page: int
    page_count: int


class InviteRequest(CamelModel):
    user_ids: List[int] = Field(..., min_length=1)


class InviteReply(CamelModel):
    accept: bool


class InviteResponse(CamelModel):
    """Schema for invite response."""
    id: int
    room_id: str
    user_id: int
    inviter_id: int
    status: InviteStatus
    message: Optional[str] = None
    room: Optional[RoomResponse] = None
    inviter: Optional[UserBrief] = None
