"""
Pydantic schemas for User entity.
"""
from datetime import datetime

from app.schemas.base import CamelModel


class UserBrief(CamelModel):
    """Identity embedded in other responses."""
    id: int
    username: str


class UserResponse(UserBrief):
    """Schema for user response."""
    email: str
    is_active: bool
    created_at: datetime
