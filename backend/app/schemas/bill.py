"""
Pydantic schemas for Bill entity and room consolidation.
"""
from pydantic import Field
from typing import List, Optional
from datetime import datetime
from decimal import Decimal

from app.schemas.base import CamelModel
from app.schemas.user import UserBrief


class BillCreate(CamelModel):
    """Schema for bill creation."""
    room_id: str
    name: str = Field(..., min_length=1, max_length=200)
    amount: Decimal = Field(..., ge=0, max_digits=15, decimal_places=2)
    include_owner: bool = True
    payers: List[int]  # User IDs who share this bill


class BillResponse(CamelModel):
    """Schema for bill response."""
    id: int
    room_id: str
    name: str
    amount: Decimal
    include_owner: bool
    consolidation_id: Optional[int] = None
    owner: UserBrief
    payers: List[UserBrief] = []
    created_at: datetime


class ConsolidateRequest(CamelModel):
    room_id: str


class ConsolidationStatusResponse(CamelModel):
    is_consolidated: bool
