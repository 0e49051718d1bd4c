"""
Pydantic schemas for Transaction entity.
"""
from typing import Optional
from datetime import datetime
from decimal import Decimal

from app.schemas.base import CamelModel
from app.schemas.user import UserBrief


class TransactionResponse(CamelModel):
    """A payer to payee transfer produced by consolidation."""
    id: int
    consolidation_id: int
    payer: UserBrief
    payee: UserBrief
    amount: Decimal
    is_paid: bool
    paid_at: Optional[datetime] = None
