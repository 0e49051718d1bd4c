"""
Bill model for expenses recorded in a room, and the consolidation that freezes them.
"""
from sqlalchemy import Column, String, Numeric, Boolean, ForeignKey, Integer, UniqueConstraint
from sqlalchemy.orm import relationship
from app.db.base import BaseModel


class Consolidation(BaseModel):
    """Frozen settlement of all bills in a room. At most one per room."""
    __tablename__ = "consolidations"

    room_id = Column(String(36), ForeignKey("rooms.id", ondelete="CASCADE"), nullable=False, unique=True)

    # Relationships
    bills = relationship("Bill", back_populates="consolidation")
    transactions = relationship("Transaction", back_populates="consolidation", cascade="all, delete-orphan")


class Bill(BaseModel):
    """A single expense paid by the owner on behalf of the payers."""
    __tablename__ = "bills"

    room_id = Column(String(36), ForeignKey("rooms.id", ondelete="CASCADE"), nullable=False, index=True)
    owner_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    name = Column(String(200), nullable=False)
    amount = Column(Numeric(15, 2), nullable=False)
    include_owner = Column(Boolean, default=True, nullable=False)
    consolidation_id = Column(Integer, ForeignKey("consolidations.id"), nullable=True, index=True)

    # Relationships
    room = relationship("Room", back_populates="bills")
    owner = relationship("User", foreign_keys=[owner_id])
    consolidation = relationship("Consolidation", back_populates="bills")
    payers = relationship("BillPayer", back_populates="bill", cascade="all, delete-orphan")

    @property
    def payer_ids(self):
        return [p.user_id for p in self.payers]


class BillPayer(BaseModel):
    """Junction table for Bill and the users who owe a share of it."""
    __tablename__ = "bill_payers"

    bill_id = Column(Integer, ForeignKey("bills.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    # Relationships
    bill = relationship("Bill", back_populates="payers")
    user = relationship("User")

    __table_args__ = (
        UniqueConstraint('bill_id', 'user_id', name='uq_bill_payer'),
    )
