"""
Transaction model for the net transfers produced by a consolidation.
"""
from sqlalchemy import Column, Numeric, Boolean, DateTime, ForeignKey, Integer, UniqueConstraint
from sqlalchemy.orm import relationship
from app.db.base import BaseModel


class Transaction(BaseModel):
    """Amount owed from payer to payee after debt simplification."""
    __tablename__ = "transactions"

    consolidation_id = Column(Integer, ForeignKey("consolidations.id", ondelete="CASCADE"), nullable=False, index=True)
    payer_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    payee_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    amount = Column(Numeric(15, 2), nullable=False)
    is_paid = Column(Boolean, default=False, nullable=False, index=True)
    paid_at = Column(DateTime, nullable=True)

    # Relationships
    consolidation = relationship("Consolidation", back_populates="transactions")
    payer = relationship("User", foreign_keys=[payer_id])
    payee = relationship("User", foreign_keys=[payee_id])

    __table_args__ = (
        UniqueConstraint('consolidation_id', 'payer_id', 'payee_id', name='uq_consolidation_pair'),
    )
