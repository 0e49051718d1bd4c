"""
Declarative base classes shared by all models.
"""
from sqlalchemy import Column, DateTime, Integer, func
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class TimestampMixin:
    """Adds created/updated timestamps maintained by the database."""
    created_at = Column(DateTime, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now(), nullable=False)


class BaseModel(TimestampMixin, Base):
    """Abstract model with an integer surrogate key."""
    __abstract__ = True

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
