"""
Utility functions for the application.
"""
from typing import Any, Dict
from datetime import date, datetime
from decimal import Decimal
import math

from ulid import ULID


def serialize_value(obj: Any) -> Any:
    """Serialize dates and decimals for JSON payloads sent over the bus."""
    if isinstance(obj, (date, datetime)):
        return obj.isoformat()
    if isinstance(obj, Decimal):
        return str(obj)
    raise TypeError(f"Type {type(obj)} not serializable")


def new_uuid() -> str:
    """Generate a time-ordered UUID string derived from a ULID."""
    return str(ULID().to_uuid())


def page_count(total: int, page_size: int) -> int:
    return int(math.ceil(total / page_size)) if page_size else 0


def format_response(data: Any = None, message: str = "Success") -> Dict[str, Any]:
    """Format API response."""
    return {
        "status": "success",
        "message": message,
        "data": data
    }


def format_error(message: str, details: Any = None) -> Dict[str, Any]:
    """Format error response."""
    return {
        "status": "error",
        "message": message,
        "data": details
    }
