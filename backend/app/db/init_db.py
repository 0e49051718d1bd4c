"""
Database initialization script.
"""
from app.core.logging import setup_logging
from app.db.session import init_db

# Import all models so SQLAlchemy can register them
from app.models import (  # noqa: F401
    User, Room, RoomMember, RoomInvite, Bill, BillPayer, Consolidation,
    Transaction, Message, Notification, PushSubscription
)

if __name__ == "__main__":
    setup_logging()
    print("Initializing database...")
    init_db()
    print("Database initialized successfully!")
