"""
Main API router that includes all route modules.
"""
from fastapi import APIRouter
from app.api.routes import (
    users, rooms, bills, transactions, messages, notifications, subscriptions
)

api_router = APIRouter()

# Include all route modules
api_router.include_router(users.router)
api_router.include_router(rooms.router)
api_router.include_router(bills.router)
api_router.include_router(transactions.router)
api_router.include_router(messages.router)
api_router.include_router(notifications.router)
api_router.include_router(subscriptions.router)
