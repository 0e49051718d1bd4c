"""
Notification routes.
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from app.db.session import get_db
from app.core.utils import format_response
from app.models.user import User
from app.schemas.notification import NotificationResponse
from app.api.dependencies import get_current_user
from app.services import notification_service

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("")
async def get_notifications(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Notifications of the current user, newest first."""
    notifications = notification_service.get_notifications(current_user.id, db)
    return format_response(
        [NotificationResponse.model_validate(n) for n in notifications],
        "Retrieved notifications successfully"
    )


@router.get("/{notification_id}")
async def get_notification(
    notification_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    notification = notification_service.get_notification(notification_id, current_user.id, db)
    return format_response(NotificationResponse.model_validate(notification), "Retrieved notification successfully")


@router.patch("/{notification_id}/read")
async def mark_notification_as_read(
    notification_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    notification = notification_service.mark_as_read(notification_id, current_user.id, db)
    return format_response(NotificationResponse.model_validate(notification), "Marked notification as read")
