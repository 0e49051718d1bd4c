"""
Web Push subscription routes.
"""
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query, status
from sqlalchemy.orm import Session
from app.db.session import get_db
from app.core.exceptions import SubscriptionNotFound
from app.core.utils import format_response
from app.models.user import User
from app.schemas.notification import SubscriptionCreate, SubscriptionResponse
from app.api.dependencies import get_current_user, get_push_pool
from app.services import notification_service
from app.services.push_service import PushWorkerPool

router = APIRouter(prefix="/subscriptions", tags=["subscriptions"])


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_subscription(
    subscription_data: SubscriptionCreate,
    background_tasks: BackgroundTasks,
    current_user: User = Depends(get_current_user),
    push_pool: Optional[PushWorkerPool] = Depends(get_push_pool),
    db: Session = Depends(get_db)
):
    """Register push credentials of the current browser."""
    subscription, is_new = notification_service.create_subscription(
        user_id=current_user.id,
        endpoint=subscription_data.endpoint,
        auth=subscription_data.auth,
        p256dh=subscription_data.p256dh,
        db=db,
    )
    if is_new:
        # Enqueue blocks on a full push queue and must not run on the event loop
        background_tasks.add_task(
            notification_service.send_welcome, subscription.to_subscription_info(), push_pool
        )
    return format_response(SubscriptionResponse.model_validate(subscription), "Created subscription successfully")


@router.get("")
async def get_subscriptions(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    subscriptions = notification_service.get_subscriptions_by_user(current_user.id, db)
    return format_response(
        [SubscriptionResponse.model_validate(s) for s in subscriptions],
        "Retrieved subscriptions successfully"
    )


@router.get("/endpoint")
async def get_subscription_by_endpoint(
    endpoint: str = Query(...),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    subscription = notification_service.get_subscription_by_endpoint(endpoint, db)
    if subscription is None or subscription.user_id != current_user.id:
        raise SubscriptionNotFound()
    return format_response(SubscriptionResponse.model_validate(subscription), "Retrieved subscription successfully")


@router.delete("/{subscription_id}")
async def delete_subscription(
    subscription_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    notification_service.delete_subscription(subscription_id, current_user.id, db)
    return format_response(message="Deleted subscription successfully")
