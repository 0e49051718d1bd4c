"""
Notification service: durable per-user notifications, push subscriptions,
and hand-off of Web Push jobs to the push worker pool.
"""
import logging
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from app.core.exceptions import EmptyContent, NotificationNotFound, SubscriptionNotFound
from app.db.session import SessionLocal, run_in_transaction
from app.models.notification import Notification, PushSubscription
from app.services.push_service import NotificationData, PushWorkerPool

logger = logging.getLogger(__name__)

WELCOME_TITLE = "Welcome"
WELCOME_MESSAGE = "Subscribed to JustJio! You will now receive notifications for app events."


def create_notification(user_id: int, title: str, content: str, db: Session) -> Notification:
    """Persist an unread notification for a user."""
    if not content or not content.strip():
        raise EmptyContent()

    with run_in_transaction(db):
        notification = Notification(user_id=user_id, title=title, content=content, is_read=False)
        db.add(notification)
        db.flush()
        notification_id = notification.id

    return db.query(Notification).filter(Notification.id == notification_id).first()


def send_notification(
    user_id: int,
    title: str,
    content: str,
    db: Session,
    push_pool: Optional[PushWorkerPool] = None
) -> Notification:
    """
    Persist a notification and queue one push per subscription of the user.
    Queueing blocks while the push queue is full.
    """
    notification = create_notification(user_id, title, content, db)

    subscriptions = get_subscriptions_by_user(user_id, db)
    if push_pool is None:
        logger.warning("No push pool configured, skipping %d pushes", len(subscriptions))
        return notification

    for sub in subscriptions:
        push_pool.enqueue(NotificationData(
            subscription=sub.to_subscription_info(),
            title=title,
            message=content,
        ))
    logger.info("Queued %d pushes for user %s", len(subscriptions), user_id)
    return notification


def get_notifications(user_id: int, db: Session) -> List[Notification]:
    """All notifications of a user, newest first."""
    return db.query(Notification).filter(
        Notification.user_id == user_id
    ).order_by(Notification.created_at.desc(), Notification.id.desc()).all()


def get_notification(notification_id: int, user_id: int, db: Session) -> Notification:
    notification = db.query(Notification).filter(
        Notification.id == notification_id,
        Notification.user_id == user_id
    ).first()
    if not notification:
        raise NotificationNotFound()
    return notification


def mark_as_read(notification_id: int, user_id: int, db: Session) -> Notification:
    with run_in_transaction(db):
        notification = get_notification(notification_id, user_id, db)
        notification.is_read = True
    return notification


def create_subscription(
    user_id: int,
    endpoint: str,
    auth: str,
    p256dh: str,
    db: Session
) -> Tuple[PushSubscription, bool]:
    """
    Register browser push credentials. An endpoint is unique, so registering
    it again refreshes its keys and owner instead of failing.
    Returns the subscription and whether it was newly created.
    """
    with run_in_transaction(db):
        subscription = get_subscription_by_endpoint(endpoint, db)
        is_new = subscription is None
        if is_new:
            subscription = PushSubscription(user_id=user_id, endpoint=endpoint, auth=auth, p256dh=p256dh)
            db.add(subscription)
        else:
            subscription.user_id = user_id
            subscription.auth = auth
            subscription.p256dh = p256dh
        db.flush()
        subscription_id = subscription.id

    subscription = db.query(PushSubscription).filter(PushSubscription.id == subscription_id).first()
    logger.info("Subscription %s registered for user %s (new=%s)", subscription_id, user_id, is_new)
    return subscription, is_new


def send_welcome(subscription_info: Dict[str, Any], push_pool: Optional[PushWorkerPool]) -> None:
    """Queue the welcome push of a new subscription. Blocks while the push queue is full."""
    if push_pool is None:
        logger.warning("No push pool configured, skipping welcome push")
        return
    push_pool.enqueue(NotificationData(
        subscription=subscription_info,
        title=WELCOME_TITLE,
        message=WELCOME_MESSAGE,
    ))


def get_subscriptions_by_user(user_id: int, db: Session) -> List[PushSubscription]:
    return db.query(PushSubscription).filter(PushSubscription.user_id == user_id).all()


def get_subscription_by_endpoint(endpoint: str, db: Session) -> Optional[PushSubscription]:
    return db.query(PushSubscription).filter(PushSubscription.endpoint == endpoint).first()


def delete_subscription(subscription_id: str, user_id: int, db: Session) -> None:
    with run_in_transaction(db):
        subscription = db.query(PushSubscription).filter(
            PushSubscription.id == subscription_id,
            PushSubscription.user_id == user_id
        ).first()
        if not subscription:
            raise SubscriptionNotFound()
        db.delete(subscription)
    logger.info("Deleted subscription %s", subscription_id)


def deliver_notification(user_id: int, title: str, content: str, push_pool: Optional[PushWorkerPool] = None) -> None:
    """
    Send a notification on a session of its own. Meant to run as a background
    task once the request that triggered it has committed.
    """
    db = SessionLocal()
    try:
        send_notification(user_id, title, content, db, push_pool=push_pool)
    finally:
        db.close()


def notify_users(user_ids, title: str, content: str, push_pool: Optional[PushWorkerPool] = None) -> None:
    """Best-effort fan-out of one notification; a failing user does not stop the rest."""
    for user_id in user_ids:
        try:
            deliver_notification(user_id, title, content, push_pool=push_pool)
        except Exception:
            logger.exception("Failed to notify user %s", user_id)
