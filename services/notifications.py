import logging
from typing import Optional

from sqlalchemy.orm import Session

from models.notification import Notification
from models.user import User
from services.email import send_templated_email

logger = logging.getLogger(__name__)

PAYMENT_NOTIFICATION = "payment"


def create_notification(db: Session, user_id: Optional[int], title: str, message: str, type: str = PAYMENT_NOTIFICATION) -> Notification:
    """Add a notification to the current transaction; the caller commits."""
    notification = Notification(user_id=user_id, title=title, message=message, type=type)
    db.add(notification)
    db.flush()
    return notification


def email_notification(db: Session, notification: Notification, status: str, receipt: Optional[str] = None) -> None:
    """Best-effort e-mail copy of a committed notification."""
    if notification.user_id is None:
        return
    user = db.get(User, notification.user_id)
    if user is None or not user.email:
        return
    try:
        send_templated_email(
            user.email,
            notification.title,
            "emails/payment_notification.txt",
            {"first_name": user.first_name, "message": notification.message, "status": status, "receipt": receipt},
        )
    except Exception:
        logger.exception("Could not queue e-mail for notification %s", notification.id)


def list_notifications(db: Session, user_id: int, limit: int = 50):
    return (
        db.query(Notification)
        .filter(Notification.user_id == user_id)
        .order_by(Notification.created_at.desc(), Notification.id.desc())
        .limit(limit)
        .all()
    )


def mark_read(db: Session, user_id: int, notification_id: int) -> Optional[Notification]:
    notification = (
        db.query(Notification)
        .filter(Notification.id == notification_id, Notification.user_id == user_id)
        .one_or_none()
    )
    if notification is None:
        return None
    notification.is_read = True
    db.commit()
    return notification
