"""In-app notifications"""
from typing import Optional
from sqlalchemy.orm import Session

from leadhub.models.notification import Notification
from leadhub.core.config import settings


def create_notification(
    db: Session,
    user_id: int,
    type: str,
    title: str,
    message: str,
    details: Optional[dict] = None,
    commit: bool = True,
) -> Notification:
    notification = Notification(
        user_id=user_id,
        type=type,
        title=title,
        message=message,
        details=details,
    )
    db.add(notification)
    if commit:
        db.commit()
        db.refresh(notification)
    return notification


def list_notifications(db: Session, user_id: int, limit: int = 50, unread_only: bool = False) -> list[Notification]:
    q = db.query(Notification).filter(Notification.user_id == user_id)
    if unread_only:
        q = q.filter(Notification.read == False)
    return q.order_by(Notification.created_at.desc(), Notification.id.desc()).limit(limit).all()


def unread_count(db: Session, user_id: int) -> int:
    return db.query(Notification).filter(
        Notification.user_id == user_id,
        Notification.read == False,
    ).count()


def mark_read(db: Session, user_id: int, notification_id: int) -> bool:
    notification = db.query(Notification).filter(
        Notification.id == notification_id,
        Notification.user_id == user_id,
    ).first()
    if not notification:
        return False
    notification.read = True
    db.commit()
    return True


def mark_all_read(db: Session, user_id: int) -> int:
    count = db.query(Notification).filter(
        Notification.user_id == user_id,
        Notification.read == False,
    ).update({Notification.read: True}, synchronize_session=False)
    db.commit()
    return count


def crossed_low_balance_threshold(previous: int, current: int) -> Optional[int]:
    """Lowest configured threshold crossed by a debit from ``previous`` to ``current``"""
    crossed = [t for t in settings.low_balance_thresholds if current <= t < previous]
    return min(crossed) if crossed else None


def notify_low_balance(db: Session, user_id: int, balance: int, threshold: int, commit: bool = True) -> Notification:
    if balance == 0:
        message = "You have run out of LeadCoins. Purchase a plan or package to keep viewing leads."
    else:
        message = f"Your LeadCoin balance is down to {balance}. Top up to keep viewing leads."
    return create_notification(
        db,
        user_id=user_id,
        type="low_balance",
        title="Low LeadCoin balance",
        message=message,
        details={"balance": balance, "threshold": threshold},
        commit=commit,
    )
