"""Remind users who have not signed in for a while.

A Redis key per user keeps one reminder per inactivity period.
"""
from leadhub.core.config import settings
from leadhub.core.database import SessionLocal
from leadhub.core.redis import get_sync_redis
from leadhub.services import user_service
from leadhub.services.mail_service import send_inactivity_email
from leadhub.core.logging import get_logger

logger = get_logger(__name__)

REMINDER_PREFIX = "inactivity_reminder:"


def notify_inactive_users(days: int = None, r=None) -> int:
    days = days or settings.INACTIVE_USER_DAYS
    r = r or get_sync_redis()
    ttl = days * 86400

    db = SessionLocal()
    sent = 0
    try:
        for user in user_service.find_inactive_users(db, days):
            # set NX: a reminder already sent in this period wins
            if not r.set(f"{REMINDER_PREFIX}{user.id}", "1", ex=ttl, nx=True):
                continue
            if send_inactivity_email(user.email, user.name, days):
                sent += 1
        logger.info(f"Inactivity reminders sent: {sent}")
        return sent
    except Exception as e:
        logger.error(f"Inactivity reminder job failed: {e}")
        return sent
    finally:
        db.close()
