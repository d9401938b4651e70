"""Expire subscriptions whose end date has passed"""
from leadhub.core.database import SessionLocal
from leadhub.services import subscription_service
from leadhub.core.logging import get_logger

logger = get_logger(__name__)


def expire_due_subscriptions() -> int:
    db = SessionLocal()
    try:
        count = subscription_service.expire_subscriptions(db)
        if count:
            logger.info(f"Subscriptions expired: {count}")
        return count
    except Exception as e:
        db.rollback()
        logger.error(f"Subscription expiry failed: {e}")
        return 0
    finally:
        db.close()
