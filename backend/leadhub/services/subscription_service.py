"""Subscription records: pending → active → expired, or pending → cancelled.

Activation is a conditional UPDATE guarded on ``status='pending' AND
payment_verified=false``; only the caller whose UPDATE matched credits the
coins, and the credit carries the ledger reference ``subscription:<id>`` so a
second credit for the same record is impossible even across processes.
"""
from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlalchemy import update, func as sa_func
from sqlalchemy.orm import Session

from leadhub.core.errors import SubscriptionNotFound, PaymentVerificationFailed, UserNotFound
from leadhub.core.logging import get_logger
from leadhub.models.subscription import Subscription
from leadhub.models.user import User
from leadhub.models.user_subscription import UserSubscription
from leadhub.services import ledger_service, notification_service
from leadhub.services.system_log_service import log_event

logger = get_logger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def subscription_reference(user_subscription_id: int) -> str:
    return f"subscription:{user_subscription_id}"


# =========================================================
# Plans
# =========================================================

def get_plan(db: Session, subscription_id: int, active_only: bool = True) -> Subscription:
    q = db.query(Subscription).filter(Subscription.id == subscription_id)
    if active_only:
        q = q.filter(Subscription.active == True)
    plan = q.first()
    if not plan:
        raise SubscriptionNotFound("Subscription plan not found")
    return plan


def is_plan_referenced(db: Session, subscription_id: int) -> bool:
    return db.query(UserSubscription.id).filter(
        UserSubscription.subscription_id == subscription_id
    ).first() is not None


# =========================================================
# Record lifecycle
# =========================================================

def create_pending_subscription(
    db: Session,
    user_id: int,
    subscription_id: int,
    payment_session_id: Optional[str] = None,
    require_active_plan: bool = True,
) -> UserSubscription:
    """Pending, unverified record. No coins move until activation."""
    plan = get_plan(db, subscription_id, active_only=require_active_plan)
    if not db.query(User.id).filter(User.id == user_id).first():
        raise UserNotFound()

    record = UserSubscription(
        user_id=user_id,
        subscription_id=plan.id,
        status="pending",
        payment_verified=False,
        payment_session_id=payment_session_id,
        initial_lead_coins=plan.lead_coins,
        lead_coins_left=plan.lead_coins,
    )
    db.add(record)
    db.commit()
    db.refresh(record)
    logger.info(
        f"Pending subscription created: id={record.id}, user_id={user_id}, "
        f"subscription_id={plan.id}, session={payment_session_id}"
    )
    return record


def attach_payment_session(db: Session, user_subscription_id: int, payment_session_id: str) -> None:
    db.query(UserSubscription).filter(
        UserSubscription.id == user_subscription_id,
        UserSubscription.status == "pending",
    ).update({UserSubscription.payment_session_id: payment_session_id}, synchronize_session=False)
    db.commit()


def activate_subscription(
    db: Session,
    user_subscription_id: int,
    payment_session_id: Optional[str] = None,
    commit: bool = True,
) -> tuple[UserSubscription, bool]:
    """Activate a pending record and credit its plan's coins exactly once.

    Returns ``(record, activated)``. ``activated`` is False when the record was
    already active and verified; that call changes nothing. Raises
    ``SubscriptionNotFound`` for an unknown id and ``PaymentVerificationFailed``
    when the record was cancelled or has expired.
    """
    record = db.query(UserSubscription).filter(UserSubscription.id == user_subscription_id).first()
    if not record:
        raise SubscriptionNotFound()

    if record.status == "active" and record.payment_verified:
        logger.info(f"Subscription already active: id={record.id}")
        return record, False

    plan = db.query(Subscription).filter(Subscription.id == record.subscription_id).first()
    if not plan:
        raise SubscriptionNotFound("Subscription plan not found")

    now = utcnow()
    end_date = now + timedelta(days=plan.duration_days)
    values = {
        UserSubscription.status: "active",
        UserSubscription.payment_verified: True,
        UserSubscription.start_date: now,
        UserSubscription.end_date: end_date,
        UserSubscription.initial_lead_coins: plan.lead_coins,
        UserSubscription.lead_coins_left: plan.lead_coins,
    }
    if payment_session_id:
        values[UserSubscription.payment_session_id] = payment_session_id

    try:
        result = db.execute(
            update(UserSubscription)
            .where(
                UserSubscription.id == record.id,
                UserSubscription.status == "pending",
                UserSubscription.payment_verified == False,
            )
            .values(values)
            .execution_options(synchronize_session=False)
        )

        if result.rowcount == 0:
            # another request won the race, or the record is no longer pending
            db.refresh(record)
            if record.status == "active" and record.payment_verified:
                return record, False
            raise PaymentVerificationFailed(
                f"Subscription {record.id} is {record.status} and cannot be activated"
            )

        if plan.lead_coins > 0:
            new_balance = ledger_service.adjust_balance(
                db,
                record.user_id,
                plan.lead_coins,
                ledger_service.TX_SUBSCRIPTION,
                f"Subscription activated: {plan.name}",
                reference=subscription_reference(record.id),
                commit=False,
            )
        else:
            new_balance = ledger_service.get_balance(db, record.user_id)

        notification_service.create_notification(
            db,
            user_id=record.user_id,
            type="subscription_update",
            title="Subscription activated",
            message=f"{plan.name} is active. {plan.lead_coins} LeadCoins were added to your balance.",
            details={"user_subscription_id": record.id, "lead_coins": plan.lead_coins, "balance": new_balance},
            commit=False,
        )

        if commit:
            db.commit()
    except Exception:
        if commit:
            db.rollback()
        raise

    db.refresh(record)
    logger.info(
        f"Subscription activated: id={record.id}, user_id={record.user_id}, "
        f"coins={plan.lead_coins}, balance={new_balance}"
    )
    return record, True


def cancel_pending_subscription(db: Session, payment_session_id: str) -> bool:
    """Payment failed or the checkout expired. Active records are left alone."""
    count = db.query(UserSubscription).filter(
        UserSubscription.payment_session_id == payment_session_id,
        UserSubscription.status == "pending",
    ).update({UserSubscription.status: "cancelled"}, synchronize_session=False)
    db.commit()
    if count:
        logger.info(f"Pending subscription cancelled: session={payment_session_id}")
    return count > 0


def expire_subscriptions(db: Session, now: Optional[datetime] = None) -> int:
    """Move every active record whose end_date has passed to ``expired``"""
    now = now or utcnow()
    due = db.query(UserSubscription).filter(
        UserSubscription.status == "active",
        UserSubscription.end_date <= now,
    ).all()

    expired = 0
    for record in due:
        count = db.query(UserSubscription).filter(
            UserSubscription.id == record.id,
            UserSubscription.status == "active",
        ).update({UserSubscription.status: "expired"}, synchronize_session=False)
        if not count:
            continue
        expired += 1
        plan = db.query(Subscription).filter(Subscription.id == record.subscription_id).first()
        plan_name = plan.name if plan else f"Plan {record.subscription_id}"
        notification_service.create_notification(
            db,
            user_id=record.user_id,
            type="subscription_update",
            title="Subscription expired",
            message=f"Your {plan_name} subscription has ended. Your remaining LeadCoins stay in your balance.",
            details={"user_subscription_id": record.id},
            commit=False,
        )
        log_event(
            db, "INFO", "subscription_expired",
            f"Subscription {record.id} expired",
            user_id=record.user_id,
            details={"user_subscription_id": record.id, "end_date": record.end_date.isoformat()},
            commit=False,
        )
    db.commit()

    if expired:
        logger.info(f"Subscriptions expired: {expired}")
    return expired


# =========================================================
# Queries
# =========================================================

def get_by_session_id(db: Session, payment_session_id: str) -> Optional[UserSubscription]:
    return db.query(UserSubscription).filter(
        UserSubscription.payment_session_id == payment_session_id
    ).first()


def find_pending_for_plan(db: Session, user_id: int, subscription_id: int) -> Optional[UserSubscription]:
    """Newest pending record of this user for this plan"""
    return db.query(UserSubscription).filter(
        UserSubscription.user_id == user_id,
        UserSubscription.subscription_id == subscription_id,
        UserSubscription.status == "pending",
    ).order_by(UserSubscription.id.desc()).first()


def get_active_subscription(db: Session, user_id: int) -> Optional[UserSubscription]:
    return db.query(UserSubscription).filter(
        UserSubscription.user_id == user_id,
        UserSubscription.status == "active",
    ).order_by(UserSubscription.end_date.desc()).first()


def get_pending_subscriptions(db: Session, user_id: int) -> list[UserSubscription]:
    return db.query(UserSubscription).filter(
        UserSubscription.user_id == user_id,
        UserSubscription.status == "pending",
    ).order_by(UserSubscription.id.desc()).all()


def get_subscription_history(db: Session, user_id: int) -> list[UserSubscription]:
    return db.query(UserSubscription).filter(
        UserSubscription.user_id == user_id,
    ).order_by(UserSubscription.id.desc()).all()


def serialize(db: Session, record: UserSubscription) -> dict:
    plan = db.query(Subscription).filter(Subscription.id == record.subscription_id).first()
    return {
        "id": record.id,
        "user_id": record.user_id,
        "subscription_id": record.subscription_id,
        "plan_name": plan.name if plan else None,
        "plan_price": plan.price if plan else None,
        "status": record.status,
        "payment_verified": record.payment_verified,
        "payment_session_id": record.payment_session_id,
        "initial_lead_coins": record.initial_lead_coins,
        "lead_coins_left": record.lead_coins_left,
        "start_date": record.start_date.isoformat() if record.start_date else None,
        "end_date": record.end_date.isoformat() if record.end_date else None,
        "created_at": record.created_at.isoformat() if record.created_at else None,
    }


def count_by_status(db: Session) -> dict:
    rows = db.query(UserSubscription.status, sa_func.count(UserSubscription.id)).group_by(
        UserSubscription.status
    ).all()
    return {status: count for status, count in rows}
