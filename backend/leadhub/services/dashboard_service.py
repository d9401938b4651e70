"""Dashboard figures and LeadCoin statistics"""
from datetime import datetime, timedelta

from sqlalchemy import func as sa_func
from sqlalchemy.orm import Session

from leadhub.core.permissions import (
    capabilities_for, USER_MANAGEMENT, LEADS_MANAGEMENT, SUPPORT_MANAGEMENT, SUBSCRIPTION_MANAGEMENT,
)
from leadhub.models.coin_purchase import CoinPurchase
from leadhub.models.coin_transaction import CoinTransaction
from leadhub.models.lead import Lead
from leadhub.models.lead_view import LeadView
from leadhub.models.notification import Notification
from leadhub.models.subscription import Subscription
from leadhub.models.support_ticket import SupportTicket
from leadhub.models.user import User
from leadhub.models.user_subscription import UserSubscription
from leadhub.services import lead_view_service, subscription_service
from leadhub.services.subscription_service import utcnow


def _start_of_day(now: datetime) -> datetime:
    return now.replace(hour=0, minute=0, second=0, microsecond=0)


def _start_of_month(now: datetime) -> datetime:
    return _start_of_day(now).replace(day=1)


def coin_stats(db: Session, now: datetime = None) -> dict:
    now = now or utcnow()
    total_coins = db.query(sa_func.coalesce(sa_func.sum(User.lead_coins), 0)).scalar()
    spent_this_month = db.query(sa_func.coalesce(sa_func.sum(CoinTransaction.amount), 0)).filter(
        CoinTransaction.type == "spent",
        CoinTransaction.created_at >= _start_of_month(now),
    ).scalar()
    leads_viewed_today = db.query(LeadView).filter(LeadView.viewed_at >= _start_of_day(now)).count()
    top_users = (
        db.query(User.id, User.name, User.email, User.lead_coins)
        .filter(User.role == "user")
        .order_by(User.lead_coins.desc(), User.id)
        .limit(10)
        .all()
    )
    return {
        "total_coins": int(total_coins),
        "coins_spent_this_month": -int(spent_this_month),
        "leads_viewed_today": leads_viewed_today,
        "top_users": [
            {"id": uid, "name": name, "email": email, "lead_coins": coins}
            for uid, name, email, coins in top_users
        ],
    }


def _revenue(db: Session) -> int:
    purchases = db.query(sa_func.coalesce(sa_func.sum(CoinPurchase.amount), 0)).filter(
        CoinPurchase.status == "completed"
    ).scalar()
    subscriptions = (
        db.query(sa_func.coalesce(sa_func.sum(Subscription.price), 0))
        .join(UserSubscription, UserSubscription.subscription_id == Subscription.id)
        .filter(UserSubscription.payment_verified == True)
        .scalar()
    )
    return int(purchases) + int(subscriptions)


def _ticket_counts(db: Session) -> dict:
    rows = db.query(SupportTicket.status, sa_func.count(SupportTicket.id)).group_by(SupportTicket.status).all()
    counts = {"open": 0, "in_progress": 0, "resolved": 0, "closed": 0}
    counts.update({status: count for status, count in rows})
    return counts


def admin_dashboard(db: Session) -> dict:
    now = utcnow()
    users_by_role = dict(db.query(User.role, sa_func.count(User.id)).group_by(User.role).all())
    recent_users = db.query(User).order_by(User.created_at.desc(), User.id.desc()).limit(5).all()
    return {
        "users": {
            "total": sum(users_by_role.values()),
            "by_role": users_by_role,
            "new_this_week": db.query(User).filter(User.created_at >= now - timedelta(days=7)).count(),
        },
        "leads": {
            "total": db.query(Lead).count(),
            "views_total": db.query(LeadView).count(),
        },
        "subscriptions": subscription_service.count_by_status(db),
        "tickets": _ticket_counts(db),
        "revenue": _revenue(db),
        "coins": coin_stats(db, now),
        "recent_users": [
            {"id": u.id, "name": u.name, "email": u.email, "created_at": u.created_at.isoformat() if u.created_at else None}
            for u in recent_users
        ],
    }


def subadmin_dashboard(db: Session, user: User) -> dict:
    """Only the sections the subadmin holds permissions for"""
    caps = capabilities_for(user)
    data = {"permissions": sorted(caps)}
    if USER_MANAGEMENT in caps:
        data["users"] = {"total": db.query(User).filter(User.role == "user").count()}
    if LEADS_MANAGEMENT in caps:
        data["leads"] = {
            "total": db.query(Lead).count(),
            "created_by_me": db.query(Lead).filter(Lead.creator_id == user.id).count(),
        }
    if SUPPORT_MANAGEMENT in caps:
        data["tickets"] = _ticket_counts(db)
    if SUBSCRIPTION_MANAGEMENT in caps:
        data["subscriptions"] = subscription_service.count_by_status(db)
    return data


def user_dashboard(db: Session, user: User) -> dict:
    active = subscription_service.get_active_subscription(db, user.id)
    return {
        "lead_coins": user.lead_coins,
        "active_subscription": subscription_service.serialize(db, active) if active else None,
        "leads_viewed": db.query(LeadView).filter(LeadView.user_id == user.id).count(),
        "recent_views": lead_view_service.list_user_views(db, user.id, limit=5),
        "unread_notifications": db.query(Notification).filter(
            Notification.user_id == user.id,
            Notification.read == False,
        ).count(),
        "open_tickets": db.query(SupportTicket).filter(
            SupportTicket.user_id == user.id,
            SupportTicket.status.in_(["open", "in_progress"]),
        ).count(),
    }
