from sqlalchemy import (
    Column, Integer, String, Boolean, DateTime, ForeignKey, CheckConstraint, Enum as SAEnum, func,
)
from leadhub.core.database import Base


class UserSubscription(Base):
    __tablename__ = "user_subscriptions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    subscription_id = Column(Integer, ForeignKey("subscriptions.id", ondelete="RESTRICT"), nullable=False, index=True)
    status = Column(
        SAEnum("pending", "active", "cancelled", "expired", name="user_subscription_status"),
        nullable=False,
        default="pending",
        index=True,
    )
    payment_verified = Column(Boolean, nullable=False, default=False)
    payment_session_id = Column(String(255), nullable=True, unique=True, comment="Stripe Checkout session id")
    initial_lead_coins = Column(Integer, nullable=False, default=0, comment="coins granted by this record")
    lead_coins_left = Column(Integer, nullable=False, default=0, comment="historical snapshot, not a balance")
    start_date = Column(DateTime, nullable=True)
    end_date = Column(DateTime, nullable=True, index=True)
    created_at = Column(DateTime, nullable=False, server_default=func.now())
    updated_at = Column(DateTime, nullable=False, server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        CheckConstraint("lead_coins_left <= initial_lead_coins", name="ck_user_subscriptions_coins_left"),
        CheckConstraint(
            "start_date IS NULL OR end_date IS NULL OR end_date >= start_date",
            name="ck_user_subscriptions_dates",
        ),
    )
