from sqlalchemy import Column, Integer, String, Boolean, Text, DateTime, JSON, func
from leadhub.core.database import Base


class Subscription(Base):
    """A purchasable plan. Once a UserSubscription references it only ``active`` may change."""
    __tablename__ = "subscriptions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    price = Column(Integer, nullable=False, comment="price in cents")
    lead_coins = Column(Integer, nullable=False, comment="coins granted on activation")
    duration_days = Column(Integer, nullable=False, default=30)
    features = Column(JSON, nullable=True)
    active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, server_default=func.now())
    updated_at = Column(DateTime, nullable=False, server_default=func.now(), onupdate=func.now())
