from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Enum as SAEnum, func
from leadhub.core.database import Base


class CoinPurchase(Base):
    __tablename__ = "coin_purchases"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    package_id = Column(Integer, ForeignKey("leadcoin_packages.id", ondelete="SET NULL"), nullable=True)
    payment_session_id = Column(String(255), nullable=True, unique=True)
    status = Column(
        SAEnum("pending", "completed", "failed", "cancelled", name="coin_purchase_status"),
        nullable=False,
        default="pending",
    )
    lead_coins = Column(Integer, nullable=False)
    amount = Column(Integer, nullable=False, comment="amount paid in cents")
    created_at = Column(DateTime, nullable=False, server_default=func.now())
    updated_at = Column(DateTime, nullable=False, server_default=func.now(), onupdate=func.now())
