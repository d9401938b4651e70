from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Enum as SAEnum, func
from leadhub.core.database import Base


class CoinTransaction(Base):
    """Append-only LeadCoin ledger. ``users.lead_coins`` is its running sum."""
    __tablename__ = "coin_transactions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    admin_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    amount = Column(Integer, nullable=False, comment="signed delta")
    type = Column(
        SAEnum(
            "signup_bonus", "subscription", "purchase", "admin_topup", "spent", "coupon", "refund",
            name="coin_transaction_type",
        ),
        nullable=False,
    )
    description = Column(String(500), nullable=False)
    balance_after = Column(Integer, nullable=False)
    reference = Column(String(100), nullable=True, unique=True, comment="idempotency key, e.g. subscription:12")
    created_at = Column(DateTime, nullable=False, server_default=func.now(), index=True)
