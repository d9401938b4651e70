from sqlalchemy import Column, Integer, DateTime, ForeignKey, UniqueConstraint, func
from leadhub.core.database import Base


class CouponClaim(Base):
    __tablename__ = "coupon_claims"

    id = Column(Integer, primary_key=True, autoincrement=True)
    coupon_id = Column(Integer, ForeignKey("coupons.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    coins_received = Column(Integer, nullable=False)
    claimed_at = Column(DateTime, nullable=False, server_default=func.now())

    __table_args__ = (
        UniqueConstraint("coupon_id", "user_id", name="uq_coupon_claims_coupon_user"),
    )
