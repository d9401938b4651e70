from sqlalchemy import Column, Integer, String, Boolean, DateTime, JSON, CheckConstraint, Enum as SAEnum, func
from leadhub.core.database import Base


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    name = Column(String(255), nullable=False)
    password_hash = Column(String(255), nullable=False)
    role = Column(SAEnum("admin", "subadmin", "user", name="user_role"), nullable=False, default="user")
    status = Column(
        SAEnum("active", "inactive", "pending", name="user_status"),
        nullable=False,
        default="pending",
    )
    verified = Column(Boolean, nullable=False, default=False)
    permissions = Column(JSON, nullable=True, comment="subadmin capability list")
    lead_coins = Column(Integer, nullable=False, default=0, server_default="0", comment="materialized ledger balance")
    stripe_customer_id = Column(String(255), nullable=True, unique=True)
    profile_image = Column(String(500), nullable=True)
    last_login_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, server_default=func.now())
    updated_at = Column(DateTime, nullable=False, server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        CheckConstraint("lead_coins >= 0", name="ck_users_lead_coins_non_negative"),
    )
