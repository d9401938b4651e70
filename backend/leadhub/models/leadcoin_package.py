from sqlalchemy import Column, Integer, String, Boolean, Text, DateTime, func
from leadhub.core.database import Base


class LeadCoinPackage(Base):
    __tablename__ = "leadcoin_packages"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    lead_coins = Column(Integer, nullable=False)
    price = Column(Integer, nullable=False, comment="price in cents")
    active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, server_default=func.now())
    updated_at = Column(DateTime, nullable=False, server_default=func.now(), onupdate=func.now())
