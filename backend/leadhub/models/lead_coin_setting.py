from sqlalchemy import Column, Integer, DateTime, func
from leadhub.core.database import Base


class LeadCoinSetting(Base):
    """Singleton row with the cost of each lead view type"""
    __tablename__ = "lead_coin_settings"

    id = Column(Integer, primary_key=True, autoincrement=True)
    contact_info_cost = Column(Integer, nullable=False, default=5)
    detailed_info_cost = Column(Integer, nullable=False, default=10)
    full_access_cost = Column(Integer, nullable=False, default=15)
    created_at = Column(DateTime, nullable=False, server_default=func.now())
    updated_at = Column(DateTime, nullable=False, server_default=func.now(), onupdate=func.now())
