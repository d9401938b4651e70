from sqlalchemy import Column, Integer, String, Boolean, Text, DateTime, func
from leadhub.core.database import Base


class LeadCategory(Base):
    __tablename__ = "lead_categories"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), unique=True, nullable=False)
    description = Column(Text, nullable=True)
    active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, server_default=func.now())
    updated_at = Column(DateTime, nullable=False, server_default=func.now(), onupdate=func.now())
