from sqlalchemy import Column, Integer, String, Text, DateTime, JSON, ForeignKey, Enum as SAEnum, func
from leadhub.core.database import Base


class Lead(Base):
    __tablename__ = "leads"

    id = Column(Integer, primary_key=True, autoincrement=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=False)
    category_id = Column(Integer, ForeignKey("lead_categories.id", ondelete="SET NULL"), nullable=True, index=True)
    skills = Column(JSON, nullable=True)
    work_type = Column(SAEnum("part_time", "full_time", name="lead_work_type"), nullable=False, default="full_time")
    duration = Column(String(100), nullable=True)
    location = Column(String(255), nullable=True)
    price = Column(Integer, nullable=True, comment="informational, never charged to viewers")
    total_members = Column(Integer, nullable=True)
    images = Column(JSON, nullable=True)

    # gated behind a LeadView
    email = Column(String(255), nullable=True)
    contact_number = Column(String(50), nullable=True)

    creator_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    created_at = Column(DateTime, nullable=False, server_default=func.now())
    updated_at = Column(DateTime, nullable=False, server_default=func.now(), onupdate=func.now())
