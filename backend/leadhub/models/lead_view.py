from sqlalchemy import Column, Integer, DateTime, ForeignKey, UniqueConstraint, Enum as SAEnum, func
from leadhub.core.database import Base


class LeadView(Base):
    __tablename__ = "lead_views"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    lead_id = Column(Integer, ForeignKey("leads.id", ondelete="CASCADE"), nullable=False, index=True)
    coins_spent = Column(Integer, nullable=False, default=0)
    view_type = Column(
        SAEnum("contact_info", "detailed_info", "full_access", name="lead_view_type"),
        nullable=False,
        default="contact_info",
    )
    viewed_at = Column(DateTime, nullable=False, server_default=func.now(), index=True)

    __table_args__ = (
        UniqueConstraint("user_id", "lead_id", name="uq_lead_views_user_lead"),
    )
