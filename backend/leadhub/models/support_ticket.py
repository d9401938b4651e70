from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, Enum as SAEnum, func
from leadhub.core.database import Base


class SupportTicket(Base):
    __tablename__ = "support_tickets"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    subject = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    status = Column(
        SAEnum("open", "in_progress", "resolved", "closed", name="support_ticket_status"),
        nullable=False,
        default="open",
    )
    created_at = Column(DateTime, nullable=False, server_default=func.now())
    updated_at = Column(DateTime, nullable=False, server_default=func.now(), onupdate=func.now())
