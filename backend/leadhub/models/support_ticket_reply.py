from sqlalchemy import Column, Integer, Boolean, Text, DateTime, ForeignKey, func
from leadhub.core.database import Base


class SupportTicketReply(Base):
    __tablename__ = "support_ticket_replies"

    id = Column(Integer, primary_key=True, autoincrement=True)
    ticket_id = Column(Integer, ForeignKey("support_tickets.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    message = Column(Text, nullable=False)
    is_from_staff = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, nullable=False, server_default=func.now())
