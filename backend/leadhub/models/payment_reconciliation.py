from sqlalchemy import Column, Integer, String, Text, DateTime, JSON, ForeignKey, Enum as SAEnum, func
from leadhub.core.database import Base


class PaymentReconciliation(Base):
    """A paid checkout session that matched no pending record"""
    __tablename__ = "payment_reconciliations"

    id = Column(Integer, primary_key=True, autoincrement=True)
    payment_session_id = Column(String(255), unique=True, nullable=False)
    kind = Column(SAEnum("subscription", "coins", name="reconciliation_kind"), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    reference_id = Column(Integer, nullable=True, comment="plan id or package id from checkout metadata")
    reason = Column(String(255), nullable=False)
    payload = Column(JSON, nullable=True)
    status = Column(
        SAEnum("open", "resolved", "dismissed", name="reconciliation_status"),
        nullable=False,
        default="open",
        index=True,
    )
    resolved_by_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    resolved_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, server_default=func.now())
