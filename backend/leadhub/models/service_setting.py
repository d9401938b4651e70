from sqlalchemy import Column, Integer, String, Text, DateTime, func
from leadhub.core.database import Base


class ServiceSetting(Base):
    __tablename__ = "service_settings"

    id = Column(Integer, primary_key=True, autoincrement=True)

    site_name = Column(String(255), nullable=False, default="LeadHub")
    site_url = Column(String(500), nullable=False, default="http://localhost:8000")
    from_email = Column(String(255), nullable=False, default="noreply@example.com")

    # encrypted with core.security
    resend_api_key_enc = Column(Text, nullable=True)
    stripe_secret_key_enc = Column(Text, nullable=True)
    stripe_publishable_key = Column(String(255), nullable=True)
    stripe_webhook_secret_enc = Column(Text, nullable=True)

    created_at = Column(DateTime, nullable=False, server_default=func.now())
    updated_at = Column(DateTime, nullable=False, server_default=func.now(), onupdate=func.now())
