"""Key resolution: service_settings row first, environment second"""
from leadhub.core.database import SessionLocal
from leadhub.core.config import settings
from leadhub.core.security import decrypt
from leadhub.core.logging import get_logger

logger = get_logger(__name__)


def _load_setting_value(field_name: str, encrypted: bool = True) -> str | None:
    db = SessionLocal()
    try:
        from leadhub.models.service_setting import ServiceSetting
        setting = db.query(ServiceSetting).first()
        if not setting:
            return None
        value = getattr(setting, field_name, None)
        if not value:
            return None
        return decrypt(value) if encrypted else value
    except Exception as e:
        logger.debug(f"Skipping stored setting {field_name}: {e}")
        return None
    finally:
        db.close()


def get_stripe_secret_key() -> str:
    return _load_setting_value("stripe_secret_key_enc") or settings.STRIPE_SECRET_KEY


def get_stripe_webhook_secret() -> str:
    return _load_setting_value("stripe_webhook_secret_enc") or settings.STRIPE_WEBHOOK_SECRET


def get_stripe_publishable_key() -> str:
    return _load_setting_value("stripe_publishable_key", encrypted=False) or settings.STRIPE_PUBLISHABLE_KEY


def get_resend_api_key() -> str:
    return _load_setting_value("resend_api_key_enc") or settings.RESEND_API_KEY


def get_from_email() -> str:
    return _load_setting_value("from_email", encrypted=False) or settings.RESEND_FROM_EMAIL


def get_site_name() -> str:
    return _load_setting_value("site_name", encrypted=False) or settings.SITE_NAME
