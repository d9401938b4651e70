"""Service settings router"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import Optional
from pydantic import BaseModel

from leadhub.core.database import get_db
from leadhub.core.permissions import SETTINGS_MANAGEMENT
from leadhub.core.security import encrypt, decrypt, mask_secret
from leadhub.models.service_setting import ServiceSetting
from leadhub.routers.deps import require_capability

router = APIRouter(prefix="/api/admin/settings", tags=["admin-settings"])

ENCRYPTED_FIELDS = {
    "resend_api_key": "resend_api_key_enc",
    "stripe_secret_key": "stripe_secret_key_enc",
    "stripe_webhook_secret": "stripe_webhook_secret_enc",
}


class SettingsUpdate(BaseModel):
    site_name: Optional[str] = None
    site_url: Optional[str] = None
    from_email: Optional[str] = None
    resend_api_key: Optional[str] = None
    stripe_secret_key: Optional[str] = None
    stripe_publishable_key: Optional[str] = None
    stripe_webhook_secret: Optional[str] = None


def _get_or_create(db: Session) -> ServiceSetting:
    setting = db.query(ServiceSetting).first()
    if not setting:
        setting = ServiceSetting()
        db.add(setting)
        db.commit()
        db.refresh(setting)
    return setting


def _masked(encrypted: Optional[str]) -> str:
    if not encrypted:
        return ""
    try:
        return mask_secret(decrypt(encrypted))
    except Exception:
        return "(decryption error)"


@router.get("")
async def get_settings(db: Session = Depends(get_db), _=Depends(require_capability(SETTINGS_MANAGEMENT))):
    """Secrets are returned masked"""
    setting = _get_or_create(db)
    data = {
        "site_name": setting.site_name,
        "site_url": setting.site_url,
        "from_email": setting.from_email,
        "stripe_publishable_key": setting.stripe_publishable_key or "",
    }
    for name, column in ENCRYPTED_FIELDS.items():
        data[f"{name}_masked"] = _masked(getattr(setting, column))
    return data


@router.put("")
async def update_settings(
    data: SettingsUpdate,
    db: Session = Depends(get_db),
    _=Depends(require_capability(SETTINGS_MANAGEMENT)),
):
    setting = _get_or_create(db)

    if data.site_name is not None:
        setting.site_name = data.site_name
    if data.site_url is not None:
        setting.site_url = data.site_url
    if data.from_email is not None:
        setting.from_email = data.from_email
    if data.stripe_publishable_key is not None:
        setting.stripe_publishable_key = data.stripe_publishable_key

    # empty strings keep the stored key
    for name, column in ENCRYPTED_FIELDS.items():
        value = getattr(data, name)
        if value:
            setattr(setting, column, encrypt(value))

    db.commit()
    return {"message": "Settings updated"}
