"""Admin: coupons"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import Optional
from pydantic import BaseModel, Field, field_validator

from leadhub.core.database import get_db
from leadhub.core.permissions import COUPON_MANAGEMENT
from leadhub.models.user import User
from leadhub.services import coupon_service
from leadhub.routers.deps import require_capability

router = APIRouter(prefix="/api/admin/coupons", tags=["admin-coupons"])


class CouponCreate(BaseModel):
    coin_amount: int = Field(gt=0, le=1_000_000)
    max_uses: int = Field(gt=0, le=1_000_000)
    code: Optional[str] = Field(default=None, min_length=4, max_length=50)

    @field_validator("code")
    @classmethod
    def check_code(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        v = v.strip()
        if not all(c.isalnum() or c == "-" for c in v):
            raise ValueError("Coupon codes may contain letters, digits and hyphens only")
        return v


class CouponActiveUpdate(BaseModel):
    active: bool


@router.get("")
async def list_coupons(db: Session = Depends(get_db), _=Depends(require_capability(COUPON_MANAGEMENT))):
    return [coupon_service.serialize(c) for c in coupon_service.list_coupons(db)]


@router.post("")
async def create_coupon(
    data: CouponCreate,
    db: Session = Depends(get_db),
    admin: User = Depends(require_capability(COUPON_MANAGEMENT)),
):
    coupon = coupon_service.create_coupon(db, data.coin_amount, data.max_uses, admin, code=data.code)
    return coupon_service.serialize(coupon)


@router.put("/{coupon_id}/active")
async def set_active(
    coupon_id: int,
    data: CouponActiveUpdate,
    db: Session = Depends(get_db),
    _=Depends(require_capability(COUPON_MANAGEMENT)),
):
    return coupon_service.serialize(coupon_service.set_coupon_active(db, coupon_id, data.active))


@router.get("/{coupon_id}/claims")
async def list_claims(coupon_id: int, db: Session = Depends(get_db), _=Depends(require_capability(COUPON_MANAGEMENT))):
    return coupon_service.list_claims(db, coupon_id)
