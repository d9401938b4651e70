"""Coupon redemption API"""
from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from leadhub.core.database import get_db
from leadhub.core.rate_limit import limiter, COUPON_REDEEM_RATE_LIMIT
from leadhub.models.user import User
from leadhub.schemas.subscription import RedeemRequest, RedeemResponse
from leadhub.services import coupon_service
from leadhub.routers.deps import require_login

router = APIRouter(prefix="/api/coupons", tags=["coupons"])


@router.post("/claim", response_model=RedeemResponse)
@limiter.limit(COUPON_REDEEM_RATE_LIMIT)
async def claim_coupon(
    request: Request,
    req: RedeemRequest,
    user: User = Depends(require_login),
    db: Session = Depends(get_db),
):
    return coupon_service.redeem(db, req.code, user.id).to_dict()


@router.post("/{code}/redeem", response_model=RedeemResponse)
@limiter.limit(COUPON_REDEEM_RATE_LIMIT)
async def redeem_coupon(
    request: Request,
    code: str,
    user: User = Depends(require_login),
    db: Session = Depends(get_db),
):
    return coupon_service.redeem(db, code, user.id).to_dict()
