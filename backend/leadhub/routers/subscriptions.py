"""Subscription router: plans, checkout, payment verification, history"""
import urllib.parse
from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.orm import Session

from leadhub.core.database import get_db
from leadhub.core.config import settings
from leadhub.core.rate_limit import limiter, CHECKOUT_RATE_LIMIT
from leadhub.models.subscription import Subscription
from leadhub.models.user import User
from leadhub.schemas.subscription import (
    BuyCoinsRequest, CheckoutResponse, PlanInfo, PurchaseRequest,
)
from leadhub.services import payment_service, subscription_service
from leadhub.routers.deps import require_login
from leadhub.core.logging import get_logger

router = APIRouter(prefix="/api/subscriptions", tags=["subscriptions"])
logger = get_logger(__name__)


def _validate_redirect_url(url: str) -> str:
    """Same-origin redirects only"""
    if not url:
        return url
    parsed = urllib.parse.urlparse(url)
    site_parsed = urllib.parse.urlparse(settings.SITE_URL)
    if parsed.netloc and parsed.netloc != site_parsed.netloc:
        raise HTTPException(status_code=400, detail="Invalid redirect URL")
    return url


def _redirect_urls(success_url: str, cancel_url: str) -> tuple[str, str]:
    success = _validate_redirect_url(success_url) or (
        f"{settings.SITE_URL}/subscriptions/success?session_id={{CHECKOUT_SESSION_ID}}"
    )
    cancel = _validate_redirect_url(cancel_url) or f"{settings.SITE_URL}/subscriptions"
    return success, cancel


@router.get("", response_model=list[PlanInfo])
async def list_plans(db: Session = Depends(get_db)):
    """Active plans"""
    return db.query(Subscription).filter(Subscription.active == True).order_by(Subscription.price.asc()).all()


@router.post("/purchase", response_model=CheckoutResponse)
@limiter.limit(CHECKOUT_RATE_LIMIT)
async def purchase(
    request: Request,
    req: PurchaseRequest,
    user: User = Depends(require_login),
    db: Session = Depends(get_db),
):
    """Create a pending subscription and its Stripe Checkout Session"""
    success_url, cancel_url = _redirect_urls(req.success_url, req.cancel_url)
    result = payment_service.start_subscription_checkout(db, user, req.subscription_id, success_url, cancel_url)
    return CheckoutResponse(checkout_url=result["checkout_url"], session_id=result["session_id"])


@router.post("/buy-coins", response_model=CheckoutResponse)
@limiter.limit(CHECKOUT_RATE_LIMIT)
async def buy_coins(
    request: Request,
    req: BuyCoinsRequest,
    user: User = Depends(require_login),
    db: Session = Depends(get_db),
):
    success_url, cancel_url = _redirect_urls(req.success_url, req.cancel_url)
    result = payment_service.start_coin_checkout(db, user, req.package_id, success_url, cancel_url)
    return CheckoutResponse(checkout_url=result["checkout_url"], session_id=result["session_id"])


@router.get("/verify-payment")
async def verify_payment(
    session_id: str = Query(..., min_length=1),
    user: User = Depends(require_login),
    db: Session = Depends(get_db),
):
    """Poll after returning from Checkout; completes the payment if the webhook has not yet"""
    return payment_service.verify_checkout_session(db, user, session_id)


@router.get("/current")
async def get_current(user: User = Depends(require_login), db: Session = Depends(get_db)):
    active = subscription_service.get_active_subscription(db, user.id)
    return {
        "subscription": subscription_service.serialize(db, active) if active else None,
        "lead_coins": user.lead_coins,
    }


@router.get("/pending")
async def get_pending(user: User = Depends(require_login), db: Session = Depends(get_db)):
    records = subscription_service.get_pending_subscriptions(db, user.id)
    return [subscription_service.serialize(db, r) for r in records]


@router.get("/history")
async def get_history(user: User = Depends(require_login), db: Session = Depends(get_db)):
    records = subscription_service.get_subscription_history(db, user.id)
    return [subscription_service.serialize(db, r) for r in records]
