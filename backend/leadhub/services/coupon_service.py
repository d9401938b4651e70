"""Coupon redemption and administration"""
import secrets
import string
from dataclasses import dataclass, asdict
from typing import Optional

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from leadhub.core.errors import AlreadyRedeemed, CouponExhausted, CouponNotFound, ValidationError
from leadhub.core.logging import get_logger
from leadhub.models.coupon import Coupon
from leadhub.models.coupon_claim import CouponClaim
from leadhub.models.user import User
from leadhub.services import ledger_service, notification_service

logger = get_logger(__name__)

CODE_ALPHABET = string.ascii_uppercase + string.digits
CODE_GROUPS = 3
CODE_GROUP_LENGTH = 4


@dataclass
class RedemptionResult:
    coins_granted: int
    new_balance: int

    def to_dict(self) -> dict:
        return asdict(self)


def normalize_code(code: str) -> str:
    return (code or "").strip().upper()


def generate_code() -> str:
    """XXXX-XXXX-XXXX from uppercase letters and digits"""
    return "-".join(
        "".join(secrets.choice(CODE_ALPHABET) for _ in range(CODE_GROUP_LENGTH))
        for _ in range(CODE_GROUPS)
    )


def coupon_reference(coupon_id: int, user_id: int) -> str:
    return f"coupon:{coupon_id}:{user_id}"


def redeem(db: Session, code: str, user_id: int) -> RedemptionResult:
    """Claim a coupon for a user.

    The claim row, the use counter and the ledger credit commit together.
    ``current_uses`` is bumped with ``WHERE current_uses < max_uses`` so
    concurrent claims at the limit cannot overshoot it.
    """
    normalized = normalize_code(code)
    if not normalized:
        raise CouponNotFound()

    coupon = db.query(Coupon).filter(Coupon.code == normalized).first()
    if coupon is None or not coupon.active:
        raise CouponNotFound()
    if coupon.current_uses >= coupon.max_uses:
        raise CouponExhausted()
    if db.query(CouponClaim.id).filter(
        CouponClaim.coupon_id == coupon.id,
        CouponClaim.user_id == user_id,
    ).first():
        raise AlreadyRedeemed()

    coupon_id = coupon.id
    amount = coupon.coin_amount

    try:
        db.add(CouponClaim(coupon_id=coupon_id, user_id=user_id, coins_received=amount))
        try:
            db.flush()
        except IntegrityError:
            raise AlreadyRedeemed()

        result = db.execute(
            update(Coupon)
            .where(
                Coupon.id == coupon_id,
                Coupon.current_uses < Coupon.max_uses,
                Coupon.active == True,
            )
            .values(current_uses=Coupon.current_uses + 1)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise CouponExhausted()

        new_balance = ledger_service.credit(
            db,
            user_id,
            amount,
            ledger_service.TX_COUPON,
            f"Coupon claimed: {normalized}",
            reference=coupon_reference(coupon_id, user_id),
            commit=False,
        )
        notification_service.create_notification(
            db,
            user_id=user_id,
            type="coin_received",
            title="Coupon claimed",
            message=f"Coupon {normalized} added {amount} LeadCoins to your balance.",
            details={"coupon_id": coupon_id, "amount": amount},
            commit=False,
        )
        db.commit()
    except ledger_service.DuplicateLedgerEntry:
        db.rollback()
        raise AlreadyRedeemed()
    except Exception:
        db.rollback()
        raise

    logger.info(f"Coupon redeemed: code={normalized}, user_id={user_id}, coins={amount}, balance={new_balance}")
    return RedemptionResult(coins_granted=amount, new_balance=new_balance)


# =========================================================
# Administration
# =========================================================

def create_coupon(
    db: Session,
    coin_amount: int,
    max_uses: int,
    created_by: User,
    code: Optional[str] = None,
) -> Coupon:
    if coin_amount <= 0:
        raise ValidationError("coin_amount must be positive")
    if max_uses <= 0:
        raise ValidationError("max_uses must be positive")

    explicit = normalize_code(code) if code else None
    for _ in range(5):
        coupon = Coupon(
            code=explicit or generate_code(),
            coin_amount=coin_amount,
            max_uses=max_uses,
            current_uses=0,
            active=True,
            created_by_id=created_by.id,
        )
        db.add(coupon)
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            if explicit:
                raise ValidationError("A coupon with this code already exists")
            continue
        db.refresh(coupon)
        logger.info(f"Coupon created: code={coupon.code}, coins={coin_amount}, max_uses={max_uses}")
        return coupon
    raise ValidationError("Could not generate a unique coupon code")


def list_coupons(db: Session) -> list[Coupon]:
    return db.query(Coupon).order_by(Coupon.created_at.desc(), Coupon.id.desc()).all()


def set_coupon_active(db: Session, coupon_id: int, active: bool) -> Coupon:
    coupon = db.query(Coupon).filter(Coupon.id == coupon_id).first()
    if not coupon:
        raise CouponNotFound("Coupon not found")
    coupon.active = active
    db.commit()
    db.refresh(coupon)
    return coupon


def list_claims(db: Session, coupon_id: int) -> list[dict]:
    rows = (
        db.query(CouponClaim, User.email)
        .join(User, User.id == CouponClaim.user_id)
        .filter(CouponClaim.coupon_id == coupon_id)
        .order_by(CouponClaim.claimed_at.desc())
        .all()
    )
    return [
        {
            "user_id": claim.user_id,
            "user_email": email,
            "coins_received": claim.coins_received,
            "claimed_at": claim.claimed_at.isoformat() if claim.claimed_at else None,
        }
        for claim, email in rows
    ]


def serialize(coupon: Coupon) -> dict:
    return {
        "id": coupon.id,
        "code": coupon.code,
        "coin_amount": coupon.coin_amount,
        "max_uses": coupon.max_uses,
        "current_uses": coupon.current_uses,
        "active": coupon.active,
        "created_at": coupon.created_at.isoformat() if coupon.created_at else None,
    }
