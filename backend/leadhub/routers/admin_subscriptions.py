"""Admin: subscription plans and user subscription records"""
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session
from typing import Optional
from pydantic import BaseModel, Field

from leadhub.core.database import get_db
from leadhub.core.permissions import SUBSCRIPTION_MANAGEMENT
from leadhub.models.subscription import Subscription
from leadhub.models.user_subscription import UserSubscription
from leadhub.services import subscription_service
from leadhub.routers.deps import require_capability
from leadhub.core.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/api/admin/subscriptions", tags=["admin-subscriptions"])

PLAN_FIELDS = ("name", "description", "price", "lead_coins", "duration_days", "features")


class PlanCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    description: Optional[str] = None
    price: int = Field(ge=0)
    lead_coins: int = Field(ge=0)
    duration_days: int = Field(default=30, ge=1, le=3650)
    features: Optional[list[str]] = None
    active: bool = True


class PlanUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = None
    price: Optional[int] = Field(default=None, ge=0)
    lead_coins: Optional[int] = Field(default=None, ge=0)
    duration_days: Optional[int] = Field(default=None, ge=1, le=3650)
    features: Optional[list[str]] = None
    active: Optional[bool] = None


def _plan_dict(db: Session, plan: Subscription) -> dict:
    return {
        "id": plan.id,
        "name": plan.name,
        "description": plan.description,
        "price": plan.price,
        "lead_coins": plan.lead_coins,
        "duration_days": plan.duration_days,
        "features": plan.features or [],
        "active": plan.active,
        "in_use": subscription_service.is_plan_referenced(db, plan.id),
        "created_at": plan.created_at.isoformat() if plan.created_at else None,
    }


def _get_plan(db: Session, plan_id: int) -> Subscription:
    plan = db.query(Subscription).filter(Subscription.id == plan_id).first()
    if not plan:
        raise HTTPException(status_code=404, detail="Plan not found")
    return plan


@router.get("/plans")
async def list_plans(db: Session = Depends(get_db), _=Depends(require_capability(SUBSCRIPTION_MANAGEMENT))):
    plans = db.query(Subscription).order_by(Subscription.created_at.desc(), Subscription.id.desc()).all()
    return [_plan_dict(db, p) for p in plans]


@router.post("/plans")
async def create_plan(
    data: PlanCreate,
    db: Session = Depends(get_db),
    _=Depends(require_capability(SUBSCRIPTION_MANAGEMENT)),
):
    plan = Subscription(**data.model_dump())
    db.add(plan)
    db.commit()
    db.refresh(plan)
    logger.info(f"Plan created: id={plan.id}, name={plan.name}")
    return _plan_dict(db, plan)


@router.put("/plans/{plan_id}")
async def update_plan(
    plan_id: int,
    data: PlanUpdate,
    db: Session = Depends(get_db),
    _=Depends(require_capability(SUBSCRIPTION_MANAGEMENT)),
):
    """Only ``active`` may change once a user subscription references the plan"""
    plan = _get_plan(db, plan_id)
    changes = data.model_dump(exclude_unset=True)
    locked = [k for k in changes if k in PLAN_FIELDS and changes[k] != getattr(plan, k)]
    if locked and subscription_service.is_plan_referenced(db, plan.id):
        raise HTTPException(
            status_code=400,
            detail="This plan has subscribers; only its active flag can be changed. Create a new plan instead.",
        )
    for key, value in changes.items():
        setattr(plan, key, value)
    db.commit()
    db.refresh(plan)
    return _plan_dict(db, plan)


@router.delete("/plans/{plan_id}")
async def delete_plan(
    plan_id: int,
    db: Session = Depends(get_db),
    _=Depends(require_capability(SUBSCRIPTION_MANAGEMENT)),
):
    plan = _get_plan(db, plan_id)
    if subscription_service.is_plan_referenced(db, plan.id):
        raise HTTPException(status_code=400, detail="This plan has subscribers; deactivate it instead")
    db.delete(plan)
    db.commit()
    return {"message": "Plan deleted"}


@router.get("")
async def list_user_subscriptions(
    status: Optional[str] = None,
    user_id: Optional[int] = None,
    page: int = Query(1, ge=1),
    per_page: int = Query(50, ge=1, le=200),
    db: Session = Depends(get_db),
    _=Depends(require_capability(SUBSCRIPTION_MANAGEMENT)),
):
    q = db.query(UserSubscription)
    if status:
        q = q.filter(UserSubscription.status == status)
    if user_id:
        q = q.filter(UserSubscription.user_id == user_id)
    total = q.count()
    records = q.order_by(UserSubscription.id.desc()).offset((page - 1) * per_page).limit(per_page).all()
    return {
        "total": total,
        "page": page,
        "per_page": per_page,
        "subscriptions": [subscription_service.serialize(db, r) for r in records],
    }
