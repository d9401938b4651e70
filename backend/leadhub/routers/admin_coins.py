"""Admin: LeadCoin costs, statistics, packages and ledger checks"""
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session
from typing import Optional
from pydantic import BaseModel, Field

from leadhub.core.database import get_db
from leadhub.core.permissions import COIN_MANAGEMENT
from leadhub.models.coin_purchase import CoinPurchase
from leadhub.models.leadcoin_package import LeadCoinPackage
from leadhub.services import dashboard_service, lead_view_service, ledger_service
from leadhub.routers.deps import require_capability

router = APIRouter(prefix="/api/admin/leadcoins", tags=["admin-leadcoins"])


class CoinSettingsUpdate(BaseModel):
    contact_info_cost: int = Field(ge=0, le=10_000)
    detailed_info_cost: int = Field(ge=0, le=10_000)
    full_access_cost: int = Field(ge=0, le=10_000)


class PackageCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    description: Optional[str] = None
    lead_coins: int = Field(gt=0)
    price: int = Field(ge=0)
    active: bool = True


class PackageUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = None
    lead_coins: Optional[int] = Field(default=None, gt=0)
    price: Optional[int] = Field(default=None, ge=0)
    active: Optional[bool] = None


def _package_dict(p: LeadCoinPackage) -> dict:
    return {
        "id": p.id,
        "name": p.name,
        "description": p.description,
        "lead_coins": p.lead_coins,
        "price": p.price,
        "active": p.active,
    }


# =========================================================
# Costs and statistics
# =========================================================

@router.get("/settings")
async def get_coin_settings(db: Session = Depends(get_db), _=Depends(require_capability(COIN_MANAGEMENT))):
    s = lead_view_service.get_settings(db)
    return {
        "contact_info_cost": s.contact_info_cost,
        "detailed_info_cost": s.detailed_info_cost,
        "full_access_cost": s.full_access_cost,
    }


@router.put("/settings")
async def update_coin_settings(
    data: CoinSettingsUpdate,
    db: Session = Depends(get_db),
    _=Depends(require_capability(COIN_MANAGEMENT)),
):
    s = lead_view_service.get_settings(db)
    s.contact_info_cost = data.contact_info_cost
    s.detailed_info_cost = data.detailed_info_cost
    s.full_access_cost = data.full_access_cost
    db.commit()
    return {"message": "LeadCoin costs updated", **data.model_dump()}


@router.get("/stats")
async def coin_stats(db: Session = Depends(get_db), _=Depends(require_capability(COIN_MANAGEMENT))):
    return dashboard_service.coin_stats(db)


@router.get("/views")
async def lead_views(
    page: int = Query(1, ge=1),
    per_page: int = Query(50, ge=1, le=200),
    db: Session = Depends(get_db),
    _=Depends(require_capability(COIN_MANAGEMENT)),
):
    return lead_view_service.list_all_views(db, page, per_page)


@router.get("/reconcile/{user_id}")
async def reconcile_user(user_id: int, db: Session = Depends(get_db), _=Depends(require_capability(COIN_MANAGEMENT))):
    """Materialized balance against the ledger sum"""
    return ledger_service.reconcile_balance(db, user_id)


@router.get("/transactions/{user_id}")
async def user_transactions(
    user_id: int,
    limit: int = Query(100, ge=1, le=500),
    db: Session = Depends(get_db),
    _=Depends(require_capability(COIN_MANAGEMENT)),
):
    rows = ledger_service.list_transactions(db, user_id, limit=limit)
    return {
        "balance": ledger_service.get_balance(db, user_id),
        "transactions": [ledger_service.serialize_transaction(t) for t in rows],
    }


# =========================================================
# Packages
# =========================================================

@router.get("/packages")
async def list_packages(db: Session = Depends(get_db), _=Depends(require_capability(COIN_MANAGEMENT))):
    packages = db.query(LeadCoinPackage).order_by(LeadCoinPackage.price.asc(), LeadCoinPackage.id).all()
    return [_package_dict(p) for p in packages]


@router.post("/packages")
async def create_package(
    data: PackageCreate,
    db: Session = Depends(get_db),
    _=Depends(require_capability(COIN_MANAGEMENT)),
):
    package = LeadCoinPackage(**data.model_dump())
    db.add(package)
    db.commit()
    db.refresh(package)
    return _package_dict(package)


@router.put("/packages/{package_id}")
async def update_package(
    package_id: int,
    data: PackageUpdate,
    db: Session = Depends(get_db),
    _=Depends(require_capability(COIN_MANAGEMENT)),
):
    package = db.query(LeadCoinPackage).filter(LeadCoinPackage.id == package_id).first()
    if not package:
        raise HTTPException(status_code=404, detail="Package not found")
    for key, value in data.model_dump(exclude_unset=True).items():
        setattr(package, key, value)
    db.commit()
    db.refresh(package)
    return _package_dict(package)


@router.delete("/packages/{package_id}")
async def delete_package(
    package_id: int,
    db: Session = Depends(get_db),
    _=Depends(require_capability(COIN_MANAGEMENT)),
):
    package = db.query(LeadCoinPackage).filter(LeadCoinPackage.id == package_id).first()
    if not package:
        raise HTTPException(status_code=404, detail="Package not found")
    if db.query(CoinPurchase.id).filter(CoinPurchase.package_id == package_id).first():
        raise HTTPException(status_code=400, detail="This package has purchases; deactivate it instead")
    db.delete(package)
    db.commit()
    return {"message": "Package deleted"}
