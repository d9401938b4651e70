"""LeadCoin API: packages, balance, costs"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from leadhub.core.database import get_db
from leadhub.models.leadcoin_package import LeadCoinPackage
from leadhub.models.user import User
from leadhub.schemas.subscription import PackageInfo
from leadhub.services import lead_view_service, ledger_service
from leadhub.routers.deps import require_login

router = APIRouter(prefix="/api/coins", tags=["coins"])


@router.get("/packages", response_model=list[PackageInfo])
async def list_packages(db: Session = Depends(get_db)):
    return db.query(LeadCoinPackage).filter(LeadCoinPackage.active == True).order_by(LeadCoinPackage.price.asc()).all()


@router.get("/balance")
async def get_balance(user: User = Depends(require_login), db: Session = Depends(get_db)):
    return {"lead_coins": ledger_service.get_balance(db, user.id)}


@router.get("/costs")
async def get_costs(user: User = Depends(require_login), db: Session = Depends(get_db)):
    setting = lead_view_service.get_settings(db)
    return {view_type: lead_view_service.view_cost(setting, view_type) for view_type in lead_view_service.VIEW_TYPES}
