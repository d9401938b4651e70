"""Dashboards for admins, subadmins and users"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from leadhub.core.database import get_db
from leadhub.models.user import User
from leadhub.services import dashboard_service
from leadhub.routers.deps import require_admin, require_login, require_staff

router = APIRouter(tags=["dashboard"])


@router.get("/api/admin/dashboard")
async def admin_dashboard(db: Session = Depends(get_db), _=Depends(require_admin)):
    return dashboard_service.admin_dashboard(db)


@router.get("/api/subadmin/dashboard")
async def subadmin_dashboard(user: User = Depends(require_staff), db: Session = Depends(get_db)):
    return dashboard_service.subadmin_dashboard(db, user)


@router.get("/api/dashboard")
async def user_dashboard(user: User = Depends(require_login), db: Session = Depends(get_db)):
    return dashboard_service.user_dashboard(db, user)
