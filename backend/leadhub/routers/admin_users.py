"""Admin: user management"""
from fastapi import APIRouter, Depends, HTTPException, Query, Response
from sqlalchemy.orm import Session
from typing import Optional
from pydantic import BaseModel, Field

from leadhub.core.config import settings
from leadhub.core.database import get_db
from leadhub.core.permissions import COIN_MANAGEMENT, USER_MANAGEMENT
from leadhub.core.redis import get_redis
from leadhub.core.session import invalidate_user_sessions
from leadhub.models.user import User
from leadhub.services import lead_view_service, ledger_service, subscription_service, user_service
from leadhub.services.system_log_service import log_event
from leadhub.routers.deps import require_capability

router = APIRouter(prefix="/api/admin/users", tags=["admin-users"])


class UpdateStatusRequest(BaseModel):
    status: str


class SendCoinsRequest(BaseModel):
    amount: int = Field(gt=0, le=1_000_000)
    description: Optional[str] = Field(default=None, max_length=255)


@router.get("")
async def list_users(
    page: int = Query(1, ge=1),
    per_page: int = Query(50, ge=1, le=100),
    search: Optional[str] = None,
    role: Optional[str] = None,
    status: Optional[str] = None,
    db: Session = Depends(get_db),
    _=Depends(require_capability(USER_MANAGEMENT)),
):
    return user_service.search_users(db, page, per_page, search, role, status)


@router.get("/export")
async def export_users(db: Session = Depends(get_db), _=Depends(require_capability(USER_MANAGEMENT))):
    return Response(
        content=user_service.export_users_csv(db),
        media_type="text/csv",
        headers={"Content-Disposition": 'attachment; filename="users.csv"'},
    )


@router.get("/inactive")
async def inactive_users(
    days: int = Query(settings.INACTIVE_USER_DAYS, ge=1, le=365),
    db: Session = Depends(get_db),
    _=Depends(require_capability(USER_MANAGEMENT)),
):
    """Users who have not signed in for ``days`` days"""
    users = user_service.find_inactive_users(db, days)
    return {"days": days, "users": [user_service.serialize_user(u) for u in users]}


@router.get("/{user_id}")
async def get_user(user_id: int, db: Session = Depends(get_db), _=Depends(require_capability(USER_MANAGEMENT))):
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise HTTPException(status_code=404, detail="User not found")

    return {
        **user_service.serialize_user(user),
        "subscriptions": [
            subscription_service.serialize(db, s) for s in subscription_service.get_subscription_history(db, user.id)
        ],
        "transactions": [
            ledger_service.serialize_transaction(t) for t in ledger_service.list_transactions(db, user.id, limit=20)
        ],
        "views": lead_view_service.list_user_views(db, user.id, limit=20),
    }


@router.put("/{user_id}/status")
async def update_status(
    user_id: int,
    data: UpdateStatusRequest,
    db: Session = Depends(get_db),
    r=Depends(get_redis),
    acting: User = Depends(require_capability(USER_MANAGEMENT)),
):
    user = user_service.set_status(db, user_id, data.status, acting)
    if user.status == "inactive":
        await invalidate_user_sessions(r, user.id)
    return {"message": f"Status changed to {user.status}", "status": user.status}


@router.delete("/{user_id}")
async def delete_user(
    user_id: int,
    db: Session = Depends(get_db),
    r=Depends(get_redis),
    acting: User = Depends(require_capability(USER_MANAGEMENT)),
):
    user_service.delete_user(db, user_id, acting)
    await invalidate_user_sessions(r, user_id)
    return {"message": "User deleted"}


@router.post("/{user_id}/send-coins")
async def send_coins(
    user_id: int,
    data: SendCoinsRequest,
    db: Session = Depends(get_db),
    admin: User = Depends(require_capability(COIN_MANAGEMENT)),
):
    """Admin top-up"""
    new_balance = ledger_service.grant_coins(db, user_id, data.amount, admin.id, data.description)
    log_event(
        db, "INFO", "admin_topup",
        f"Admin {admin.id} sent {data.amount} LeadCoins to user {user_id}",
        user_id=user_id,
        details={"admin_id": admin.id, "amount": data.amount, "balance": new_balance},
    )
    return {"message": f"Sent {data.amount} LeadCoins", "new_balance": new_balance}
