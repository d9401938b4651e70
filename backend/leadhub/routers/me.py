"""My page API: profile, password, coin history, viewed leads"""
from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.orm import Session

from leadhub.core.database import get_db
from leadhub.core.redis import get_redis
from leadhub.core.session import invalidate_user_sessions
from leadhub.models.user import User
from leadhub.schemas.auth import ChangePasswordRequest, ProfileUpdateRequest
from leadhub.services import auth_service, lead_view_service, ledger_service
from leadhub.services.user_service import serialize_user
from leadhub.routers.deps import require_login

router = APIRouter(prefix="/api/me", tags=["me"])


@router.get("/profile")
async def get_profile(user: User = Depends(require_login)):
    return serialize_user(user)


@router.put("/profile")
async def update_profile(
    data: ProfileUpdateRequest,
    user: User = Depends(require_login),
    db: Session = Depends(get_db),
):
    if data.name is not None:
        user.name = data.name
    if data.profile_image is not None:
        user.profile_image = data.profile_image or None
    db.commit()
    db.refresh(user)
    return {"message": "Profile updated", "user": serialize_user(user)}


@router.post("/change-password")
async def change_password(
    request: Request,
    data: ChangePasswordRequest,
    user: User = Depends(require_login),
    db: Session = Depends(get_db),
    r=Depends(get_redis),
):
    """Other sessions of the user are signed out"""
    if not auth_service.verify_password(data.current_password, user.password_hash):
        raise HTTPException(status_code=400, detail="Current password is incorrect")

    user.password_hash = auth_service.hash_password(data.new_password)
    db.commit()
    await invalidate_user_sessions(r, user.id, exclude_session_id=request.cookies.get("session_id"))
    return {"message": "Password changed"}


@router.get("/transactions")
async def get_transactions(
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    user: User = Depends(require_login),
    db: Session = Depends(get_db),
):
    rows = ledger_service.list_transactions(db, user.id, limit=limit, offset=offset)
    return {
        "balance": ledger_service.get_balance(db, user.id),
        "transactions": [ledger_service.serialize_transaction(t) for t in rows],
    }


@router.get("/views")
async def get_viewed_leads(
    limit: int = Query(100, ge=1, le=500),
    user: User = Depends(require_login),
    db: Session = Depends(get_db),
):
    return {"views": lead_view_service.list_user_views(db, user.id, limit=limit)}
