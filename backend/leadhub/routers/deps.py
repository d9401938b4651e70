"""Shared dependencies: authentication and capability checks"""
from typing import Optional
from fastapi import Request, HTTPException, Depends
from sqlalchemy.orm import Session

from leadhub.core.database import get_db
from leadhub.core.permissions import has_capability, is_staff
from leadhub.core.redis import get_redis
from leadhub.core.session import get_session
from leadhub.models.user import User


async def get_current_user(
    request: Request,
    db: Session = Depends(get_db),
    r=Depends(get_redis),
) -> Optional[User]:
    """Cookie → Redis → DB. None when not signed in."""
    session_id = request.cookies.get("session_id")
    if not session_id:
        return None

    session_data = await get_session(r, session_id)
    if not session_data:
        return None

    user_id = int(session_data.get("user_id", 0))
    if not user_id:
        return None

    return db.query(User).filter(User.id == user_id, User.status != "inactive").first()


async def require_login(
    user: Optional[User] = Depends(get_current_user),
) -> User:
    if user is None:
        raise HTTPException(status_code=401, detail="Login required")
    return user


async def require_staff(
    user: User = Depends(require_login),
) -> User:
    """Admins and subadmins"""
    if not is_staff(user):
        raise HTTPException(status_code=403, detail="Staff access required")
    return user


async def require_admin(
    user: User = Depends(require_login),
) -> User:
    if user.role != "admin":
        raise HTTPException(status_code=403, detail="Administrator access required")
    return user


def require_capability(capability: str):
    """Dependency factory: 403 unless the user holds ``capability``"""

    async def _check(user: User = Depends(require_login)) -> User:
        if not has_capability(user, capability):
            raise HTTPException(status_code=403, detail="You do not have permission to perform this action")
        return user

    return _check
