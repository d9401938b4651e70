"""Admin: subadmins and their permissions"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from pydantic import BaseModel, EmailStr, Field, field_validator

from leadhub.core.database import get_db
from leadhub.core.permissions import SUBADMIN_MANAGEMENT, SUBADMIN_PERMISSIONS
from leadhub.core.redis import get_redis
from leadhub.core.session import invalidate_user_sessions
from leadhub.models.user import User
from leadhub.schemas.auth import validate_password_strength
from leadhub.services import user_service
from leadhub.routers.deps import require_capability

router = APIRouter(prefix="/api/admin/subadmins", tags=["admin-subadmins"])


def _check_permissions(v: list[str]) -> list[str]:
    unknown = [p for p in v if p not in SUBADMIN_PERMISSIONS]
    if unknown:
        raise ValueError(f"Unknown permissions: {', '.join(unknown)}")
    return v


class SubadminCreate(BaseModel):
    email: EmailStr
    name: str = Field(min_length=1, max_length=255)
    password: str = Field(min_length=8, max_length=128)
    permissions: list[str] = []

    @field_validator("password")
    @classmethod
    def check_password(cls, v: str) -> str:
        return validate_password_strength(v)

    @field_validator("permissions")
    @classmethod
    def check_permissions(cls, v: list[str]) -> list[str]:
        return _check_permissions(v)


class PermissionsUpdate(BaseModel):
    permissions: list[str]

    @field_validator("permissions")
    @classmethod
    def check_permissions(cls, v: list[str]) -> list[str]:
        return _check_permissions(v)


@router.get("")
async def list_subadmins(db: Session = Depends(get_db), _=Depends(require_capability(SUBADMIN_MANAGEMENT))):
    return [user_service.serialize_user(u) for u in user_service.list_subadmins(db)]


@router.get("/permissions")
async def available_permissions(_=Depends(require_capability(SUBADMIN_MANAGEMENT))):
    return sorted(SUBADMIN_PERMISSIONS)


@router.post("")
async def create_subadmin(
    data: SubadminCreate,
    db: Session = Depends(get_db),
    _=Depends(require_capability(SUBADMIN_MANAGEMENT)),
):
    user = user_service.create_subadmin(db, data.email, data.password, data.name, data.permissions)
    return user_service.serialize_user(user)


@router.put("/{user_id}/permissions")
async def update_permissions(
    user_id: int,
    data: PermissionsUpdate,
    db: Session = Depends(get_db),
    _=Depends(require_capability(SUBADMIN_MANAGEMENT)),
):
    return user_service.serialize_user(user_service.update_permissions(db, user_id, data.permissions))


@router.delete("/{user_id}")
async def delete_subadmin(
    user_id: int,
    db: Session = Depends(get_db),
    r=Depends(get_redis),
    acting: User = Depends(require_capability(SUBADMIN_MANAGEMENT)),
):
    user_service.get_subadmin(db, user_id)
    user_service.delete_user(db, user_id, acting)
    await invalidate_user_sessions(r, user_id)
    return {"message": "Subadmin deleted"}
