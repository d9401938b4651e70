"""Lead categories API"""
from typing import Optional
from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from leadhub.core.database import get_db
from leadhub.core.permissions import LEADS_MANAGEMENT
from leadhub.models.user import User
from leadhub.services import lead_service
from leadhub.routers.deps import require_login, require_capability

router = APIRouter(prefix="/api/lead-categories", tags=["leads"])


class CategoryCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    description: Optional[str] = None


class CategoryUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = None
    active: Optional[bool] = None


@router.get("")
async def list_categories(
    active: bool = False,
    used: bool = False,
    user: User = Depends(require_login),
    db: Session = Depends(get_db),
):
    """``active`` and ``used`` narrow the list"""
    categories = lead_service.list_categories(db, active_only=active, used_only=used)
    return [lead_service.serialize_category(c) for c in categories]


@router.post("")
async def create_category(
    data: CategoryCreate,
    user: User = Depends(require_capability(LEADS_MANAGEMENT)),
    db: Session = Depends(get_db),
):
    return lead_service.serialize_category(lead_service.create_category(db, data.name, data.description))


@router.put("/{category_id}")
async def update_category(
    category_id: int,
    data: CategoryUpdate,
    user: User = Depends(require_capability(LEADS_MANAGEMENT)),
    db: Session = Depends(get_db),
):
    category = lead_service.update_category(db, category_id, data.model_dump(exclude_unset=True))
    return lead_service.serialize_category(category)


@router.delete("/{category_id}")
async def delete_category(
    category_id: int,
    user: User = Depends(require_capability(LEADS_MANAGEMENT)),
    db: Session = Depends(get_db),
):
    lead_service.delete_category(db, category_id)
    return {"message": "Category deleted"}
