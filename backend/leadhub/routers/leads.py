"""Leads API: browse, unlock contact details, manage"""
from typing import Optional
from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, EmailStr, Field
from sqlalchemy.orm import Session

from leadhub.core.database import get_db
from leadhub.core.permissions import LEADS_MANAGEMENT
from leadhub.models.user import User
from leadhub.schemas.subscription import LeadViewRequest, LeadViewResponse
from leadhub.services import lead_service, lead_view_service
from leadhub.routers.deps import require_login, require_capability

router = APIRouter(prefix="/api/leads", tags=["leads"])


class LeadCreate(BaseModel):
    title: str = Field(min_length=1, max_length=255)
    description: str = Field(min_length=1)
    category_id: Optional[int] = None
    category_name: Optional[str] = Field(default=None, max_length=255)
    skills: Optional[list[str]] = None
    work_type: str = "full_time"
    duration: Optional[str] = Field(default=None, max_length=100)
    location: Optional[str] = Field(default=None, max_length=255)
    price: Optional[int] = Field(default=None, ge=0)
    total_members: Optional[int] = Field(default=None, ge=0)
    images: Optional[list[str]] = None
    email: Optional[EmailStr] = None
    contact_number: Optional[str] = Field(default=None, max_length=50)


class LeadUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = None
    category_id: Optional[int] = None
    category_name: Optional[str] = Field(default=None, max_length=255)
    skills: Optional[list[str]] = None
    work_type: Optional[str] = None
    duration: Optional[str] = Field(default=None, max_length=100)
    location: Optional[str] = Field(default=None, max_length=255)
    price: Optional[int] = Field(default=None, ge=0)
    total_members: Optional[int] = Field(default=None, ge=0)
    images: Optional[list[str]] = None
    email: Optional[EmailStr] = None
    contact_number: Optional[str] = Field(default=None, max_length=50)


@router.get("")
async def list_leads(
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100),
    search: Optional[str] = None,
    category_id: Optional[int] = None,
    work_type: Optional[str] = None,
    user: User = Depends(require_login),
    db: Session = Depends(get_db),
):
    return lead_service.list_leads(db, user, page, per_page, search, category_id, work_type)


@router.get("/{lead_id}")
async def get_lead(lead_id: int, user: User = Depends(require_login), db: Session = Depends(get_db)):
    return lead_service.lead_detail(db, user, lead_id)


@router.get("/{lead_id}/viewed")
async def check_viewed(lead_id: int, user: User = Depends(require_login), db: Session = Depends(get_db)):
    lead_service.get_lead(db, lead_id)
    return {"lead_id": lead_id, "viewed": lead_view_service.has_viewed(db, user.id, lead_id)}


@router.post("/{lead_id}/view", response_model=LeadViewResponse)
async def view_lead(
    lead_id: int,
    req: Optional[LeadViewRequest] = None,
    user: User = Depends(require_login),
    db: Session = Depends(get_db),
):
    """Unlock the contact details; charged once per lead"""
    view_type = req.view_type if req else "contact_info"
    result = lead_view_service.request_contact_info(db, user, lead_id, view_type)
    return result.to_dict()


@router.post("")
async def create_lead(
    data: LeadCreate,
    user: User = Depends(require_capability(LEADS_MANAGEMENT)),
    db: Session = Depends(get_db),
):
    payload = data.model_dump(exclude={"category_name"})
    lead = lead_service.create_lead(db, user, payload, category_name=data.category_name)
    return lead_service.lead_detail(db, user, lead.id)


@router.put("/{lead_id}")
async def update_lead(
    lead_id: int,
    data: LeadUpdate,
    user: User = Depends(require_capability(LEADS_MANAGEMENT)),
    db: Session = Depends(get_db),
):
    payload = data.model_dump(exclude_unset=True, exclude={"category_name"})
    lead = lead_service.update_lead(db, lead_id, payload, category_name=data.category_name)
    return lead_service.lead_detail(db, user, lead.id)


@router.delete("/{lead_id}")
async def delete_lead(
    lead_id: int,
    user: User = Depends(require_capability(LEADS_MANAGEMENT)),
    db: Session = Depends(get_db),
):
    lead_service.delete_lead(db, lead_id)
    return {"message": "Lead deleted"}
