"""Leads and lead categories"""
from typing import Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from leadhub.core.errors import Conflict, LeadNotFound, OperationNotAllowed, ValidationError
from leadhub.core.logging import get_logger
from leadhub.core.permissions import is_staff
from leadhub.models.lead import Lead
from leadhub.models.lead_category import LeadCategory
from leadhub.models.user import User
from leadhub.services import lead_view_service

logger = get_logger(__name__)

WORK_TYPES = ("part_time", "full_time")
LEAD_FIELDS = (
    "title", "description", "category_id", "skills", "work_type", "duration",
    "location", "price", "total_members", "images", "email", "contact_number",
)
CONTACT_FIELDS = ("email", "contact_number")


def serialize_lead(lead: Lead, category_name: Optional[str] = None, unlocked: bool = False) -> dict:
    """Contact fields are None unless ``unlocked``"""
    data = {
        "id": lead.id,
        "title": lead.title,
        "description": lead.description,
        "category_id": lead.category_id,
        "category_name": category_name,
        "skills": lead.skills or [],
        "work_type": lead.work_type,
        "duration": lead.duration,
        "location": lead.location,
        "price": lead.price,
        "total_members": lead.total_members,
        "images": lead.images or [],
        "creator_id": lead.creator_id,
        "created_at": lead.created_at.isoformat() if lead.created_at else None,
        "unlocked": unlocked,
    }
    for field in CONTACT_FIELDS:
        data[field] = getattr(lead, field) if unlocked else None
    return data


def list_leads(
    db: Session,
    user: User,
    page: int = 1,
    per_page: int = 20,
    search: Optional[str] = None,
    category_id: Optional[int] = None,
    work_type: Optional[str] = None,
) -> dict:
    q = db.query(Lead, LeadCategory.name).outerjoin(LeadCategory, LeadCategory.id == Lead.category_id)
    if search:
        q = q.filter(or_(Lead.title.contains(search), Lead.description.contains(search), Lead.location.contains(search)))
    if category_id:
        q = q.filter(Lead.category_id == category_id)
    if work_type:
        q = q.filter(Lead.work_type == work_type)

    total = q.count()
    rows = q.order_by(Lead.created_at.desc(), Lead.id.desc()).offset((page - 1) * per_page).limit(per_page).all()

    staff = is_staff(user)
    viewed = set() if staff else lead_view_service.viewed_lead_ids(db, user.id, [lead.id for lead, _ in rows])
    return {
        "total": total,
        "page": page,
        "per_page": per_page,
        "leads": [serialize_lead(lead, name, unlocked=staff or lead.id in viewed) for lead, name in rows],
    }


def get_lead(db: Session, lead_id: int) -> Lead:
    lead = db.query(Lead).filter(Lead.id == lead_id).first()
    if not lead:
        raise LeadNotFound()
    return lead


def lead_detail(db: Session, user: User, lead_id: int) -> dict:
    lead = get_lead(db, lead_id)
    category = db.query(LeadCategory.name).filter(LeadCategory.id == lead.category_id).scalar() if lead.category_id else None
    unlocked = is_staff(user) or lead_view_service.has_viewed(db, user.id, lead.id)
    return serialize_lead(lead, category, unlocked=unlocked)


def _validate_lead_data(data: dict) -> None:
    if "work_type" in data and data["work_type"] not in WORK_TYPES:
        raise ValidationError(f"work_type must be one of {', '.join(WORK_TYPES)}")
    for field in ("price", "total_members"):
        if data.get(field) is not None and data[field] < 0:
            raise ValidationError(f"{field} must not be negative")


def _resolve_category(db: Session, data: dict, category_name: Optional[str]) -> None:
    """A category given by name is created on the fly"""
    if category_name:
        data["category_id"] = get_or_create_category(db, category_name).id
    elif data.get("category_id"):
        if not db.query(LeadCategory.id).filter(LeadCategory.id == data["category_id"]).first():
            raise ValidationError("Category not found")


def create_lead(db: Session, creator: User, data: dict, category_name: Optional[str] = None) -> Lead:
    data = {k: v for k, v in data.items() if k in LEAD_FIELDS}
    _validate_lead_data(data)
    _resolve_category(db, data, category_name)
    lead = Lead(creator_id=creator.id, **data)
    db.add(lead)
    db.commit()
    db.refresh(lead)
    logger.info(f"Lead created: id={lead.id}, creator={creator.id}")
    return lead


def update_lead(db: Session, lead_id: int, data: dict, category_name: Optional[str] = None) -> Lead:
    lead = get_lead(db, lead_id)
    data = {k: v for k, v in data.items() if k in LEAD_FIELDS}
    _validate_lead_data(data)
    _resolve_category(db, data, category_name)
    for key, value in data.items():
        setattr(lead, key, value)
    db.commit()
    db.refresh(lead)
    return lead


def delete_lead(db: Session, lead_id: int) -> None:
    lead = get_lead(db, lead_id)
    db.delete(lead)
    db.commit()
    logger.info(f"Lead deleted: id={lead_id}")


# =========================================================
# Categories
# =========================================================

def list_categories(db: Session, active_only: bool = False, used_only: bool = False) -> list[LeadCategory]:
    q = db.query(LeadCategory)
    if active_only:
        q = q.filter(LeadCategory.active == True)
    if used_only:
        q = q.filter(LeadCategory.id.in_(db.query(Lead.category_id).filter(Lead.category_id != None)))
    return q.order_by(LeadCategory.name).all()


def get_or_create_category(db: Session, name: str) -> LeadCategory:
    name = name.strip()
    if not name:
        raise ValidationError("Category name is required")
    category = db.query(LeadCategory).filter(LeadCategory.name == name).first()
    if category:
        return category
    category = LeadCategory(name=name, active=True)
    db.add(category)
    db.flush()
    return category


def create_category(db: Session, name: str, description: Optional[str] = None) -> LeadCategory:
    name = name.strip()
    if db.query(LeadCategory.id).filter(LeadCategory.name == name).first():
        raise Conflict("A category with this name already exists")
    category = LeadCategory(name=name, description=description, active=True)
    db.add(category)
    db.commit()
    db.refresh(category)
    return category


def update_category(db: Session, category_id: int, data: dict) -> LeadCategory:
    category = db.query(LeadCategory).filter(LeadCategory.id == category_id).first()
    if not category:
        raise ValidationError("Category not found")
    if data.get("name") and data["name"].strip() != category.name:
        name = data["name"].strip()
        if db.query(LeadCategory.id).filter(LeadCategory.name == name).first():
            raise Conflict("A category with this name already exists")
        category.name = name
    if "description" in data:
        category.description = data["description"]
    if data.get("active") is not None:
        category.active = data["active"]
    db.commit()
    db.refresh(category)
    return category


def delete_category(db: Session, category_id: int) -> None:
    category = db.query(LeadCategory).filter(LeadCategory.id == category_id).first()
    if not category:
        raise ValidationError("Category not found")
    if db.query(Lead.id).filter(Lead.category_id == category_id).first():
        raise OperationNotAllowed("Category is used by leads; deactivate it instead")
    db.delete(category)
    db.commit()


def serialize_category(category: LeadCategory) -> dict:
    return {
        "id": category.id,
        "name": category.name,
        "description": category.description,
        "active": category.active,
    }
