"""Support tickets API"""
from typing import Optional
from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from leadhub.core.database import get_db
from leadhub.core.permissions import SUPPORT_MANAGEMENT
from leadhub.models.user import User
from leadhub.services import support_service
from leadhub.routers.deps import require_login, require_capability

router = APIRouter(prefix="/api/support", tags=["support"])


class TicketCreate(BaseModel):
    subject: str = Field(min_length=1, max_length=255)
    message: str = Field(min_length=1)


class ReplyCreate(BaseModel):
    message: str = Field(min_length=1)


class StatusUpdate(BaseModel):
    status: str


@router.post("/tickets")
async def create_ticket(data: TicketCreate, user: User = Depends(require_login), db: Session = Depends(get_db)):
    ticket = support_service.create_ticket(db, user, data.subject, data.message)
    return support_service.serialize_ticket(ticket)


@router.get("/tickets")
async def my_tickets(user: User = Depends(require_login), db: Session = Depends(get_db)):
    return [support_service.serialize_ticket(t) for t in support_service.list_user_tickets(db, user.id)]


@router.get("/tickets/all")
async def all_tickets(
    status: Optional[str] = None,
    page: int = Query(1, ge=1),
    per_page: int = Query(50, ge=1, le=200),
    user: User = Depends(require_capability(SUPPORT_MANAGEMENT)),
    db: Session = Depends(get_db),
):
    return support_service.list_all_tickets(db, status, page, per_page)


@router.get("/tickets/{ticket_id}")
async def get_ticket(ticket_id: int, user: User = Depends(require_login), db: Session = Depends(get_db)):
    ticket = support_service.get_ticket_for(db, ticket_id, user)
    return {
        **support_service.serialize_ticket(ticket),
        "replies": [support_service.serialize_reply(r) for r in support_service.list_replies(db, ticket.id)],
    }


@router.get("/tickets/{ticket_id}/replies")
async def list_replies(ticket_id: int, user: User = Depends(require_login), db: Session = Depends(get_db)):
    ticket = support_service.get_ticket_for(db, ticket_id, user)
    return [support_service.serialize_reply(r) for r in support_service.list_replies(db, ticket.id)]


@router.post("/tickets/{ticket_id}/replies")
async def add_reply(
    ticket_id: int,
    data: ReplyCreate,
    user: User = Depends(require_login),
    db: Session = Depends(get_db),
):
    ticket = support_service.get_ticket_for(db, ticket_id, user)
    reply = support_service.add_reply(db, ticket, user, data.message)
    return support_service.serialize_reply(reply)


@router.put("/tickets/{ticket_id}/status")
async def update_status(
    ticket_id: int,
    data: StatusUpdate,
    user: User = Depends(require_capability(SUPPORT_MANAGEMENT)),
    db: Session = Depends(get_db),
):
    ticket = support_service.get_ticket_for(db, ticket_id, user)
    return support_service.serialize_ticket(support_service.set_status(db, ticket, data.status))
