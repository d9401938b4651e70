"""Support tickets and replies"""
from typing import Optional

from sqlalchemy.orm import Session

from leadhub.core.errors import PermissionDenied, TicketNotFound, ValidationError
from leadhub.core.logging import get_logger
from leadhub.core.permissions import has_capability, SUPPORT_MANAGEMENT
from leadhub.models.support_ticket import SupportTicket
from leadhub.models.support_ticket_reply import SupportTicketReply
from leadhub.models.user import User

logger = get_logger(__name__)

TICKET_STATUSES = ("open", "in_progress", "resolved", "closed")


def create_ticket(db: Session, user: User, subject: str, message: str) -> SupportTicket:
    ticket = SupportTicket(user_id=user.id, subject=subject.strip(), message=message.strip(), status="open")
    db.add(ticket)
    db.commit()
    db.refresh(ticket)
    logger.info(f"Support ticket created: id={ticket.id}, user_id={user.id}")
    return ticket


def get_ticket_for(db: Session, ticket_id: int, user: User) -> SupportTicket:
    """Owners and support staff only"""
    ticket = db.query(SupportTicket).filter(SupportTicket.id == ticket_id).first()
    if not ticket:
        raise TicketNotFound()
    if ticket.user_id != user.id and not has_capability(user, SUPPORT_MANAGEMENT):
        raise PermissionDenied("You cannot access this ticket")
    return ticket


def list_user_tickets(db: Session, user_id: int) -> list[SupportTicket]:
    return db.query(SupportTicket).filter(SupportTicket.user_id == user_id).order_by(
        SupportTicket.created_at.desc(), SupportTicket.id.desc()
    ).all()


def list_all_tickets(db: Session, status: Optional[str] = None, page: int = 1, per_page: int = 50) -> dict:
    q = db.query(SupportTicket, User.email).join(User, User.id == SupportTicket.user_id)
    if status:
        q = q.filter(SupportTicket.status == status)
    total = q.count()
    rows = q.order_by(SupportTicket.created_at.desc(), SupportTicket.id.desc()).offset((page - 1) * per_page).limit(per_page).all()
    return {
        "total": total,
        "page": page,
        "per_page": per_page,
        "tickets": [dict(serialize_ticket(t), user_email=email) for t, email in rows],
    }


def list_replies(db: Session, ticket_id: int) -> list[SupportTicketReply]:
    return db.query(SupportTicketReply).filter(SupportTicketReply.ticket_id == ticket_id).order_by(
        SupportTicketReply.created_at.asc(), SupportTicketReply.id.asc()
    ).all()


def add_reply(db: Session, ticket: SupportTicket, user: User, message: str) -> SupportTicketReply:
    """A staff reply moves an open ticket to in_progress"""
    if ticket.status == "closed":
        raise ValidationError("This ticket is closed")
    from_staff = has_capability(user, SUPPORT_MANAGEMENT)
    reply = SupportTicketReply(ticket_id=ticket.id, user_id=user.id, message=message.strip(), is_from_staff=from_staff)
    db.add(reply)
    if from_staff and ticket.status == "open":
        ticket.status = "in_progress"
    db.commit()
    db.refresh(reply)
    return reply


def set_status(db: Session, ticket: SupportTicket, status: str) -> SupportTicket:
    if status not in TICKET_STATUSES:
        raise ValidationError(f"status must be one of {', '.join(TICKET_STATUSES)}")
    ticket.status = status
    db.commit()
    db.refresh(ticket)
    logger.info(f"Support ticket status: id={ticket.id}, status={status}")
    return ticket


def serialize_ticket(ticket: SupportTicket) -> dict:
    return {
        "id": ticket.id,
        "user_id": ticket.user_id,
        "subject": ticket.subject,
        "message": ticket.message,
        "status": ticket.status,
        "created_at": ticket.created_at.isoformat() if ticket.created_at else None,
        "updated_at": ticket.updated_at.isoformat() if ticket.updated_at else None,
    }


def serialize_reply(reply: SupportTicketReply) -> dict:
    return {
        "id": reply.id,
        "ticket_id": reply.ticket_id,
        "user_id": reply.user_id,
        "message": reply.message,
        "is_from_staff": reply.is_from_staff,
        "created_at": reply.created_at.isoformat() if reply.created_at else None,
    }
