"""Notifications API"""
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from leadhub.core.database import get_db
from leadhub.models.user import User
from leadhub.services import notification_service
from leadhub.routers.deps import require_login

router = APIRouter(prefix="/api/notifications", tags=["notifications"])


@router.get("")
async def list_notifications(
    limit: int = Query(50, ge=1, le=200),
    unread: bool = False,
    user: User = Depends(require_login),
    db: Session = Depends(get_db),
):
    items = notification_service.list_notifications(db, user.id, limit=limit, unread_only=unread)
    return {
        "unread_count": notification_service.unread_count(db, user.id),
        "notifications": [
            {
                "id": n.id,
                "type": n.type,
                "title": n.title,
                "message": n.message,
                "read": n.read,
                "details": n.details,
                "created_at": n.created_at.isoformat() if n.created_at else None,
            }
            for n in items
        ],
    }


@router.post("/{notification_id}/read")
async def mark_read(notification_id: int, user: User = Depends(require_login), db: Session = Depends(get_db)):
    if not notification_service.mark_read(db, user.id, notification_id):
        raise HTTPException(status_code=404, detail="Notification not found")
    return {"message": "Marked as read"}


@router.post("/read-all")
async def mark_all_read(user: User = Depends(require_login), db: Session = Depends(get_db)):
    count = notification_service.mark_all_read(db, user.id)
    return {"message": "All notifications marked as read", "count": count}
