"""Admin: system logs"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import Optional
from datetime import date, datetime

from leadhub.core.database import get_db
from leadhub.core.permissions import SETTINGS_MANAGEMENT
from leadhub.models.system_log import SystemLog
from leadhub.routers.deps import require_capability

router = APIRouter(prefix="/api/admin/logs", tags=["admin-logs"])


@router.get("")
async def list_logs(
    level: Optional[str] = None,
    event_type: Optional[str] = None,
    user_id: Optional[int] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    page: int = Query(1, ge=1),
    per_page: int = Query(50, ge=1, le=200),
    db: Session = Depends(get_db),
    _=Depends(require_capability(SETTINGS_MANAGEMENT)),
):
    q = db.query(SystemLog)
    if level:
        q = q.filter(SystemLog.level == level)
    if event_type:
        q = q.filter(SystemLog.event_type == event_type)
    if user_id:
        q = q.filter(SystemLog.user_id == user_id)
    if start_date:
        q = q.filter(SystemLog.created_at >= datetime.combine(start_date, datetime.min.time()))
    if end_date:
        q = q.filter(SystemLog.created_at <= datetime.combine(end_date, datetime.max.time()))

    total = q.count()
    logs = q.order_by(SystemLog.created_at.desc(), SystemLog.id.desc()).offset((page - 1) * per_page).limit(per_page).all()

    return {
        "total": total,
        "page": page,
        "per_page": per_page,
        "logs": [
            {
                "id": l.id,
                "level": l.level,
                "event_type": l.event_type,
                "user_id": l.user_id,
                "message": l.message,
                "details": l.details,
                "created_at": l.created_at.isoformat() if l.created_at else None,
            }
            for l in logs
        ],
    }
