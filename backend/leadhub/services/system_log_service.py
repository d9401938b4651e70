"""Audit events persisted to system_logs"""
from typing import Optional
from sqlalchemy.orm import Session

from leadhub.models.system_log import SystemLog


def log_event(
    db: Session,
    level: str,
    event_type: str,
    message: str,
    user_id: Optional[int] = None,
    details: Optional[dict] = None,
    commit: bool = True,
) -> SystemLog:
    log = SystemLog(
        level=level,
        event_type=event_type,
        user_id=user_id,
        message=message,
        details=details,
    )
    db.add(log)
    if commit:
        db.commit()
    return log
