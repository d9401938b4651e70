"""User administration: search, status, deletion, subadmins, exports"""
import csv
import io
from datetime import timedelta
from typing import Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from leadhub.core.errors import Conflict, OperationNotAllowed, PermissionDenied, UserNotFound, ValidationError
from leadhub.core.permissions import normalize_permissions
from leadhub.core.logging import get_logger
from leadhub.models.user import User
from leadhub.services import auth_service
from leadhub.services.subscription_service import utcnow

logger = get_logger(__name__)

USER_STATUSES = ("active", "inactive", "pending")


def serialize_user(user: User) -> dict:
    return {
        "id": user.id,
        "email": user.email,
        "name": user.name,
        "role": user.role,
        "status": user.status,
        "verified": user.verified,
        "permissions": user.permissions or [],
        "lead_coins": user.lead_coins,
        "profile_image": user.profile_image,
        "last_login_at": user.last_login_at.isoformat() if user.last_login_at else None,
        "created_at": user.created_at.isoformat() if user.created_at else None,
    }


def search_users(
    db: Session,
    page: int = 1,
    per_page: int = 50,
    search: Optional[str] = None,
    role: Optional[str] = None,
    status: Optional[str] = None,
) -> dict:
    q = db.query(User)
    if search:
        q = q.filter(or_(User.email.contains(search), User.name.contains(search)))
    if role:
        q = q.filter(User.role == role)
    if status:
        q = q.filter(User.status == status)

    total = q.count()
    users = q.order_by(User.created_at.desc(), User.id.desc()).offset((page - 1) * per_page).limit(per_page).all()
    return {
        "total": total,
        "page": page,
        "per_page": per_page,
        "users": [serialize_user(u) for u in users],
    }


def set_status(db: Session, user_id: int, status: str, acting_user: User) -> User:
    if status not in USER_STATUSES:
        raise ValidationError(f"status must be one of {', '.join(USER_STATUSES)}")
    user = auth_service.get_user_by_id(db, user_id)
    if not user:
        raise UserNotFound()
    if user.role == "admin" and acting_user.role != "admin":
        raise PermissionDenied("Only admins can change an admin's status")
    if user.id == acting_user.id:
        raise OperationNotAllowed("You cannot change your own status")
    user.status = status
    db.commit()
    db.refresh(user)
    logger.info(f"User status changed: user_id={user.id}, status={status}, by={acting_user.id}")
    return user


def delete_user(db: Session, user_id: int, acting_user: User) -> None:
    """Admins are never deleted; nobody deletes themselves"""
    user = auth_service.get_user_by_id(db, user_id)
    if not user:
        raise UserNotFound()
    if user.role == "admin":
        raise OperationNotAllowed("Admin accounts cannot be deleted")
    if user.id == acting_user.id:
        raise OperationNotAllowed("You cannot delete your own account")
    if user.role == "subadmin" and acting_user.role != "admin":
        raise PermissionDenied("Only admins can delete subadmins")
    db.delete(user)
    db.commit()
    logger.info(f"User deleted: user_id={user_id}, by={acting_user.id}")


def export_users_csv(db: Session) -> str:
    buf = io.StringIO()
    writer = csv.writer(buf)
    writer.writerow(["id", "name", "email", "role", "status", "verified", "lead_coins", "last_login_at", "created_at"])
    for u in db.query(User).order_by(User.id).all():
        writer.writerow([
            u.id,
            u.name,
            u.email,
            u.role,
            u.status,
            "yes" if u.verified else "no",
            u.lead_coins,
            u.last_login_at.isoformat() if u.last_login_at else "",
            u.created_at.isoformat() if u.created_at else "",
        ])
    return buf.getvalue()


# =========================================================
# Subadmins
# =========================================================

def list_subadmins(db: Session) -> list[User]:
    return db.query(User).filter(User.role == "subadmin").order_by(User.created_at.desc()).all()


def create_subadmin(db: Session, email: str, password: str, name: str, permissions: list[str]) -> User:
    if auth_service.get_user_by_email(db, email):
        raise Conflict("This email address is already registered")
    return auth_service.create_user(
        db,
        email=email,
        password=password,
        name=name,
        role="subadmin",
        status="active",
        verified=True,
        permissions=permissions,
    )


def get_subadmin(db: Session, user_id: int) -> User:
    user = db.query(User).filter(User.id == user_id, User.role == "subadmin").first()
    if not user:
        raise UserNotFound("Subadmin not found")
    return user


def update_permissions(db: Session, user_id: int, permissions: list[str]) -> User:
    user = get_subadmin(db, user_id)
    user.permissions = normalize_permissions(permissions)
    db.commit()
    db.refresh(user)
    return user


# =========================================================
# Inactivity
# =========================================================

def find_inactive_users(db: Session, days: int) -> list[User]:
    """Active, verified regular users who have not signed in for ``days`` days"""
    threshold = utcnow() - timedelta(days=days)
    return db.query(User).filter(
        User.role == "user",
        User.status == "active",
        User.verified == True,
        or_(
            User.last_login_at < threshold,
            (User.last_login_at == None) & (User.created_at < threshold),
        ),
    ).order_by(User.id).all()
