"""Admin: payments that could not be matched to a pending record"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import Optional
from pydantic import BaseModel, field_validator

from leadhub.core.database import get_db
from leadhub.core.permissions import COIN_MANAGEMENT
from leadhub.models.user import User
from leadhub.services import payment_service
from leadhub.routers.deps import require_capability

router = APIRouter(prefix="/api/admin/reconciliations", tags=["admin-reconciliations"])


class ResolveRequest(BaseModel):
    action: str

    @field_validator("action")
    @classmethod
    def check_action(cls, v: str) -> str:
        if v not in ("activate", "dismiss"):
            raise ValueError("action must be 'activate' or 'dismiss'")
        return v


@router.get("")
async def list_reconciliations(
    status: Optional[str] = "open",
    db: Session = Depends(get_db),
    _=Depends(require_capability(COIN_MANAGEMENT)),
):
    """``status=`` (empty) lists every item"""
    items = payment_service.list_reconciliations(db, status or None)
    return [payment_service.serialize_reconciliation(i) for i in items]


@router.post("/{reconciliation_id}/resolve")
async def resolve(
    reconciliation_id: int,
    data: ResolveRequest,
    db: Session = Depends(get_db),
    admin: User = Depends(require_capability(COIN_MANAGEMENT)),
):
    return payment_service.resolve_reconciliation(db, reconciliation_id, admin, data.action)
