from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from leadhub.core.database import check_db_connection, get_db
from leadhub.core.redis import check_redis_connection
from leadhub.services import lead_view_service

router = APIRouter()


@router.get("/health")
@router.get("/api/health")
async def health_check(db: Session = Depends(get_db)):
    """Database, Redis and lead-view pricing.

    Missing coin costs mean the migration seed has not run.
    """
    db_ok = check_db_connection()
    redis_ok = await check_redis_connection()
    costs_ok = db_ok and lead_view_service.costs_configured(db)

    status = "ok" if (db_ok and redis_ok and costs_ok) else "degraded"

    return {
        "status": status,
        "db": "connected" if db_ok else "disconnected",
        "redis": "connected" if redis_ok else "disconnected",
        "coin_costs": "configured" if costs_ok else "missing",
    }
