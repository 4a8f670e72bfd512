"""
Admin monitoring route.

System status snapshot consumed by the admin dashboard.
"""
import time
from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from webhook_dlq.config import settings
from webhook_dlq.database import get_db
from webhook_dlq.dependencies.auth import require_admin
from webhook_dlq.dependencies.dlq import get_dlq_service
from webhook_dlq.logging_config import get_logger
from webhook_dlq.schemas.dlq import DLQStats
from webhook_dlq.services.dlq_service import DeadLetterQueueService


router = APIRouter(prefix="/api/admin", tags=["monitoring"])

log = get_logger(component="monitoring")


async def check_database(db: AsyncSession) -> dict:
    """Round-trip a trivial query and report latency."""
    start = time.perf_counter()
    try:
        await db.execute(text("SELECT 1"))
    except (SQLAlchemyError, OSError) as e:
        log.error("database_check_failed", error=str(e))
        return {"connected": False, "latencyMs": None}
    return {"connected": True, "latencyMs": round((time.perf_counter() - start) * 1000, 2)}


@router.get("/monitoring", response_model=dict)
async def monitoring(
    _: str = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
    service: DeadLetterQueueService = Depends(get_dlq_service)
):
    """
    System, database and webhook queue status.
    
    unhealthy: database unreachable; degraded: dead-lettered webhooks exist.
    """
    database = await check_database(db)
    
    try:
        stats = await service.get_stats()
    except (SQLAlchemyError, OSError) as e:
        log.error("webhook_stats_unavailable", error=str(e))
        stats = DLQStats()
    
    if not database["connected"]:
        system_status = "unhealthy"
    elif stats.dead_letter > 0:
        system_status = "degraded"
    else:
        system_status = "healthy"
    
    return {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "system": {
            "status": system_status,
            "version": settings.APP_VERSION,
            "environment": settings.ENVIRONMENT,
        },
        "database": database,
        "webhooks": stats.model_dump(mode="json", by_alias=True),
    }
