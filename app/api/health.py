"""Health check and monitoring endpoints"""

import logging
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.db import get_db
from app.db.session import get_pool_stats
from app.utils.datetime_helper import utc_now

logger = logging.getLogger(__name__)

SERVICE_NAME = "todo-service"

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check(db: AsyncSession = Depends(get_db)):
    """Report whether the database is reachable (503 when it is not)"""
    try:
        await db.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        logger.warning(f"Health check failed: {e}")
        return JSONResponse(
            status_code=503,
            content={
                "status": "ERROR",
                "service": SERVICE_NAME,
                "database": "disconnected",
                "timestamp": utc_now().isoformat(),
            },
        )
    return {
        "status": "OK",
        "service": SERVICE_NAME,
        "database": "connected",
        "timestamp": utc_now().isoformat(),
    }


@router.get("/api/health/pool")
async def get_pool_health():
    """
    Get connection pool health statistics.

    Returns pool utilization, connection counts, and health status.
    """
    stats = get_pool_stats()
    available = stats["checked_in"]
    in_use = stats["checked_out"]
    total_capacity = stats["size"] + stats["max_overflow"]
    utilization = (in_use / total_capacity * 100) if total_capacity > 0 else 0

    # Determine health status
    if utilization >= 90:
        status = "critical"
    elif utilization >= 80:
        status = "warning"
    else:
        status = "healthy"

    return {
        "status": status,
        "pool_size": stats["size"],
        "max_overflow": stats["max_overflow"],
        "available": available,
        "in_use": in_use,
        "overflow": stats["overflow"],
        "invalid": stats["invalid"],
        "utilization_percent": round(utilization, 2),
        "total_capacity": total_capacity,
    }
