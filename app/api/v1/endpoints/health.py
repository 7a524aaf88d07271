"""
Health check endpoints.
"""
from typing import Any, Dict

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.logging import get_logger
from app.infrastructure.database.base import get_db

router = APIRouter()
logger = get_logger(__name__)


@router.get("/health")
async def health_check() -> Dict[str, Any]:
    """
    Basic health check endpoint.

    Returns:
        Health status
    """
    return {
        "status": "healthy",
        "service": "coolcare-api",
        "version": settings.APP_VERSION,
        "environment": settings.ENVIRONMENT,
    }


@router.get("/health/ready")
async def readiness_check(
    db: AsyncSession = Depends(get_db),
) -> Dict[str, Any]:
    """
    Readiness check including the database.

    Returns:
        Readiness status with component health
    """
    components = {
        "api": "healthy",
        "database": "unknown",
    }

    try:
        result = await db.execute(text("SELECT 1"))
        result.scalar()
        components["database"] = "healthy"
    except SQLAlchemyError as e:
        logger.warning("Database readiness check failed", error=str(e))
        components["database"] = "unhealthy"

    all_healthy = all(status == "healthy" for status in components.values())

    return {
        "status": "ready" if all_healthy else "not ready",
        "components": components,
    }
