"""Health check endpoints."""

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from taskhub.config import get_settings
from taskhub.core.responses import ok
from taskhub.db.session import get_db_session

router = APIRouter()
settings = get_settings()


@router.get("/health")
async def health_check() -> dict:
    """Liveness probe."""
    return ok(
        {
            "status": "healthy",
            "version": settings.app_version,
            "environment": settings.environment,
        }
    )


@router.get("/health/ready")
async def readiness_check(db: AsyncSession = Depends(get_db_session)) -> dict:
    """Readiness probe including database connectivity."""
    checks: dict[str, str] = {}
    try:
        await db.execute(text("SELECT 1"))
        checks["database"] = "healthy"
    except Exception as e:
        checks["database"] = f"unhealthy: {e}"

    overall = "healthy" if all(v == "healthy" for v in checks.values()) else "unhealthy"
    return ok({"status": overall, "version": settings.app_version, "checks": checks})
