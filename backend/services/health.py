"""
Health check service for the membership backend.

Checks database connectivity and whether Google OAuth is configured, and
tracks uptime. Returns structured health responses with per-component status.
"""

import logging
import time
from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel
from sqlalchemy import text
from sqlalchemy.ext.asyncio import async_sessionmaker

from config import settings
from database import AsyncSessionLocal

logger = logging.getLogger(__name__)

# Captured at module load, used to compute uptime
_start_time = time.monotonic()

# A database failure makes the whole service unhealthy; anything else degrades it
CRITICAL_CHECKS = {"database"}


class ComponentHealth(BaseModel):
    name: str
    status: str  # "ok" | "error"
    message: Optional[str] = None
    response_time_ms: Optional[float] = None


class HealthResponse(BaseModel):
    status: str  # "healthy" | "degraded" | "unhealthy"
    app: str
    version: str
    environment: str
    uptime_seconds: float
    checks: list[ComponentHealth]
    timestamp: str


async def check_database(
    session_factory: async_sessionmaker = AsyncSessionLocal,
) -> ComponentHealth:
    """Check database connectivity by running SELECT 1."""
    start = time.perf_counter()
    try:
        async with session_factory() as session:
            await session.execute(text("SELECT 1"))
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        return ComponentHealth(
            name="database",
            status="error",
            message=str(e),
            response_time_ms=round((time.perf_counter() - start) * 1000, 1),
        )
    return ComponentHealth(
        name="database",
        status="ok",
        response_time_ms=round((time.perf_counter() - start) * 1000, 1),
    )


def check_oauth_config() -> ComponentHealth:
    """Google login and member registration need both OAuth client settings."""
    missing = [
        name
        for name in ("GOOGLE_OAUTH_CLIENT_ID", "GOOGLE_OAUTH_CLIENT_SECRET")
        if not getattr(settings, name)
    ]
    if missing:
        return ComponentHealth(
            name="oauth_config",
            status="error",
            message=f"Missing settings: {', '.join(missing)}",
        )
    return ComponentHealth(name="oauth_config", status="ok")


async def run_health_checks(
    session_factory: async_sessionmaker = AsyncSessionLocal,
) -> HealthResponse:
    """Run all health checks and return aggregated status."""
    checks = [
        await check_database(session_factory),
        check_oauth_config(),
    ]

    has_critical_error = any(
        c.status == "error" and c.name in CRITICAL_CHECKS for c in checks
    )
    has_any_error = any(c.status == "error" for c in checks)

    if has_critical_error:
        overall = "unhealthy"
    elif has_any_error:
        overall = "degraded"
    else:
        overall = "healthy"

    return HealthResponse(
        status=overall,
        app=settings.APP_NAME,
        version=settings.APP_VERSION,
        environment=settings.CURRENT_ENVIRONMENT,
        uptime_seconds=round(time.monotonic() - _start_time, 1),
        checks=checks,
        timestamp=datetime.now(timezone.utc).isoformat(),
    )
