"""
Health check endpoints with Redis and database pool monitoring.
"""

import time

from fastapi import APIRouter

from notubiz_sync.config import settings
from notubiz_sync.db.pool import db_health_check
from notubiz_sync.infrastructure.observability.logging import log_health_check
from notubiz_sync.services.redis_client import fast_redis

router = APIRouter()


@router.get("/healthz")
async def healthz():
    """Basic health check - always returns 200 if app is running."""
    return {"status": "ok", "service": "notubiz-woo-sync"}


@router.get("/readyz")
async def readyz():
    """
    Readiness check covering Redis, the database pool and the NotuBiz
    configuration.
    """
    checks = {}
    overall_ok = True

    # 1) Redis
    t0 = time.time()
    try:
        redis_ok = await fast_redis.ping()
        latency_ms = round((time.time() - t0) * 1000, 1)
        checks["redis"] = {"ok": bool(redis_ok), "latency_ms": latency_ms}
        overall_ok = overall_ok and bool(redis_ok)
    except Exception as e:
        latency_ms = round((time.time() - t0) * 1000, 1)
        checks["redis"] = {"ok": False, "error": f"{type(e).__name__}: {e}"}
        overall_ok = False
    log_health_check("redis", checks["redis"]["ok"], latency_ms, checks["redis"].get("error"))

    # 2) Database pool
    t0 = time.time()
    try:
        db_health = await db_health_check()
        is_healthy = db_health.get("healthy", False)
        checks["database"] = {
            "ok": is_healthy,
            "latency_ms": round((time.time() - t0) * 1000, 1),
        }

        if "pool_stats" in db_health:
            pool_stats = db_health["pool_stats"]
            checks["database"].update(
                {
                    "pool_size": pool_stats.get("pool_size", 0),
                    "pool_available": pool_stats.get("pool_available", 0),
                    "pool_utilization_percent": pool_stats.get("pool_utilization_percent", 0),
                }
            )
        if "warnings" in db_health:
            checks["database"]["warnings"] = db_health["warnings"]
        if not is_healthy:
            checks["database"]["error"] = db_health.get("error", "Database unhealthy")

        overall_ok = overall_ok and is_healthy
    except Exception as e:
        checks["database"] = {
            "ok": False,
            "error": f"{type(e).__name__}: {e}",
            "latency_ms": round((time.time() - t0) * 1000, 1),
        }
        overall_ok = False
    log_health_check(
        "database",
        checks["database"]["ok"],
        checks["database"]["latency_ms"],
        checks["database"].get("error"),
    )

    # 3) Configuration
    config_issues = []
    if not settings.NOTUBIZ_ORGANISATION_ID:
        config_issues.append("NOTUBIZ_ORGANISATION_ID not set")
    if not settings.NOTUBIZ_API_BASE_URL:
        config_issues.append("NOTUBIZ_API_BASE_URL not set")

    checks["configuration"] = {
        "ok": not config_issues,
        "issues": config_issues or None,
        "environment": settings.environment,
    }
    overall_ok = overall_ok and not config_issues

    return {"overall_ok": overall_ok, "checks": checks, "timestamp": time.time()}


@router.get("/health/database")
async def database_health():
    """Detailed database pool health information."""
    return await db_health_check()
