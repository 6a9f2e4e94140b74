# app/routes/health.py
"""
Liveness and readiness endpoints with database pool and cache checks.
"""

import time

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from app.config import settings
from app.db.pool import db_health_check
from app.infrastructure.observability.logging import log_health_check
from app.services.redis_client import fast_redis

router = APIRouter()


@router.get("/healthz")
async def healthz():
    """Basic health check - always returns 200 if app is running."""
    return {"status": "ok", "service": "records-dashboard"}


@router.get("/readyz")
async def readyz():
    """
    Readiness check over the record store and the view cache.

    The cache is reported but does not fail readiness: without Redis the
    views are recomputed from the store on every read.
    """
    checks = {}

    # 1) Redis (view cache)
    t0 = time.time()
    redis_ok = await fast_redis.ping()
    latency_ms = round((time.time() - t0) * 1000, 1)
    checks["redis"] = {"ok": redis_ok, "latency_ms": latency_ms, "required": False}
    log_health_check("redis", redis_ok, latency_ms)

    # 2) Database pool (record store)
    t0 = time.time()
    db_health = await db_health_check()
    latency_ms = round((time.time() - t0) * 1000, 1)
    db_ok = bool(db_health.get("healthy", False))
    checks["database"] = {"ok": db_ok, "latency_ms": latency_ms}
    if "pool_stats" in db_health:
        pool_stats = db_health["pool_stats"]
        checks["database"].update(
            {
                "pool_size": pool_stats.get("pool_size", 0),
                "pool_available": pool_stats.get("pool_available", 0),
                "pool_utilization_percent": pool_stats.get("pool_utilization_percent", 0),
            }
        )
    if not db_ok:
        checks["database"]["error"] = db_health.get("error", "Database unhealthy")
    log_health_check("database", db_ok, latency_ms, checks["database"].get("error"))

    body = {
        "overall_ok": db_ok,
        "checks": checks,
        "environment": settings.environment,
        "timestamp": time.time(),
    }
    return JSONResponse(status_code=200 if db_ok else 503, content=body)


@router.get("/health/database")
async def database_health():
    """Detailed database pool health information."""
    return await db_health_check()
