# rescue_timeline/routes/health.py
"""
Health check endpoints.
"""

import time

from fastapi import APIRouter, Depends

from rescue_timeline.config import settings
from rescue_timeline.dependencies import ServiceContainer, get_services
from rescue_timeline.infrastructure.observability.logging import log_health_check

router = APIRouter()


@router.get("/healthz")
async def healthz():
    """Basic health check - always returns 200 if app is running."""
    return {"status": "ok", "service": "rescue-timeline"}


@router.get("/readyz")
async def readyz(services: ServiceContainer = Depends(get_services)):
    """
    Readiness check for Supabase and Redis.

    Both are optional: an unconfigured backend is reported as mock mode, not as a failure.
    """
    checks = {}
    overall_ok = True

    # 1) Supabase REST
    if services.supabase is None:
        checks["supabase"] = {"ok": True, "mode": "mock"}
    else:
        t0 = time.time()
        try:
            result = await services.supabase.health_check()
            latency_ms = round((time.time() - t0) * 1000, 1)
            healthy = bool(result.get("healthy"))
            checks["supabase"] = {"ok": healthy, "latency_ms": latency_ms, "mode": "live"}
            if not healthy:
                checks["supabase"]["error"] = result.get("error") or (
                    f"HTTP {result.get('status_code')}"
                )
            log_health_check("supabase", healthy, latency_ms, checks["supabase"].get("error"))
            overall_ok = overall_ok and healthy
        except Exception as e:
            checks["supabase"] = {"ok": False, "error": f"{type(e).__name__}: {e}"}
            overall_ok = False

    # 2) Redis
    if services.redis is None:
        checks["redis"] = {"ok": True, "mode": "in_memory"}
    else:
        t0 = time.time()
        redis_ok = await services.redis.ping()
        latency_ms = round((time.time() - t0) * 1000, 1)
        checks["redis"] = {"ok": redis_ok, "latency_ms": latency_ms, "connection_type": "pooled"}
        log_health_check("redis", redis_ok, latency_ms)
        overall_ok = overall_ok and redis_ok

    # 3) Configuration
    config_issues = []
    if not settings.supabase_configured():
        config_issues.append("SUPABASE_URL / SUPABASE_ANON_KEY not set (mock data)")
    if not settings.jwks_url():
        config_issues.append("SUPABASE_JWKS_URL cannot be derived (auth disabled)")

    checks["configuration"] = {
        "ok": True,
        "issues": config_issues if config_issues else None,
        "environment": settings.environment,
    }

    return {"overall_ok": overall_ok, "checks": checks, "timestamp": time.time()}
