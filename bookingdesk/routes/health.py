# bookingdesk/routes/health.py
"""
Health check endpoints with database pool monitoring.
"""

import time

from fastapi import APIRouter

from bookingdesk.config import settings
from bookingdesk.db.pool import db_health_check
from bookingdesk.infrastructure.observability.logging import log_health_check

router = APIRouter()


@router.get("/healthz")
async def healthz():
    """Basic health check - always returns 200 if app is running."""
    return {"status": "ok", "service": "bookingdesk"}


@router.get("/readyz")
async def readyz():
    """
    Readiness check: database pool and scheduling configuration.
    """
    checks = {}
    overall_ok = True

    # 1) Database pool health check
    if settings.database_configured():
        t0 = time.time()
        try:
            db_health = await db_health_check()
            is_healthy = db_health.get("healthy", False)
            latency_ms = round((time.time() - t0) * 1000, 1)
            checks["database"] = {"ok": is_healthy, "latency_ms": latency_ms}
            log_health_check("database", is_healthy, latency_ms, db_health.get("error"))
            if not is_healthy:
                checks["database"]["error"] = db_health.get("error", "Database unhealthy")
                if "error_type" in db_health:
                    checks["database"]["error_type"] = db_health["error_type"]
            overall_ok = overall_ok and is_healthy

        except Exception as e:
            checks["database"] = {
                "ok": False,
                "error": f"{type(e).__name__}: {e}",
                "latency_ms": round((time.time() - t0) * 1000, 1),
            }
            overall_ok = False
    else:
        checks["database"] = {"ok": False, "error": "DATABASE_URL not set"}
        overall_ok = False

    # 2) Configuration checks
    config_issues = []
    config_warnings = []
    if not (settings.GOOGLE_CALENDAR_CLIENT_ID and settings.GOOGLE_CALENDAR_CLIENT_SECRET):
        config_warnings.append("System Google Calendar OAuth client not set (tenant clients only)")
    if not settings.ENCRYPTION_KEY:
        config_issues.append("ENCRYPTION_KEY not set")

    checks["configuration"] = {
        "ok": not config_issues,
        "issues": config_issues or None,
        "warnings": config_warnings or None,
        "environment": settings.environment,
    }
    overall_ok = overall_ok and not config_issues

    return {"overall_ok": overall_ok, "checks": checks, "timestamp": time.time()}
