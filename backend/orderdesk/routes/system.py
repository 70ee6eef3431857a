# backend/orderdesk/routes/system.py
"""
System health endpoint.

Reports database reachability and the read-side cache so deployments can
tell a dead store from a cold cache.
"""

import time
from flask import Blueprint, current_app
from sqlalchemy import text

from ..extensions import cache, db
from orderdesk.time_utils import utcnow

system_bp = Blueprint("system", __name__)


def check_database_health() -> dict:
    start_time = time.time()
    try:
        db.session.execute(text("SELECT 1"))
        elapsed_ms = (time.time() - start_time) * 1000
        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "dialect": db.engine.dialect.name,
        }
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error",
        }


def check_cache_health() -> dict:
    """
    A broken cache only degrades reads, so it never makes the service unhealthy.
    """
    try:
        cache.set("health_probe", True, ttl=1)
        ok = cache.get("health_probe") is True
        return {"status": "healthy" if ok else "degraded"}
    except Exception:
        current_app.logger.warning("Cache health check failed", exc_info=True)
        return {"status": "degraded", "error": "Cache error"}


@system_bp.get("/health")
def health():
    """
    Returns:
    - 200: database reachable (cache may be degraded)
    - 503: database unreachable
    """
    database_health = check_database_health()
    cache_health = check_cache_health()

    if database_health["status"] == "unhealthy":
        overall_status = "unhealthy"
        http_status = 503
    elif cache_health["status"] == "degraded":
        overall_status = "degraded"
        http_status = 200
    else:
        overall_status = "healthy"
        http_status = 200

    return {
        "status": overall_status,
        "timestamp": utcnow().isoformat() + "Z",
        "checks": {
            "database": database_health,
            "cache": cache_health,
        },
    }, http_status
