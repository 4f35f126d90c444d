# backend/tradehouse/routes/system.py
"""
System health endpoint.

Reports database connectivity and whether the daily job scheduler is
running in this process.
"""

import time
from flask import Blueprint, current_app
from sqlalchemy import text

from ..extensions import db
from ..time_utils import to_utc_z, utcnow

system_bp = Blueprint("system", __name__, url_prefix="/api")


def check_database_health() -> dict:
    """
    Check database connectivity.

    Returns dict with status and details.
    """
    start_time = time.time()
    try:
        db.session.execute(text("SELECT 1"))
        elapsed_ms = (time.time() - start_time) * 1000
        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
        }
    except Exception:
        db.session.rollback()
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error",
        }


def check_scheduler_health() -> dict:
    scheduler = current_app.extensions.get("job_scheduler")
    if scheduler is None:
        return {"status": "disabled"}
    if not scheduler.is_running:
        return {"status": "unhealthy", "error": "Scheduler thread is not running"}
    return {"status": "healthy", "next_run_at": to_utc_z(scheduler.next_run_at(utcnow()))}


@system_bp.get("/health")
def health():
    """
    Health check.

    Returns:
    - 200: database reachable (scheduler may be disabled)
    - 503: database unreachable or scheduler thread died
    """
    start_time = time.time()
    database_health = check_database_health()
    scheduler_health = check_scheduler_health()

    unhealthy = any(c["status"] == "unhealthy" for c in (database_health, scheduler_health))
    response = {
        "status": "unhealthy" if unhealthy else "healthy",
        "timestamp": to_utc_z(utcnow()),
        "total_latency_ms": round((time.time() - start_time) * 1000, 2),
        "checks": {
            "database": database_health,
            "scheduler": scheduler_health,
        },
    }
    return response, 503 if unhealthy else 200
