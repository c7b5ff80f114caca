# backend/laundrypos/routes/system.py
"""Health and version endpoints (no authentication)."""

import sys
import time

from flask import Blueprint, current_app
from sqlalchemy import text

from ..extensions import db
from ..services.sequence_service import get_counter_store
from ..time_utils import utcnow

system_bp = Blueprint("system", __name__)

API_VERSION = "1.0.0"


def check_database_health() -> dict:
    start_time = time.time()
    try:
        db.session.execute(text("SELECT 1"))
        return {"status": "healthy", "latency_ms": round((time.time() - start_time) * 1000, 2)}
    except Exception:
        current_app.logger.exception("Database health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round((time.time() - start_time) * 1000, 2),
            "error": "Database error",
        }


@system_bp.get("/health")
def health():
    """
    Returns:
    - 200: healthy, or degraded (running on the in-memory sequence store)
    - 503: database unreachable
    """
    database_health = check_database_health()
    store = get_counter_store()
    sequence_health = {"status": "healthy" if store.durable else "degraded", "store": store.name}

    if database_health["status"] == "unhealthy":
        overall_status, http_status = "unhealthy", 503
    elif sequence_health["status"] == "degraded":
        overall_status, http_status = "degraded", 200
    else:
        overall_status, http_status = "healthy", 200

    return {
        "status": overall_status,
        "timestamp": utcnow().isoformat() + "Z",
        "checks": {"database": database_health, "sequences": sequence_health},
    }, http_status


@system_bp.get("/version")
def version():
    return {
        "api_version": API_VERSION,
        "environment": "production" if not current_app.debug else "development",
        "python_version": sys.version.split()[0],
        "server_time": utcnow().isoformat() + "Z",
    }
