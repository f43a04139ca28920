# backend/hospitality/routes/system.py
"""
System health endpoint.

Reports database connectivity for deployment debugging.
"""

import time
from flask import Blueprint, jsonify, current_app
from ..extensions import db
from ..models import Establishment, Order, DailySale
from hospitality.time_utils import utcnow, to_utc_z

system_bp = Blueprint("system", __name__)


def check_database_health() -> dict:
    """
    Check database connectivity and basic operations.

    Returns dict with status and details.
    """
    start_time = time.time()
    try:
        establishment_count = db.session.query(Establishment).count()
        order_count = db.session.query(Order).count()
        daily_sale_count = db.session.query(DailySale).count()

        elapsed_ms = (time.time() - start_time) * 1000

        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {
                "establishments": establishment_count,
                "orders": order_count,
                "daily_sales": daily_sale_count,
            }
        }
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error"
        }


@system_bp.get("/health")
def health():
    database = check_database_health()
    healthy = database["status"] == "healthy"
    return jsonify({
        "status": "healthy" if healthy else "unhealthy",
        "time": to_utc_z(utcnow()),
        "checks": {"database": database},
    }), 200 if healthy else 503
