"""
Production Health Check Endpoints

1. /health/live - Liveness probe (is the process alive?)
2. /health/ready - Readiness probe (can the task store serve transactions?)
3. /health/startup - Startup probe with the configuration validation report
"""

import time
import logging
from datetime import datetime, timezone
from typing import Dict, Any
from flask import Blueprint, jsonify, current_app

logger = logging.getLogger(__name__)

health_production_bp = Blueprint('health_production', __name__, url_prefix='/health')

# Track startup time for uptime calculation
_startup_time = time.time()


def get_uptime_seconds() -> float:
    """Get application uptime in seconds."""
    return time.time() - _startup_time


def check_database_health() -> Dict[str, Any]:
    """
    Round-trip the task store's database.

    Returns dict with:
    - healthy: bool
    - latency_ms: response time
    - error: error message if unhealthy
    """
    start = time.time()
    try:
        from models import db
        from sqlalchemy import text

        db.session.execute(text("SELECT 1")).fetchone()
        db.session.rollback()  # Don't leave open transaction

        latency_ms = (time.time() - start) * 1000
        return {
            "healthy": True,
            "latency_ms": round(latency_ms, 2),
            "type": db.engine.dialect.name
        }
    except Exception as e:
        latency_ms = (time.time() - start) * 1000
        logger.warning(f"Database health check failed: {e}")
        return {
            "healthy": False,
            "latency_ms": round(latency_ms, 2),
            "error": str(e)[:100]
        }


@health_production_bp.route('/live')
def liveness():
    """
    Liveness probe - FAST, no external dependencies.
    """
    return jsonify({
        "status": "alive",
        "uptime_seconds": round(get_uptime_seconds(), 2)
    }), 200


@health_production_bp.route('/ready')
def readiness():
    """
    Readiness probe - 200 if the database answers, 503 otherwise.
    """
    db_health = check_database_health()
    is_ready = db_health.get("healthy", False)

    return jsonify({
        "status": "ready" if is_ready else "not_ready",
        "checks": {"database": db_health},
        "timestamp": datetime.now(timezone.utc).isoformat()
    }), 200 if is_ready else 503


@health_production_bp.route('/startup')
def startup():
    """
    Startup probe - reports the configuration validation run by ``create_app``.
    """
    report = current_app.extensions.get('startup_report')
    if report is None:
        return jsonify({
            "status": "starting",
            "uptime_seconds": round(get_uptime_seconds(), 2)
        }), 503

    return jsonify({
        "status": "started",
        "uptime_seconds": round(get_uptime_seconds(), 2),
        "validation": report.to_dict()
    }), 200
