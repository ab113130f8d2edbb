# backend/zaadpos/routes/system.py
"""
System health endpoint.

Pings the row store behind the sales table and reports latency.
"""

import time

from flask import Blueprint, current_app, jsonify

from ..engine import get_engine
from ..time_utils import to_utc_z, utcnow
from ..validation import UpstreamUnavailable, ValidationError

system_bp = Blueprint("system", __name__)


def check_store_health() -> dict:
    engine = get_engine()
    start_time = time.time()
    try:
        engine.store.ping(engine.config.sales)
        elapsed_ms = (time.time() - start_time) * 1000
        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "backend": type(engine.store).__name__,
        }
    except (UpstreamUnavailable, ValidationError) as e:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.warning("Row store health check failed: %s", e)
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": str(e),
        }


@system_bp.get("/api/health")
def health():
    store = check_store_health()
    status = 200 if store["status"] == "healthy" else 503
    return jsonify({
        "status": store["status"],
        "time": to_utc_z(utcnow()),
        "checks": {"row_store": store},
    }), status
