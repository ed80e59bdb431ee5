# backend/bakery_pos/routes/system.py
"""System health endpoint: backend in use and record counts."""

import time
from flask import Blueprint, current_app, jsonify

from ..extensions import get_store
from ..stores import PersistenceError
from ..time_utils import utcnow, to_utc_z

system_bp = Blueprint("system", __name__, url_prefix="/api")


@system_bp.get("/health")
def health():
    store = get_store()
    start_time = time.time()
    try:
        counts = {kind: store.count(kind) for kind in store.kinds}
    except PersistenceError:
        current_app.logger.exception("Store health check failed")
        return jsonify({
            "status": "unhealthy",
            "backend": store.backend_name,
            "error": "Store error",
        }), 500

    return jsonify({
        "status": "healthy",
        "backend": store.backend_name,
        "latency_ms": round((time.time() - start_time) * 1000, 2),
        "counts": counts,
        "timestamp": to_utc_z(utcnow()),
    })
