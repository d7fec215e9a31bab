# backend/shipdesk/routes/system.py
"""
System health endpoint.
"""

import time

from flask import Blueprint, current_app
from sqlalchemy import text

from ..extensions import db

system_bp = Blueprint("system", __name__)


@system_bp.get("/health")
def health():
    """Liveness plus a database round trip. 503 when the database is unreachable."""
    start_time = time.time()
    try:
        db.session.execute(text("SELECT 1"))
    except Exception:
        current_app.logger.exception("Health check: database unreachable")
        return {"status": "unhealthy", "database": "unreachable"}, 503

    elapsed_ms = (time.time() - start_time) * 1000
    return {"status": "ok", "database": "healthy", "latencyMs": round(elapsed_ms, 2)}, 200
