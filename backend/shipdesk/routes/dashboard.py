# Overview: Dashboard totals endpoint.

from flask import Blueprint, current_app

from ..services import dashboard_service
from ..decorators import require_auth, require_permission


dashboard_bp = Blueprint("dashboard", __name__, url_prefix="/api/dashboard")


@dashboard_bp.get("/stats")
@require_auth
@require_permission("dashboard.stats")
def dashboard_stats_route():
    """Order counts per status, catalog and low-stock counts, delivery progress and revenue."""
    try:
        stats = dashboard_service.get_stats()
    except Exception:
        current_app.logger.exception("Failed to compute dashboard stats")
        return {"error": "Failed to get dashboard stats"}, 500

    return stats, 200
