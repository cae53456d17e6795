# recon/routes/dashboard.py
from __future__ import annotations
from datetime import datetime, timezone
from flask import Blueprint, jsonify, current_app, g

from .. import get_conn
from ..auth.guards import require_auth
from ..services import catalog
from ..services.pipeline import (
    aging_buckets,
    fleet_sla_compliance,
    role_queue_counts,
    stage_metrics,
)

dashboard_bp = Blueprint("dashboard", __name__)

@dashboard_bp.get("/dashboard")
@require_auth()
def dashboard():
    """
    GET /dashboard -- fleet summary for the caller's dealership.

    Responses:
      - 200: {
          "total_vehicles": int,
          "sla_compliance": int (0-100),
          "stage_metrics": [ {stage, count, avg_age_days, overdue_count}, ... ],
          "role_metrics": [ {role, count}, ... ],
          "aging": { "0-3": int, "4-7": int, "8-14": int, "15+": int }
        }
      - 500: {"error":"server_error"}
    """
    now = datetime.now(timezone.utc)
    try:
        with get_conn() as conn:
            stages = catalog.fetch_stages(conn, g.dealership_id)
            vehicles = catalog.fetch_vehicles(conn, g.dealership_id)
            completions = catalog.fetch_completions(conn, g.dealership_id)
    except Exception:
        current_app.logger.exception("dashboard load failed")
        return jsonify({"error": "server_error"}), 500

    metrics = [
        {
            "stage": catalog.stage_to_dict(m.stage),
            "count": m.count,
            "avg_age_days": round(m.avg_age_days, 1),
            "overdue_count": m.overdue_count,
        }
        for m in stage_metrics(vehicles, stages, completions, now)
    ]
    roles = role_queue_counts(vehicles, stages, completions)

    return jsonify({
        "total_vehicles": len(vehicles),
        "sla_compliance": fleet_sla_compliance(vehicles, stages, completions, now),
        "stage_metrics": metrics,
        "role_metrics": [{"role": r, "count": n} for r, n in roles.items()],
        "aging": aging_buckets(vehicles, now),
    }), 200
